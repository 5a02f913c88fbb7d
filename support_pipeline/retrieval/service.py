import asyncio
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np

from support_pipeline.content.loader import KnowledgeCorpus, TemplateBank, render_template
from support_pipeline.content.text import content_words, join_sentences, split_sentences
from support_pipeline.detectors.emotions import detect_emotions
from support_pipeline.domain.exceptions import RetrievalUnavailableError
from support_pipeline.domain.models import ConversationHistory, RetrievalResult
from support_pipeline.memory.topics import TOPIC_LEXICON, extract_topics, topic_phrase
from support_pipeline.retrieval.backends import EmbeddingBackend
from support_pipeline.retrieval.lexical import best_passage, rerank_sentences

EMOTION_QUERY_TERMS = {
    "sad": "depression low mood",
    "anxious": "anxiety worry stress",
    "angry": "frustration stress",
    "lonely": "loneliness connection",
    "confused": "uncertainty",
}

class RetrievalMode(str, Enum):
    EMBEDDING = "embedding"
    FALLBACK = "fallback"

class RetrievalService:
    """
    Retrieval over the static knowledge corpus. Holds the only process-wide
    mutable state in the pipeline: whether the embedding backend is usable.
    Construct once per process and inject it; initialization is single-flight
    and a failed attempt is not retried until the cooldown has passed.
    """
    def __init__(
        self,
        corpus: KnowledgeCorpus,
        templates: TemplateBank,
        backend: Optional[EmbeddingBackend] = None,
        confidence_threshold: float = 0.3,
        fallback_confidence: float = 0.25,
        timeout_s: float = 1.5,
        cooldown_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.corpus = corpus
        self.templates = templates
        self.backend = backend
        self.confidence_threshold = confidence_threshold
        self.fallback_confidence = fallback_confidence
        self.timeout_s = timeout_s
        self.cooldown_s = cooldown_s
        self._clock = clock
        self._init_lock = threading.Lock()
        self._mode = RetrievalMode.FALLBACK
        self._last_attempt: Optional[float] = None
        self._passage_matrix: Optional[np.ndarray] = None
        self.init_attempts = 0

    @property
    def mode(self) -> RetrievalMode:
        return self._mode

    def _attempt_allowed(self) -> bool:
        return self._last_attempt is None or self._clock() - self._last_attempt >= self.cooldown_s

    async def ensure_initialized(self) -> RetrievalMode:
        if self._mode == RetrievalMode.EMBEDDING or self.backend is None:
            return self._mode
        if not self._attempt_allowed():
            return self._mode
        # Another caller is already initializing; serve this request from the fallback.
        if not self._init_lock.acquire(blocking=False):
            return self._mode
        try:
            if self._mode == RetrievalMode.EMBEDDING or not self._attempt_allowed():
                return self._mode
            self._last_attempt = self._clock()
            self.init_attempts += 1
            texts = [p.content for p in self.corpus.passages]
            vectors = await asyncio.wait_for(self.backend.embed(texts), timeout=self.timeout_s)
            self._passage_matrix = self._normalize(np.asarray(vectors, dtype=float))
            self._mode = RetrievalMode.EMBEDDING
            print(f"[INFO] RetrievalService switched to embedding mode ({len(texts)} passages).")
        except Exception as e:
            self._mode = RetrievalMode.FALLBACK
            print(f"[WARNING] Embedding backend unavailable, using lexical fallback: {e!r}")
        finally:
            self._init_lock.release()
        return self._mode

    @staticmethod
    def _normalize(matrix: np.ndarray) -> np.ndarray:
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return matrix / norms

    def build_query(self, utterance: str, history: Optional[ConversationHistory] = None) -> str:
        parts = [utterance]
        for emotion in detect_emotions(utterance):
            if emotion in EMOTION_QUERY_TERMS:
                parts.append(EMOTION_QUERY_TERMS[emotion])
        # Short follow-ups ("what can I do about it?") borrow the last stated topic.
        if history is not None and len(content_words(utterance)) < 3:
            for text in reversed(history.recent_user_texts(3)):
                topics = [t for t, _ in extract_topics(text) if t in TOPIC_LEXICON]
                if topics:
                    parts.append(topics[0])
                    break
        return " ".join(parts)

    async def retrieve(self, query: str, history: Optional[ConversationHistory] = None) -> RetrievalResult:
        mode = await self.ensure_initialized()
        if mode == RetrievalMode.EMBEDDING:
            try:
                return await self._retrieve_embedding(query)
            except Exception as e:
                self._mode = RetrievalMode.FALLBACK
                self._last_attempt = self._clock()
                print(f"[WARNING] Embedding lookup failed, degrading to lexical fallback: {e!r}")
        return self._retrieve_lexical(query)

    async def _retrieve_embedding(self, query: str) -> RetrievalResult:
        vectors = await asyncio.wait_for(self.backend.embed([query]), timeout=self.timeout_s)
        query_vector = self._normalize(np.asarray(vectors, dtype=float))[0]
        if self._passage_matrix is None or query_vector.shape[0] != self._passage_matrix.shape[1]:
            raise RetrievalUnavailableError("Query embedding does not match the passage index.")
        similarities = self._passage_matrix @ query_vector
        best = int(np.argmax(similarities))
        confidence = float(np.clip(similarities[best], 0.0, 1.0))
        passage = self.corpus.passages[best]
        return RetrievalResult(content=passage.content, confidence=confidence, source_id=passage.id)

    def _retrieve_lexical(self, query: str) -> RetrievalResult:
        found = best_passage(self.corpus.passages, query)
        if found is None:
            return RetrievalResult()
        passage, _ = found
        return RetrievalResult(content=passage.content, confidence=self.fallback_confidence, source_id=passage.id)

    def is_usable(self, result: RetrievalResult) -> bool:
        return bool(result.content) and result.confidence >= self.confidence_threshold

    def integrate(self, draft: str, result: RetrievalResult) -> str:
        """Direct insertion: append to a one-sentence draft, otherwise insert at about two thirds."""
        sentences = split_sentences(draft)
        if len(sentences) <= 1:
            return join_sentences(sentences + [result.content])
        position = min(max(1, round(len(sentences) * 0.66)), len(sentences))
        return join_sentences(sentences[:position] + [result.content] + sentences[position:])

    def rerank(self, candidate_text: str, query: str) -> str:
        """Fallback augmentation: lead with topic-overlapping sentences, never with the snippet."""
        reordered, overlapped = rerank_sentences(candidate_text, query)
        if overlapped or "?" not in query:
            return reordered
        topics = [t for t, _ in extract_topics(query)]
        if not topics:
            return reordered
        topic = next((t for t in topics if t in TOPIC_LEXICON), topics[0])
        pool = self.templates.retrieval.rerank_ack
        ack = render_template(pool[len(query) % len(pool)], {"topic": topic_phrase(topic)})
        return join_sentences([ack] + split_sentences(reordered))

    async def augment(self, draft: str, utterance: str, history: Optional[ConversationHistory] = None) -> Tuple[str, RetrievalResult, str]:
        """Applies the confidence policy. Returns the new text, the result, and the path taken."""
        query = self.build_query(utterance, history)
        result = await self.retrieve(query, history)
        if self.is_usable(result):
            return self.integrate(draft, result), result, "insert"
        return self.rerank(draft, query), result, "rerank"
