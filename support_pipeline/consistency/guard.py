import re
from typing import Callable, List, Optional, Tuple

from support_pipeline.content.text import join_sentences, normalize, split_sentences
from support_pipeline.detectors.emotions import EMOTION_FAMILIES, contradicts, detect_emotions
from support_pipeline.domain.exceptions import ConsistencyCheckError
from support_pipeline.domain.models import ConsistencyResult, ConversationHistory, MemoryRecord, RetrievalResult
from support_pipeline.memory.store import MEMORY_PHRASE_PATTERN, MemoryStore
from support_pipeline.memory.topics import extract_topics, mentions_topic

EMOTION_CLAIM_PATTERN = re.compile(r"\byou(?:'re| are)(?: (?:feeling|so|really|clearly|obviously))* (\w+)")
RELATION_CLAIM_PATTERN = re.compile(
    r"\byour (wife|husband|partner|boyfriend|girlfriend|kids|children|son|daughter|dog|cat|boss|mom|dad|mother|father|sister|brother)\b"
)
CITATION_PATTERN = re.compile(r"\b(studies show|research shows|statistics show|experts agree|it is proven|\d+ ?% of people)\b")
HEDGE = "it sounds like this might be weighing on you"

# Words of the memory phrases themselves, never treated as the claimed topic.
PHRASE_WORDS = {"remember", "mentioned", "told", "said", "earlier", "previously", "talked", "discussed"}

def _emotion_family(word: str) -> Optional[str]:
    for family, words in EMOTION_FAMILIES.items():
        if word in words:
            return family
    return None

class ConsistencyGuard:
    """
    Flags claims in a candidate reply that the conversation does not support:
    remembered facts the user never stated, feelings that contradict what the
    user expressed, and citations not backed by retrieved content. Offending
    sentences are removed, or softened when removal would empty the reply.
    """
    def __init__(self, memory_store_factory: Callable[[ConversationHistory], MemoryStore] = MemoryStore):
        # Builds a store per check when the caller passes no record; nothing is cached across sessions.
        self.memory_store_factory = memory_store_factory

    def check(
        self,
        candidate_text: str,
        utterance: str,
        history: ConversationHistory,
        record: Optional[MemoryRecord] = None,
        retrieved: Optional[RetrievalResult] = None,
    ) -> ConsistencyResult:
        record = record if record is not None else self.memory_store_factory(history).read()
        user_texts = [t.text for t in history.user_turns()]
        sentences = split_sentences(candidate_text)

        flagged: List[Tuple[int, str]] = []
        for index, sentence in enumerate(sentences):
            reason = self._unsupported_claim(sentence, utterance, user_texts, record, retrieved)
            if reason:
                flagged.append((index, reason))

        if not flagged:
            return ConsistencyResult(is_hallucination=False)

        claims = [f"{reason}: {sentences[i]}" for i, reason in flagged]
        try:
            corrected = self._correct(sentences, [i for i, _ in flagged])
        except ConsistencyCheckError:
            return ConsistencyResult(is_hallucination=True, corrected=None, flagged_claims=claims)
        return ConsistencyResult(is_hallucination=True, corrected=corrected, flagged_claims=claims)

    def _unsupported_claim(
        self,
        sentence: str,
        utterance: str,
        user_texts: List[str],
        record: MemoryRecord,
        retrieved: Optional[RetrievalResult],
    ) -> Optional[str]:
        lowered = normalize(sentence)
        said = user_texts + [utterance]

        if MEMORY_PHRASE_PATTERN.search(lowered):
            if not user_texts:
                return "memory claim with no prior user turns"
            topics = [t for t, _ in extract_topics(sentence) if t not in PHRASE_WORDS]
            if topics and not any(mentions_topic(text, topic) for text in user_texts for topic in topics):
                return "memory claim about an unmentioned topic"

        for match in EMOTION_CLAIM_PATTERN.finditer(lowered):
            family = _emotion_family(match.group(1))
            if family is None:
                continue
            expressed = set(detect_emotions(utterance)) | set(record.tracked_emotions)
            if family in expressed:
                continue
            if any(contradicts(family, recorded) for recorded in expressed):
                return "feeling contradicts what the user expressed"
            if family not in set(detect_emotions(" ".join(said))):
                return "feeling the user never expressed"

        for match in RELATION_CLAIM_PATTERN.finditer(lowered):
            relation = match.group(1)
            if not any(re.search(r'\b' + relation + r'\b', normalize(text)) for text in said):
                return "relation the user never mentioned"

        if CITATION_PATTERN.search(lowered):
            backed = retrieved is not None and retrieved.content and normalize(retrieved.content) in lowered
            if not backed:
                return "citation without retrieved support"
        return None

    def _correct(self, sentences: List[str], flagged: List[int]) -> str:
        kept = [s for i, s in enumerate(sentences) if i not in flagged]
        if kept:
            return join_sentences(kept)
        # Everything was flagged: soften the first claim instead of emptying the reply.
        first = sentences[flagged[0]]
        softened = EMOTION_CLAIM_PATTERN.sub(HEDGE, normalize(first), count=1)
        softened = MEMORY_PHRASE_PATTERN.sub("it sounds like", softened, count=1)
        if softened == normalize(first) or not softened.strip():
            raise ConsistencyCheckError("No local correction available for the flagged claim.")
        return softened[0].upper() + softened[1:]
