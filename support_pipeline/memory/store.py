import re
from typing import Dict, List, Optional, Tuple

from support_pipeline.content.loader import TemplateBank, render_template
from support_pipeline.detectors.emotions import detect_emotions
from support_pipeline.domain.models import ConversationHistory, ConversationTurn, MemoryRecord
from support_pipeline.memory.topics import TOPIC_LEXICON, extract_topics, mentions_topic, topic_phrase

MEMORY_PHRASE_PATTERN = re.compile(
    r"\b(i remember|you mentioned|you told me|you said|earlier you|previously you|we talked about|we discussed|you've mentioned|you talked about)\b",
    re.IGNORECASE,
)

class MemoryStore:
    """
    The single memory abstraction for a session. read() is a pure function of
    the history it is given; the one-entry cache is keyed on the full list of
    turn ids, so it can never serve a record for a different history.
    """
    def __init__(
        self,
        history: Optional[ConversationHistory] = None,
        window: int = 5,
        decay: float = 0.7,
        floor_weight: float = 0.05,
        reference_top_n: int = 3,
    ):
        self.history = history if history is not None else ConversationHistory()
        self.window = window
        self.decay = decay
        self.floor_weight = floor_weight
        self.reference_top_n = reference_top_n
        self._cache_key: Optional[Tuple[str, ...]] = None
        self._cache_value: Optional[MemoryRecord] = None

    def read(self, history: Optional[ConversationHistory] = None) -> MemoryRecord:
        history = history if history is not None else self.history
        key = history.fingerprint()
        if key == self._cache_key and self._cache_value is not None:
            return self._cache_value
        record = self._compute(history)
        self._cache_key, self._cache_value = key, record
        return record

    def write(self, turn: ConversationTurn) -> None:
        self.history.append(turn)

    def _recency_weight(self, age: int) -> float:
        # Only the last `window` user turns carry recency weight; older mentions keep the floor.
        if age >= self.window:
            return self.floor_weight
        return self.decay ** age

    def _compute(self, history: ConversationHistory) -> MemoryRecord:
        user_turns = history.user_turns()
        total = len(user_turns)
        scores: Dict[str, float] = {}
        first_seen: Dict[str, int] = {}
        emotions = set()

        for index, turn in enumerate(user_turns):
            recency = self._recency_weight(total - 1 - index)
            for topic, base_weight in extract_topics(turn.text):
                scores[topic] = scores.get(topic, 0.0) + base_weight * recency
                first_seen.setdefault(topic, index)
            emotions.update(detect_emotions(turn.text))

        ranked = sorted(scores, key=lambda t: (-round(scores[t], 9), first_seen[t]))
        return MemoryRecord(dominant_topics=tuple(ranked), tracked_emotions=frozenset(emotions), turn_count=total)

    def recent_turns(self, k: Optional[int] = None, history: Optional[ConversationHistory] = None) -> List[str]:
        """Verbatim text of the last k user turns."""
        history = history if history is not None else self.history
        return history.recent_user_texts(k or self.window)

    def recall(self, query: str = "", history: Optional[ConversationHistory] = None) -> List[str]:
        """
        Every concern the user has raised, oldest first, regardless of how
        dominant it still is. When the query names a remembered topic, only
        that topic is returned.
        """
        history = history if history is not None else self.history
        ordered: List[str] = []
        for turn in history.user_turns():
            for topic, _ in extract_topics(turn.text):
                if topic not in ordered:
                    ordered.append(topic)
        asked = [t for t in ordered if query and mentions_topic(query, t)]
        return asked or ordered

    def references(self, text: str, record: MemoryRecord) -> bool:
        if any(mentions_topic(text, topic) for topic in record.top_topics(self.reference_top_n)):
            return True
        return bool(set(detect_emotions(text)) & record.tracked_emotions)

    def reference_clause(self, record: MemoryRecord, turn_count: int, templates: TemplateBank) -> Optional[str]:
        if not record.dominant_topics:
            return None
        # Prefer a named category over a bare keyword.
        topic = next((t for t in record.dominant_topics if t in TOPIC_LEXICON), record.dominant_topics[0])
        pool = templates.memory_reference
        template = pool[turn_count % len(pool)]
        return render_template(template, {"topic": topic_phrase(topic)})
