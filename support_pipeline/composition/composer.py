import random
import re
from typing import List, Sequence, Tuple

from support_pipeline.content.loader import KnowledgeCorpus, TemplateBank, render_template
from support_pipeline.content.text import normalize
from support_pipeline.domain.models import ConversationHistory, MemoryRecord, SignalReport
from support_pipeline.memory.store import MemoryStore
from support_pipeline.memory.topics import TOPIC_LEXICON, describe_topic, topic_phrase
from support_pipeline.repetition.detector import FEEDBACK_LOOP_PATTERN

RECALL_PATTERN = re.compile(
    r"\b(do you remember|remember what i (said|told you)|what did i (say|tell you)|what have i told you|did i mention)\b"
)
MEDICAL_ADVICE_PATTERN = re.compile(
    r"\b(should i (take|stop taking|increase|decrease)|what (medication|meds|dose|dosage)|how (much|many) (mg|pills)|"
    r"is it safe to (take|mix)|can i (take|mix)|diagnose me|do i have (depression|adhd|bipolar|anxiety|cancer))\b"
)
QUESTION_START = re.compile(r"^(what|how|why|when|where|which|who|is|are|can|does|do|should|could|would)\b")
PERSONAL_QUESTION = re.compile(r"\b(i|me|my|i'm|myself)\b")

class DraftComposer:
    """
    Chooses the base draft for a turn by intent, in priority order: greeting,
    feedback-loop complaint, recall request, medical-advice request,
    specialized concern, factual question, minor incident, small talk,
    emotion, default.
    """
    def __init__(self, templates: TemplateBank, corpus: KnowledgeCorpus):
        self.templates = templates
        self.corpus = corpus

    def classify(self, utterance: str, signals: SignalReport) -> str:
        lowered = normalize(utterance)
        if signals.is_greeting:
            return "greeting"
        if FEEDBACK_LOOP_PATTERN.search(lowered):
            return "feedback_loop"
        if RECALL_PATTERN.search(lowered):
            return "recall"
        if MEDICAL_ADVICE_PATTERN.search(lowered):
            return "medical_advice"
        if signals.specialized_concern is not None:
            return "specialized"
        if self.is_factual_question(lowered):
            return "factual_question"
        if signals.is_minor_incident:
            return "minor_incident"
        if signals.is_small_talk:
            return "small_talk"
        if signals.emotions:
            return "emotion"
        return "default"

    @staticmethod
    def is_factual_question(lowered: str) -> bool:
        return lowered.endswith("?") and bool(QUESTION_START.search(lowered)) and not PERSONAL_QUESTION.search(lowered)

    def compose(
        self,
        utterance: str,
        signals: SignalReport,
        record: MemoryRecord,
        memory_store: MemoryStore,
        history: ConversationHistory,
        rng: random.Random,
        recent_replies: Sequence[str] = (),
    ) -> Tuple[str, str]:
        """Returns (intent, draft)."""
        intent = self.classify(utterance, signals)
        topic = describe_topic(utterance, default=self._remembered_topic(record))

        if intent == "greeting":
            pool = self.templates.greetings
        elif intent == "recall":
            remembered = memory_store.recall(utterance, history)
            if not remembered:
                return intent, self._pick(self.templates.drafts["recall_empty"], rng, recent_replies, {})
            topics = ", ".join(topic_phrase(t) for t in remembered[:5])
            return intent, self._pick(self.templates.drafts["recall"], rng, recent_replies, {"topics": topics})
        elif intent == "specialized":
            tag = signals.specialized_concern.tag.value
            resources = " ".join(self.corpus.resources_for(tag))
            return intent, self._pick(self.templates.specialized[tag], rng, recent_replies, {"resources": resources})
        elif intent == "emotion":
            family = next((e for e in signals.emotions if e in self.templates.emotions), None)
            pool = self.templates.emotions[family] if family else self.templates.drafts["default"]
        else:
            pool = self.templates.drafts.get(intent) or self.templates.drafts["default"]
        return intent, self._pick(pool, rng, recent_replies, {"topic": topic})

    @staticmethod
    def _remembered_topic(record: MemoryRecord) -> str:
        for topic in record.dominant_topics:
            if topic in TOPIC_LEXICON:
                return topic_phrase(topic)
        return "what you're going through"

    @staticmethod
    def _pick(pool: List[str], rng: random.Random, recent_replies: Sequence[str], replacements: dict) -> str:
        """Random variant, preferring one not used verbatim in a recent reply."""
        rendered = [render_template(t, replacements) for t in pool]
        fresh = [r for r in rendered if not any(r in reply for reply in recent_replies)]
        return rng.choice(fresh or rendered)
