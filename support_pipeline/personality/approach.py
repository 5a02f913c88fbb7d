import re

from support_pipeline.content.text import normalize, tokenize
from support_pipeline.domain.models import Recommendation, RepetitionReport, ResponseApproach, SignalReport

EXISTENTIAL_PATTERN = re.compile(
    r"\b(meaning|purpose|point of (it|life|anything)|why am i|what am i doing with my life|existence|exist)\b"
)
TRAUMA_PATTERN = re.compile(r"\b(trauma|traumatic|abuse|assault|accident|attacked|ptsd|flashbacks?)\b")

# (spontaneity, creativity) per kind of turn.
APPROACH_LEVELS = {
    "smalltalk": (80, 75),
    "everyday_frustration": (70, 65),
    "emotional": (40, 40),
    "existential": (50, 60),
    "default": (60, 60),
}

class ApproachSelector:
    """Chooses how playful or careful a reply should be for this turn."""

    def __init__(self, regeneration_threshold: int = 80):
        self.regeneration_threshold = regeneration_threshold

    def select(self, utterance: str, signals: SignalReport, turn_count: int) -> ResponseApproach:
        lowered = normalize(utterance)
        if signals.is_greeting or signals.is_small_talk:
            kind = "smalltalk"
        elif signals.is_minor_incident:
            kind = "everyday_frustration"
        elif TRAUMA_PATTERN.search(lowered) or set(signals.emotions) & {"sad", "anxious", "lonely"}:
            kind = "emotional"
        elif EXISTENTIAL_PATTERN.search(lowered):
            kind = "existential"
        else:
            kind = "default"

        spontaneity, creativity = APPROACH_LEVELS[kind]
        # Early in a conversation stay predictable.
        if turn_count < 3:
            spontaneity = min(spontaneity, 50)
        # Terse users get livelier replies.
        if len(tokenize(utterance)) <= 4:
            spontaneity = min(100, spontaneity + 10)
        return ResponseApproach(kind=kind, spontaneity_level=spontaneity, creativity_level=creativity)

    def adjust_for_repetition(self, approach: ResponseApproach, report: RepetitionReport) -> ResponseApproach:
        """A repetitive draft pushes spontaneity past the regeneration threshold."""
        if not report.is_repetitive:
            return approach
        spontaneity = max(approach.spontaneity_level + 25, self.regeneration_threshold + 5)
        creativity = approach.creativity_level
        if Recommendation.CHANGE_APPROACH in report.recommendations:
            creativity = min(100, creativity + 10)
        return approach.model_copy(update={"spontaneity_level": min(100, spontaneity), "creativity_level": creativity})
