from .approach import ApproachSelector
from .variator import PersonalityVariator, contains_meaning_phrase, strip_meaning_phrases

__all__ = ["ApproachSelector", "PersonalityVariator", "contains_meaning_phrase", "strip_meaning_phrases"]
