from .casual import analyze_fillers, is_greeting, is_minor_incident, is_small_talk, resists_meaning
from .crisis import SAFETY_FALLBACK_REPLY, CrisisDetector, CrisisResponder
from .emotions import detect_emotions
from .register import RegisterDetector
from .specialized import SpecializedConcernDetector

__all__ = [
    "SAFETY_FALLBACK_REPLY",
    "CrisisDetector",
    "CrisisResponder",
    "RegisterDetector",
    "SpecializedConcernDetector",
    "analyze_fillers",
    "detect_emotions",
    "is_greeting",
    "is_minor_incident",
    "is_small_talk",
    "resists_meaning",
]
