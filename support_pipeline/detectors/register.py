import re
from typing import Dict, List, Pattern

from support_pipeline.content.text import normalize
from support_pipeline.domain.models import RegisterProfile

OCCUPATION_TERMS: Dict[str, List[str]] = {
    "blue-collar": ["shift", "warehouse", "factory", "construction", "plant", "union", "overtime", "foreman", "truck", "mechanic"],
    "white-collar": ["office", "meeting", "manager", "corporate", "deadline", "salary", "promotion", "client", "quarterly"],
    "service": ["customer", "customers", "tips", "retail", "restaurant", "server", "cashier", "register", "manager on duty"],
}

CASUAL_PATTERNS: List[Pattern] = [
    re.compile(r"\b(gonna|wanna|gotta|kinda|sorta|ain't|y'all|dunno|lemme)\b"),
    re.compile(r"\b(lol|lmao|omg|tbh|idk|ngl)\b"),
    re.compile(r"\b(dude|bro|man|buddy)\b"),
]
COLLOQUIAL_PATTERNS: List[Pattern] = [
    re.compile(r"\b(pissed|screwed|sucks|crappy|bs|freaking|messed up)\b"),
    re.compile(r"\b(ain't got|don't got|real bad|real good)\b"),
]

class RegisterDetector:
    """Estimates the speaker's language style and work context from word choice."""

    def analyze(self, text: str) -> RegisterProfile:
        lowered = normalize(text)
        casual_hits = sum(len(p.findall(lowered)) for p in CASUAL_PATTERNS)
        colloquial_hits = sum(len(p.findall(lowered)) for p in COLLOQUIAL_PATTERNS)

        if colloquial_hits:
            style = "colloquial"
        elif casual_hits:
            style = "casual"
        else:
            style = "neutral"

        occupation = None
        best = 0
        for kind, terms in OCCUPATION_TERMS.items():
            hits = sum(1 for term in terms if re.search(r'\b' + re.escape(term) + r'\b', lowered))
            if hits > best:
                occupation, best = kind, hits

        return RegisterProfile(language_style=style, occupation_type=occupation, casual_markers=casual_hits + colloquial_hits)
