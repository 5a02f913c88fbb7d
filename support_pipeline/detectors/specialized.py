import re
from typing import Dict, List, Optional, Pattern

from support_pipeline.content.text import normalize
from support_pipeline.domain.models import ConcernTag, SpecializedConcern

CONCERN_PATTERNS: Dict[ConcernTag, List[Pattern]] = {
    ConcernTag.EATING_DISORDER: [
        re.compile(r"\b(anorexi[ac]|bulimi[ac]|binge eating|binging and purging|purging)\b"),
        re.compile(r"\b(starv(e|ing) myself|make myself (throw up|vomit)|skip(ping)? meals to lose)\b"),
        re.compile(r"\b(hate my body|too fat to eat|afraid of eating|counting every calorie)\b"),
    ],
    ConcernTag.SUBSTANCE_USE: [
        re.compile(r"\b(addict(ed|ion)?|relaps(e|ed|ing)|withdrawal|sober|sobriety|rehab)\b"),
        re.compile(r"\b(drinking (too much|every day|every night|alone)|can't stop drinking|blackout drunk)\b"),
        re.compile(r"\b(using (meth|heroin|coke|cocaine|pills|opioids)|hooked on)\b"),
    ],
    ConcernTag.GAMBLING: [
        re.compile(r"\b(gambling|gambled|betting|sports bets?|casino|slot machines?|poker debts?)\b"),
        re.compile(r"\b(lost (all|everything|my savings) (on|at) (bets?|the casino|cards))\b"),
    ],
}

class SpecializedConcernDetector:
    """Flags non-crisis concerns that warrant a specific helpline."""

    def detect(self, text: str) -> Optional[SpecializedConcern]:
        lowered = normalize(text)
        for tag, patterns in CONCERN_PATTERNS.items():
            for pattern in patterns:
                match = pattern.search(lowered)
                if match:
                    return SpecializedConcern(tag=tag, matched_phrase=match.group(0))
        return None
