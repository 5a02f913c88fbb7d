import re
from typing import List

from support_pipeline.content.text import normalize, tokenize
from support_pipeline.detectors.emotions import detect_emotions
from support_pipeline.domain.models import FillerProfile

FILLER_WORDS: List[str] = [
    "um", "umm", "uh", "uhh", "er", "erm", "hmm", "like", "you know", "i mean", "basically",
    "actually", "literally", "sort of", "kind of", "kinda", "sorta", "whatever", "i guess", "so yeah",
]

# A filler density above this, or three or more fillers, reads as hesitant speech.
HESITATION_DENSITY = 0.15

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|hiya|yo|howdy|good (morning|afternoon|evening))\b")
SMALL_TALK_PATTERN = re.compile(
    r"\b(how are you|how's it going|how is it going|what's up|whats up|how are things|how have you been|nice to meet you)\b"
)
MINOR_INCIDENT_PATTERN = re.compile(
    r"\b(spill(ed)?|embarrass(ed|ing)?|awkward|party|bar|drink|mess(ed)? up|trip(ped)?|fall|fell|stumbled?|"
    r"class|teacher|student|presentation|typo|forgot my|locked out|missed the bus|traffic)\b"
)
# Words that make a mishap-sounding message a serious disclosure ("I fell apart at the funeral").
SERIOUS_DISCLOSURE_PATTERN = re.compile(
    r"\b(died|dies|dead|death|passed away|funeral|grief|grieving|hospital|cancer|diagnos(is|ed)|terminal|"
    r"trauma|traumatic|abuse|abused|assault(ed)?|accident|attacked|miscarriage|divorce|fired|laid off|evicted|"
    r"fell apart|falling apart|broke down|breaking down)\b"
)
MEANING_RESISTANCE_PATTERN = re.compile(
    r"\b(stop (being|getting) (so )?(deep|philosophical)|don't need a lesson|not looking for meaning|"
    r"just (want|need) to vent|spare me the|not everything has a (reason|meaning)|too deep)\b"
)

def analyze_fillers(text: str) -> FillerProfile:
    lowered = normalize(text)
    words = tokenize(text)
    filler_count = 0
    cleaned = f" {' '.join(words)} "
    # Longest first so "you know" is removed before a bare "know" could be miscounted.
    for filler in sorted(FILLER_WORDS, key=len, reverse=True):
        pattern = re.compile(r'\b' + re.escape(filler) + r'\b')
        filler_count += len(pattern.findall(lowered))
        cleaned = pattern.sub(" ", cleaned)
    density = filler_count / len(words) if words else 0.0
    return FillerProfile(
        filler_count=filler_count,
        word_count=len(words),
        density=round(density, 3),
        hesitant=filler_count >= 3 or density > HESITATION_DENSITY,
        cleaned_text=re.sub(r'\s+', ' ', cleaned).strip(),
    )

def is_greeting(text: str) -> bool:
    """A bare greeting: starts like one and says little else."""
    lowered = normalize(text)
    return bool(GREETING_PATTERN.search(lowered)) and len(tokenize(lowered)) <= 4

def is_small_talk(text: str) -> bool:
    return bool(SMALL_TALK_PATTERN.search(normalize(text)))

def is_minor_incident(text: str) -> bool:
    """Casual-register classifier: everyday mishaps that should not get existential framing."""
    lowered = normalize(text)
    if not MINOR_INCIDENT_PATTERN.search(lowered):
        return False
    return not SERIOUS_DISCLOSURE_PATTERN.search(lowered) and "sad" not in detect_emotions(lowered)

def resists_meaning(text: str) -> bool:
    return bool(MEANING_RESISTANCE_PATTERN.search(normalize(text)))
