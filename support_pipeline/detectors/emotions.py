from typing import Dict, List

from support_pipeline.content.text import tokenize

EMOTION_FAMILIES: Dict[str, List[str]] = {
    "sad": ["sad", "depressed", "down", "unhappy", "miserable", "heartbroken", "low", "crying", "grief", "grieving", "hopeless", "empty"],
    "anxious": ["anxious", "anxiety", "worried", "worry", "nervous", "scared", "afraid", "panic", "stressed", "stress", "overwhelmed", "tense"],
    "angry": ["angry", "mad", "furious", "annoyed", "frustrated", "irritated", "pissed", "resentful"],
    "happy": ["happy", "glad", "excited", "relieved", "proud", "grateful", "thrilled", "joy", "great"],
    "confused": ["confused", "feel lost", "feeling lost", "so lost", "i'm lost", "unsure", "uncertain", "torn", "stuck"],
    "lonely": ["lonely", "alone", "isolated", "abandoned", "left out"],
}

OPPOSITES: Dict[str, str] = {
    "sad": "happy",
    "happy": "sad",
    "lonely": "happy",
}

def detect_emotions(text: str) -> List[str]:
    """Returns the emotion families present in the text, in lexicon order."""
    tokens = set(tokenize(text))
    joined = f" {' '.join(tokenize(text))} "
    found = []
    for family, words in EMOTION_FAMILIES.items():
        if any((w in tokens) if " " not in w else (f" {w} " in joined) for w in words):
            found.append(family)
    return found

def contradicts(claimed: str, recorded: str) -> bool:
    return OPPOSITES.get(recorded) == claimed or OPPOSITES.get(claimed) == recorded
