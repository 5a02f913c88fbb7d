import re
from typing import Dict, List, Pattern, Tuple

from support_pipeline.content.text import content_words, normalize

# Category topics and the surface words that signal them.
TOPIC_LEXICON: Dict[str, Pattern] = {
    "job": re.compile(r"\b(job|jobs|work|working|career|boss|coworkers?|fired|laid off|layoff|unemployed|hired|interview|promotion)\b"),
    "money": re.compile(r"\b(money|bills?|debt|rent|afford|broke|finances?|financial|paycheck|loan)\b"),
    "family": re.compile(r"\b(family|mom|mother|dad|father|parents?|brother|sister|siblings?|kids?|children|son|daughter)\b"),
    "relationship": re.compile(r"\b(relationship|partner|boyfriend|girlfriend|husband|wife|marriage|divorce|breakup|broke up|dating|ex)\b"),
    "health": re.compile(r"\b(health|sick|illness|doctor|diagnos(is|ed)|pain|hospital|medication|surgery)\b"),
    "sleep": re.compile(r"\b(sleep|sleeping|insomnia|tired|exhausted|nightmares?)\b"),
    "school": re.compile(r"\b(school|college|university|exams?|class|classes|grades?|homework|teacher)\b"),
    "housing": re.compile(r"\b(house|home|apartment|landlord|evict(ed|ion)?|moving|roommates?|homeless)\b"),
    "grief": re.compile(r"\b(died|death|passed away|funeral|grief|grieving|loss of|lost my (mom|dad|mother|father|friend|wife|husband|dog|cat))\b"),
    "friends": re.compile(r"\b(friends?|friendship|social life)\b"),
    "loneliness": re.compile(r"\b(lonely|alone|isolated|no one to talk)\b"),
}

TOPIC_PHRASES: Dict[str, str] = {
    "job": "your job",
    "money": "money worries",
    "family": "your family",
    "relationship": "your relationship",
    "health": "your health",
    "sleep": "trouble sleeping",
    "school": "school",
    "housing": "things at home",
    "grief": "the loss you have been grieving",
    "friends": "your friends",
    "loneliness": "feeling alone",
}

CATEGORY_WEIGHT = 1.0
KEYWORD_WEIGHT = 0.4

def extract_topics(text: str) -> List[Tuple[str, float]]:
    """Category topics first, then salient content words, each with a base weight."""
    lowered = normalize(text)
    found: List[Tuple[str, float]] = []
    matched_words = set()
    for topic, pattern in TOPIC_LEXICON.items():
        hits = pattern.findall(lowered)
        if hits:
            found.append((topic, CATEGORY_WEIGHT))
            for match in pattern.finditer(lowered):
                matched_words.update(match.group(0).split())
    seen = {t for t, _ in found}
    for word in content_words(text):
        if word in seen or word in matched_words or len(word) < 4:
            continue
        seen.add(word)
        found.append((word, KEYWORD_WEIGHT))
    return found

def topic_phrase(topic: str) -> str:
    return TOPIC_PHRASES.get(topic, topic)

def mentions_topic(text: str, topic: str) -> bool:
    lowered = normalize(text)
    pattern = TOPIC_LEXICON.get(topic)
    if pattern is not None:
        return bool(pattern.search(lowered))
    return bool(re.search(r'\b' + re.escape(topic) + r'\b', lowered))

def describe_topic(text: str, default: str = "what you're going through") -> str:
    """A readable phrase for the main category topic of the text."""
    for topic, _ in extract_topics(text):
        if topic in TOPIC_LEXICON:
            return topic_phrase(topic)
    return default
