import re
from typing import List, Set

SENTENCE_PATTERN = re.compile(r'[^.!?]+[.!?]*')
WORD_PATTERN = re.compile(r"[a-z0-9']+")

STOPWORDS: Set[str] = {
    "a", "about", "after", "all", "also", "am", "an", "and", "any", "are", "as", "at", "be", "because",
    "been", "before", "being", "but", "by", "can", "could", "did", "do", "does", "doing", "don't", "for",
    "from", "get", "got", "had", "has", "have", "having", "he", "her", "here", "him", "his", "how", "i",
    "i'm", "i've", "if", "in", "into", "is", "it", "it's", "its", "just", "know", "like", "me", "more",
    "my", "myself", "no", "not", "now", "of", "on", "or", "our", "out", "really", "she", "so", "some",
    "than", "that", "that's", "the", "their", "them", "then", "there", "these", "they", "thing", "things",
    "this", "to", "too", "up", "very", "was", "we", "were", "what", "when", "where", "which", "who", "why",
    "will", "with", "would", "you", "you're", "your", "yours", "feel", "feeling", "think", "want", "been",
}

def normalize(text: str) -> str:
    text = text.lower().replace("’", "'").replace("‘", "'")
    return re.sub(r'\s+', ' ', text).strip()

def tokenize(text: str) -> List[str]:
    return WORD_PATTERN.findall(normalize(text))

def content_words(text: str) -> List[str]:
    return [w for w in tokenize(text) if w not in STOPWORDS and len(w) > 2]

def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in SENTENCE_PATTERN.findall(text or "") if s.strip()]

def join_sentences(sentences: List[str]) -> str:
    return " ".join(s.strip() for s in sentences if s.strip())

def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)
