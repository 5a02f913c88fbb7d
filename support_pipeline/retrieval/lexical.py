from typing import List, Optional, Tuple

from support_pipeline.content.loader import KnowledgePassage
from support_pipeline.content.text import content_words, join_sentences, split_sentences

def _stem(word: str) -> str:
    for suffix in ("ing", "ed", "es", "s"):
        if word.endswith(suffix) and len(word) - len(suffix) >= 3:
            return word[: -len(suffix)]
    return word

def query_terms(text: str) -> List[str]:
    seen: List[str] = []
    for word in content_words(text):
        stem = _stem(word)
        if stem not in seen:
            seen.append(stem)
    return seen

def overlap_score(text: str, terms: List[str]) -> float:
    """Fraction of query terms present in the text."""
    if not terms:
        return 0.0
    words = {_stem(w) for w in content_words(text)}
    return sum(1 for t in terms if t in words) / len(terms)

def best_passage(passages: List[KnowledgePassage], query: str) -> Optional[Tuple[KnowledgePassage, float]]:
    terms = query_terms(query)
    if not terms:
        return None
    scored = [
        (passage, overlap_score(passage.content + " " + " ".join(passage.tags), terms))
        for passage in passages
    ]
    scored = [item for item in scored if item[1] > 0]
    if not scored:
        return None
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[0]

def rerank_sentences(candidate: str, query: str) -> Tuple[str, bool]:
    """
    Moves the sentences that share terms with the query to the front, keeping
    the original order otherwise. Returns the text and whether any sentence
    overlapped at all.
    """
    sentences = split_sentences(candidate)
    terms = query_terms(query)
    if not sentences or not terms:
        return candidate, False
    scored = [(overlap_score(s, terms), i, s) for i, s in enumerate(sentences)]
    any_overlap = any(score > 0 for score, _, _ in scored)
    # Questions stay at the end so the reply still closes on an invitation.
    statements = [item for item in scored if not item[2].endswith("?")]
    questions = [item for item in scored if item[2].endswith("?")]
    statements.sort(key=lambda item: (-item[0], item[1]))
    ordered = [s for _, _, s in statements] + [s for _, _, s in questions]
    return join_sentences(ordered), any_overlap
