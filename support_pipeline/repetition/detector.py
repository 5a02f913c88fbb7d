import re
from collections import Counter
from typing import List, Pattern, Sequence, Set, Tuple

from support_pipeline.content.text import jaccard, normalize, split_sentences, tokenize
from support_pipeline.domain.models import Recommendation, RepetitionReport

FORMULAIC_PATTERNS: List[Tuple[str, Pattern, float]] = [
    ("sounds_like", re.compile(r"\bit sounds like you(?:'re| are)\b"), 0.6),
    ("i_hear_you", re.compile(r"\bi hear (?:that )?you\b"), 0.5),
    ("must_be_hard", re.compile(r"\bthat must be (?:really |so )?(?:hard|difficult|tough)\b"), 0.6),
    ("thanks_for_sharing", re.compile(r"\bthank you for sharing\b"), 0.5),
    ("how_does_that_feel", re.compile(r"\bhow does that make you feel\b"), 0.8),
    ("i_understand", re.compile(r"\bi understand (?:how|that|what)\b"), 0.5),
    ("understandable", re.compile(r"\bit(?:'s| is) (?:completely |totally )?(?:understandable|natural|normal) to\b"), 0.6),
    ("talk_more", re.compile(r"\bwould you like to talk (?:more )?about\b"), 0.7),
    ("tell_me_more", re.compile(r"\b(?:can|could) you tell me (?:a little )?more\b"), 0.7),
    ("here_for_you", re.compile(r"\bi'?m (?:always )?here (?:for you|to listen)\b"), 0.6),
    ("most_important", re.compile(r"\bwhat (?:feels|seems) most important\b"), 0.5),
]

FEEDBACK_LOOP_PATTERN = re.compile(
    r"\b(you(?:'re| are) repeating yourself|you keep (?:saying|repeating|asking)|you already (?:said|asked)|"
    r"i just told you|you(?:'re| are) not listening|same thing (?:again|over)|sound(?:s)? like a (?:robot|broken record))\b"
)
FEEDBACK_LOOP_WEIGHT = 1.0

def sentence_fingerprint(sentence: str) -> Tuple[str, int, str]:
    words = tokenize(sentence)
    if not words:
        return ("", 0, "")
    return (words[0], len(words) // 5, " ".join(words[-2:]))

def structure_similarity(a: str, b: str) -> float:
    prints_a = Counter(sentence_fingerprint(s) for s in split_sentences(a))
    prints_b = Counter(sentence_fingerprint(s) for s in split_sentences(b))
    if not prints_a or not prints_b:
        return 0.0
    shared = sum((prints_a & prints_b).values())
    return shared / max(sum(prints_a.values()), sum(prints_b.values()))

def extract_questions(text: str) -> List[str]:
    return [s for s in split_sentences(text) if s.endswith("?")]

def _question_words(question: str) -> Set[str]:
    return set(tokenize(question))

def question_similarity(candidate: str, reply: str) -> float:
    best = 0.0
    for q1 in extract_questions(candidate):
        for q2 in extract_questions(reply):
            best = max(best, jaccard(_question_words(q1), _question_words(q2)))
    return best

class RepetitionDetector:
    """
    Scores how repetitive a candidate reply is against recent replies. Three
    independent signals are summed: weighted formulaic phrases, sentence
    structure fingerprints and question overlap. A user complaining about
    repetition adds to the score as well.
    """
    def __init__(self, structure_threshold: float = 0.6, question_threshold: float = 0.7):
        self.structure_threshold = structure_threshold
        self.question_threshold = question_threshold

    def score(self, candidate_text: str, recent_replies: Sequence[str], recent_user_turns: Sequence[str] = ()) -> RepetitionReport:
        lowered = normalize(candidate_text)
        recent_lowered = [normalize(r) for r in recent_replies]
        signals = {"formulaic": 0.0, "structure": 0.0, "question": 0.0, "feedback_loop": 0.0}

        for _, pattern, weight in FORMULAIC_PATTERNS:
            if pattern.search(lowered):
                repeated = any(pattern.search(r) for r in recent_lowered)
                signals["formulaic"] += weight * 2 if repeated else weight

        structure = max((structure_similarity(candidate_text, r) for r in recent_replies), default=0.0)
        if structure >= self.structure_threshold:
            signals["structure"] = structure

        question = max((question_similarity(candidate_text, r) for r in recent_replies), default=0.0)
        if question >= self.question_threshold:
            signals["question"] = question

        if any(FEEDBACK_LOOP_PATTERN.search(normalize(t)) for t in recent_user_turns):
            signals["feedback_loop"] = FEEDBACK_LOOP_WEIGHT

        total = round(sum(signals.values()), 6)
        return RepetitionReport(
            is_repetitive=total >= 1.0,
            score=total,
            recommendations=self.recommend(total),
            signals={k: round(v, 6) for k, v in signals.items()},
        )

    @staticmethod
    def recommend(score: float) -> List[Recommendation]:
        recommendations = []
        if score >= 1.0:
            recommendations.append(Recommendation.INCREASE_SPONTANEITY)
        if score >= 1.5:
            recommendations.append(Recommendation.CHANGE_APPROACH)
        if score >= 2.0:
            recommendations.append(Recommendation.FORCE_PERSPECTIVE_SHIFT)
        return recommendations
