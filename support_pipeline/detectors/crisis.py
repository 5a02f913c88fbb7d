import re
from difflib import SequenceMatcher
from typing import Dict, List, Optional, Pattern, Tuple

from support_pipeline.content.loader import KnowledgeCorpus, TemplateBank, render_template
from support_pipeline.content.text import tokenize
from support_pipeline.domain.models import (
    CRISIS_CONCERNS,
    CRISIS_SEVERITY_ORDER,
    ConcernTag,
    ConversationHistory,
    CrisisAssessment,
    CrisisCategory,
    CrisisSeverity,
    Speaker,
)

# Returned when the detector itself fails. Must not depend on any loaded content.
SAFETY_FALLBACK_REPLY = (
    "I want to make sure you're safe. If you are thinking about harming yourself or are in danger, "
    "please call or text 988 to reach the 988 Suicide & Crisis Lifeline, or text HOME to 741741. "
    "If you are in immediate danger, call 911."
)

HIGH_SEVERITY_PHRASES: Dict[CrisisCategory, List[str]] = {
    CrisisCategory.SUICIDE: [
        "kill myself", "killing myself", "want to die", "wanna die", "end my life", "end it all",
        "take my own life", "commit suicide", "suicide", "suicidal", "better off dead",
        "don't want to live", "don't want to be alive", "no reason to live", "wish i was dead",
        "wish i were dead", "plan to kill myself", "going to kill myself", "ending my life", "end this life",
        "ending this life", "ending it all", "hang myself", "hanging myself", "shoot myself", "shooting myself",
        "jump off a bridge", "jump off the bridge", "jump off a building", "jump off the roof",
        "thoughts of suicide", "thoughts of killing myself", "thoughts of ending it", "thoughts of ending my life",
    ],
    CrisisCategory.SELF_HARM: [
        "cut myself", "cutting myself", "hurt myself", "hurting myself", "harm myself", "harming myself",
        "burn myself", "burning myself", "self harm", "self harming",
    ],
    CrisisCategory.ABUSE: [
        "hits me", "beats me", "being abused", "abusing me", "raped me", "i was raped",
        "sexually assaulted", "molested", "threatens to kill me", "threatened to kill me", "afraid to go home",
    ],
    CrisisCategory.MEDICAL: [
        "can't breathe", "cannot breathe", "heart attack", "having a seizure", "having a stroke",
        "overdosed", "took too many pills", "bleeding heavily", "won't stop bleeding", "chest pain",
    ],
}

HEURISTIC_PATTERNS: Dict[CrisisCategory, List[Pattern]] = {
    CrisisCategory.SUICIDE: [
        re.compile(r"\b(want|wish|going|ready|need) to (die|disappear forever)\b"),
        re.compile(r"\bwish i (wasn't|weren't) (here|alive|born)\b"),
        re.compile(r"\b(no|not any) (point|reason) (in|to) (living|live|going on|being alive)\b"),
        re.compile(r"\b(can't|cannot) go on\b"),
        re.compile(r"\bgive up on (life|everything)\b"),
        re.compile(r"\b(feel|feeling|am|i'm) (so )?(hopeless|worthless)\b"),
        re.compile(r"\b(don't|do not) want to (wake up|be here|exist)\b"),
        re.compile(r"\bsleep forever\b"),
        re.compile(r"\b(end|ending|take|taking) (my|this) (own )?life\b"),
        re.compile(r"\b(just|please|someone|somebody) (just )?kill me\b"),
        re.compile(r"\bjump (off|from) (a|the|my) (bridge|building|roof|cliff|balcony|ledge)\b"),
    ],
    CrisisCategory.SELF_HARM: [
        re.compile(r"\b(cut|cutting|burn|burning|hurt|hurting|punish|punishing|scratch|scratching) (my )?(arms?|wrists?|legs?|skin|myself)\b"),
        re.compile(r"\burges? to (cut|hurt|harm|burn)\b"),
    ],
    CrisisCategory.ABUSE: [
        re.compile(
            r"\b(he|she|they|my (husband|wife|partner|boyfriend|girlfriend|dad|father|mom|mother|stepdad|stepmom|uncle|boss)) "
            r"(hit|hurt|hurts|beat|chokes|choked|slapped|slaps|kicked|kicks|threatens|threatened|touched|touches) me\b"
        ),
        re.compile(r"\b(scared|afraid|terrified) of (him|her|them|my (husband|wife|partner|boyfriend|girlfriend|dad|father|mom|mother))\b"),
        re.compile(r"\b(abusive|abused|abusing)\b"),
    ],
    CrisisCategory.MEDICAL: [
        re.compile(r"\bchest (pain|tightness|hurts)\b"),
        re.compile(r"\b(hard|trouble|difficulty) breathing\b"),
        re.compile(r"\b(passed out|fainted|fainting)\b"),
        re.compile(r"\b(overdose|overdosing)\b"),
        re.compile(r"\ballergic reaction\b"),
        re.compile(r"\b(lot of|so much) blood\b"),
    ],
}

IDIOMS = ["dying to", "killing it", "to die for", "bored to death", "dead tired", "scared to death", "die laughing"]
NEGATORS = {"not", "never", "no", "don't", "didn't", "wouldn't", "won't", "isn't", "wasn't", "nor"}
FOLLOW_UP_MEANS = re.compile(r"\b(plan|plans|pills|gun|rope|bridge|tonight|razor|blade|jump|note|goodbye)\b")
NEGATIVE_ANSWER = re.compile(r"^(no|nope|nah|not really|i'm not|i am not|not safe)\b")

CONTRACTIONS = {
    "dont": "don't", "cant": "can't", "wont": "won't", "im": "i'm", "didnt": "didn't",
    "isnt": "isn't", "wasnt": "wasn't", "wouldnt": "wouldn't", "ive": "i've",
}

def normalize_for_matching(text: str) -> str:
    return " ".join(CONTRACTIONS.get(token, token) for token in tokenize(text))

class CrisisDetector:
    """
    Layered crisis classifier. Exact or near-exact matches against a curated
    phrase set give high severity; a negation-aware heuristic pass gives moderate.
    Overlaps resolve to the most severe category.
    """
    def __init__(self, typo_ratio: float = 0.85, min_typo_token_length: int = 5):
        self.typo_ratio = typo_ratio
        self.min_typo_token_length = min_typo_token_length
        self._phrases: Dict[CrisisCategory, List[Tuple[str, List[str]]]] = {
            category: [(phrase, normalize_for_matching(phrase).split()) for phrase in phrases]
            for category, phrases in HIGH_SEVERITY_PHRASES.items()
        }

    def assess(self, utterance: str, history: Optional[ConversationHistory] = None) -> CrisisAssessment:
        text = normalize_for_matching(utterance)
        tokens = text.split()

        exact = self._match_phrases(text, tokens)
        if exact:
            category, phrase = self._most_severe(exact)
            return CrisisAssessment(is_crisis=True, category=category, severity=CrisisSeverity.HIGH, matched_phrase=phrase)

        follow_up = self._follow_up_escalation(text, history)
        if follow_up:
            return follow_up

        heuristic = self._match_heuristics(text)
        if heuristic:
            category, phrase = self._most_severe(heuristic)
            return CrisisAssessment(is_crisis=True, category=category, severity=CrisisSeverity.MODERATE, matched_phrase=phrase)

        return CrisisAssessment()

    def _match_phrases(self, text: str, tokens: List[str]) -> Dict[CrisisCategory, str]:
        matches: Dict[CrisisCategory, str] = {}
        for category, phrases in self._phrases.items():
            for phrase, phrase_tokens in phrases:
                if re.search(r'\b' + re.escape(" ".join(phrase_tokens)) + r'\b', text) or self._near_match(tokens, phrase_tokens):
                    matches[category] = phrase
                    break
        return matches

    def _near_match(self, tokens: List[str], phrase_tokens: List[str]) -> bool:
        """Tolerates a single typo in one of the longer words of a phrase."""
        n = len(phrase_tokens)
        for start in range(len(tokens) - n + 1):
            window = tokens[start:start + n]
            differing = [(w, p) for w, p in zip(window, phrase_tokens) if w != p]
            if len(differing) != 1:
                continue
            word, expected = differing[0]
            if len(expected) >= self.min_typo_token_length and SequenceMatcher(None, word, expected).ratio() >= self.typo_ratio:
                return True
        return False

    def _match_heuristics(self, text: str) -> Dict[CrisisCategory, str]:
        for idiom in IDIOMS:
            text = text.replace(idiom, " ")
        matches: Dict[CrisisCategory, str] = {}
        for category, patterns in HEURISTIC_PATTERNS.items():
            for pattern in patterns:
                for match in pattern.finditer(text):
                    if not self._is_negated(text, match.start()):
                        matches[category] = match.group(0)
                        break
                if category in matches:
                    break
        return matches

    @staticmethod
    def _is_negated(text: str, position: int) -> bool:
        preceding = text[:position].split()[-3:]
        return any(token in NEGATORS for token in preceding)

    def _follow_up_escalation(self, text: str, history: Optional[ConversationHistory]) -> Optional[CrisisAssessment]:
        """A plan, a means, or 'no' to a safety check right after a crisis turn stays a crisis."""
        if not history or not history.turns:
            return None
        recent = history.turns[-4:]
        tagged = [t for t in recent if t.concern_tag in CRISIS_CONCERNS]
        if not tagged:
            return None
        last_tag = tagged[-1].concern_tag
        category = CrisisCategory(last_tag.value) if last_tag != ConcernTag.CRISIS else CrisisCategory.SUICIDE

        means = FOLLOW_UP_MEANS.search(text)
        if means:
            return CrisisAssessment(is_crisis=True, category=category, severity=CrisisSeverity.HIGH, matched_phrase=means.group(0))
        last_agent = next((t for t in reversed(recent) if t.speaker == Speaker.AGENT), None)
        if last_agent is not None and last_agent.concern_tag in CRISIS_CONCERNS and NEGATIVE_ANSWER.search(text):
            return CrisisAssessment(is_crisis=True, category=category, severity=CrisisSeverity.HIGH, matched_phrase=text)
        return None

    @staticmethod
    def _most_severe(matches: Dict[CrisisCategory, str]) -> Tuple[CrisisCategory, str]:
        for category in CRISIS_SEVERITY_ORDER:
            if category in matches:
                return category, matches[category]
        raise ValueError("No crisis category matched.")

class CrisisResponder:
    """Builds the terminal crisis reply. Fully deterministic for a given assessment."""
    def __init__(self, templates: TemplateBank, corpus: KnowledgeCorpus):
        self.templates = templates
        self.corpus = corpus

    def build_reply(self, assessment: CrisisAssessment) -> str:
        if not assessment.is_crisis:
            raise ValueError("Cannot build a crisis reply for a non-crisis assessment.")
        template_set = self.templates.crisis[assessment.category.value]
        template = template_set.high if assessment.severity == CrisisSeverity.HIGH else template_set.moderate
        resources = self.corpus.resources_for(assessment.category.value)
        if not resources:
            return SAFETY_FALLBACK_REPLY
        return render_template(template, {"resources": " ".join(resources)})
