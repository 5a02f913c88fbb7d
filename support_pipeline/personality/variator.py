import random
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from support_pipeline.content.loader import TemplateBank, render_template
from support_pipeline.content.text import join_sentences, normalize, split_sentences, tokenize
from support_pipeline.detectors.casual import is_minor_incident, is_small_talk, resists_meaning
from support_pipeline.domain.models import PersonalityMode, RegisterProfile, VariationResult
from support_pipeline.memory.topics import describe_topic
from support_pipeline.personality.approach import EXISTENTIAL_PATTERN
from support_pipeline.repetition.detector import structure_similarity

EMOTIONAL_PATTERN = re.compile(r"\b(sad|angry|upset|hurt|feel|feeling|emotion|emotional|pain|cry|crying|scared|lonely|anxious|stressed|died|death|funeral|grief|grieving|loss)\b")

MODE_WEIGHTS: List[Tuple[PersonalityMode, int]] = [
    (PersonalityMode.CURIOUS, 3),
    (PersonalityMode.REFLECTIVE, 3),
    (PersonalityMode.WARM, 3),
    (PersonalityMode.EMPATHETIC, 2),
    (PersonalityMode.GENTLE, 2),
    (PersonalityMode.DIRECT, 2),
    (PersonalityMode.ANALYTICAL, 2),
    (PersonalityMode.EXISTENTIAL, 1),
]
PLAIN_REGISTER_BOOST = {PersonalityMode.DIRECT: 2, PersonalityMode.WARM: 2}

# Drafts shorter than this get the meaning layer appended rather than blended in.
SHORT_DRAFT_CHARS = 100
MEANING_INSERT_RATIO = 0.7

def meaning_phrases(templates: TemplateBank) -> List[str]:
    return [normalize(insight) for insight in templates.meaning.insights]

def contains_meaning_phrase(text: str, templates: TemplateBank) -> bool:
    lowered = normalize(text)
    return any(phrase in lowered for phrase in meaning_phrases(templates))

def strip_meaning_phrases(text: str, templates: TemplateBank) -> str:
    phrases = meaning_phrases(templates)
    sentences = split_sentences(text)
    kept = [s for s in sentences if not any(p in normalize(s) for p in phrases)]
    return join_sentences(kept) if kept else text

class PersonalityVariator:
    """
    Varies tone per turn. Picks a personality mode from the utterance, either
    decorates the draft with a mode-specific opener or, under high spontaneity
    pressure, regenerates the reply from the mode's templates, and blends in a
    meaning/purpose perspective when the turn is eligible for it.
    """
    def __init__(self, templates: TemplateBank, regeneration_threshold: int = 80, meaning_min_turn: int = 3, similarity_ceiling: float = 0.6):
        self.templates = templates
        self.regeneration_threshold = regeneration_threshold
        self.meaning_min_turn = meaning_min_turn
        self.similarity_ceiling = similarity_ceiling

    def meaning_eligible(self, utterance: str, turn_count: int) -> bool:
        return turn_count > self.meaning_min_turn and not is_minor_incident(utterance) and not resists_meaning(utterance)

    def select_mode(
        self,
        utterance: str,
        rng: random.Random,
        previous_mode: Optional[PersonalityMode] = None,
        exclude: Iterable[PersonalityMode] = (),
        register: Optional[RegisterProfile] = None,
    ) -> PersonalityMode:
        excluded = set(exclude)
        lowered = normalize(utterance)
        if is_minor_incident(lowered) or is_small_talk(lowered):
            preferred = PersonalityMode.WARM_SOCIAL
        elif EXISTENTIAL_PATTERN.search(lowered):
            preferred = PersonalityMode.MEANING_FOCUSED
        elif EMOTIONAL_PATTERN.search(lowered):
            preferred = PersonalityMode.EMPATHETIC
        else:
            preferred = None
        if preferred is not None and preferred not in excluded:
            return preferred

        weights = dict(MODE_WEIGHTS)
        if register is not None and register.is_plain:
            for mode, boost in PLAIN_REGISTER_BOOST.items():
                weights[mode] += boost
        # Weak bias: avoid repeating the previous turn's mode when there is a choice.
        candidates = [(m, w) for m, w in weights.items() if m not in excluded and m != previous_mode]
        if not candidates:
            candidates = [(m, w) for m, w in weights.items() if m not in excluded] or list(weights.items())
        modes, mode_weights = zip(*candidates)
        return rng.choices(modes, weights=mode_weights, k=1)[0]

    def vary(self, candidate_text: str, utterance: str, turn_count: int, spontaneity_level: int, creativity_level: int, rng: Optional[random.Random] = None) -> str:
        return self.compose(candidate_text, utterance, turn_count, spontaneity_level, creativity_level, rng=rng).text

    def compose(
        self,
        candidate_text: str,
        utterance: str,
        turn_count: int,
        spontaneity_level: int,
        creativity_level: int,
        rng: Optional[random.Random] = None,
        previous_mode: Optional[PersonalityMode] = None,
        exclude_modes: Iterable[PersonalityMode] = (),
        recent_replies: Sequence[str] = (),
        register: Optional[RegisterProfile] = None,
        allow_meaning: bool = True,
    ) -> VariationResult:
        rng = rng or random.Random()
        mode = self.select_mode(utterance, rng, previous_mode, exclude_modes, register)

        regenerated = spontaneity_level > self.regeneration_threshold
        if regenerated:
            text = self._regenerate(mode, utterance, rng, [candidate_text, *recent_replies])
        else:
            text = self._decorate(candidate_text, mode, rng, creativity_level)

        meaning_applied = False
        if allow_meaning and self.meaning_eligible(utterance, turn_count) and mode != PersonalityMode.WARM_SOCIAL:
            if not contains_meaning_phrase(text, self.templates):
                text = self._blend_meaning(text, rng)
                meaning_applied = True

        return VariationResult(text=text, mode=mode, regenerated=regenerated, meaning_applied=meaning_applied)

    def _regenerate(self, mode: PersonalityMode, utterance: str, rng: random.Random, avoid: Sequence[str]) -> str:
        """Builds a fresh reply whose structure differs from the draft and recent replies."""
        pool = list(self.templates.personality.regenerate[mode.value])
        rng.shuffle(pool)
        topic = describe_topic(utterance)
        rendered = [render_template(t, {"topic": topic}) for t in pool]
        avoid_words = [set(tokenize(a)) for a in avoid if a]
        for option in rendered:
            if all(structure_similarity(option, a) < self.similarity_ceiling for a in avoid if a) and \
                    all(set(tokenize(option)) != words for words in avoid_words):
                return option
        return rendered[0]

    def _decorate(self, draft: str, mode: PersonalityMode, rng: random.Random, creativity_level: int) -> str:
        starters = self.templates.personality.starters.get(mode.value, [])
        if not starters or rng.random() * 100 >= creativity_level:
            return draft
        starter = rng.choice(starters)
        if normalize(draft).startswith(normalize(starter)):
            return draft
        return f"{starter} {draft}"

    def _blend_meaning(self, text: str, rng: random.Random) -> str:
        transition = rng.choice(self.templates.meaning.transitions)
        insight = rng.choice(self.templates.meaning.insights)
        sentence = f"{transition} {insight}"
        if len(text) < SHORT_DRAFT_CHARS:
            return join_sentences([text, sentence])
        sentences = split_sentences(text)
        position = min(max(1, round(len(sentences) * MEANING_INSERT_RATIO)), len(sentences))
        return join_sentences(sentences[:position] + [sentence] + sentences[position:])
