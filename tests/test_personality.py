import random

import pytest

from support_pipeline.content.loader import render_template
from support_pipeline.domain.models import (
    PersonalityMode,
    Recommendation,
    RegisterProfile,
    RepetitionReport,
    SignalReport,
)
from support_pipeline.personality.approach import ApproachSelector
from support_pipeline.personality.variator import PersonalityVariator, contains_meaning_phrase, strip_meaning_phrases
from support_pipeline.repetition.detector import structure_similarity

DRAFT = "Thank you for sharing that with me. What feels most important about your job for you right now?"


class TestApproachSelector:
    def setup_method(self):
        self.selector = ApproachSelector(regeneration_threshold=80)

    def test_early_turns_are_capped(self):
        approach = self.selector.select("so how are you doing on this fine day", SignalReport(is_small_talk=True), turn_count=1)
        assert approach.kind == "smalltalk"
        assert approach.spontaneity_level == 50

    def test_terse_users_get_livelier_replies(self):
        approach = self.selector.select("whatever man", SignalReport(), turn_count=6)
        assert approach.spontaneity_level == 70

    def test_emotional_turns_are_careful(self):
        approach = self.selector.select("I have been feeling really sad about my dad", SignalReport(emotions=["sad"]), turn_count=6)
        assert approach.kind == "emotional"
        assert approach.spontaneity_level == 40

    def test_repetition_pushes_past_regeneration_threshold(self):
        approach = self.selector.select("I have been feeling really sad about my dad", SignalReport(emotions=["sad"]), turn_count=6)
        report = RepetitionReport(
            is_repetitive=True,
            score=1.6,
            recommendations=[Recommendation.INCREASE_SPONTANEITY, Recommendation.CHANGE_APPROACH],
        )
        adjusted = self.selector.adjust_for_repetition(approach, report)
        assert adjusted.spontaneity_level > 80
        assert adjusted.creativity_level == approach.creativity_level + 10

    def test_no_adjustment_without_repetition(self):
        approach = self.selector.select("tell me something", SignalReport(), turn_count=6)
        assert self.selector.adjust_for_repetition(approach, RepetitionReport()) == approach


class TestPersonalityVariator:
    """Mode selection, regeneration and the meaning layer."""

    @pytest.fixture(autouse=True)
    def _variator(self, templates):
        self.templates = templates
        self.variator = PersonalityVariator(templates, regeneration_threshold=80, meaning_min_turn=3)

    def test_casual_incident_gets_social_mode(self):
        mode = self.variator.select_mode("I spilled coffee all over my desk in class", random.Random(1))
        assert mode == PersonalityMode.WARM_SOCIAL

    def test_grief_told_with_mishap_words_gets_empathetic_mode(self):
        mode = self.variator.select_mode("My mom died and I fell apart at the funeral", random.Random(1))
        assert mode == PersonalityMode.EMPATHETIC

    def test_existential_language_gets_meaning_mode(self):
        mode = self.variator.select_mode("What is the point of life anyway", random.Random(1))
        assert mode == PersonalityMode.MEANING_FOCUSED

    def test_emotional_language_gets_empathetic_mode(self):
        assert self.variator.select_mode("I'm so upset with myself", random.Random(1)) == PersonalityMode.EMPATHETIC

    def test_previous_mode_is_avoided(self):
        for seed in range(25):
            mode = self.variator.select_mode("tell me about it", random.Random(seed), previous_mode=PersonalityMode.CURIOUS)
            assert mode != PersonalityMode.CURIOUS

    def test_excluded_modes_are_never_chosen(self):
        excluded = [m for m in PersonalityMode if m != PersonalityMode.DIRECT]
        assert self.variator.select_mode("tell me about it", random.Random(3), exclude=excluded) == PersonalityMode.DIRECT

    def test_plain_register_still_picks_a_weighted_mode(self):
        mode = self.variator.select_mode("tell me about it", random.Random(3), register=RegisterProfile(language_style="casual"))
        assert mode not in (PersonalityMode.WARM_SOCIAL, PersonalityMode.MEANING_FOCUSED)

    def test_high_spontaneity_regenerates(self):
        result = self.variator.compose(DRAFT, "I lost my job", 2, 90, 60, rng=random.Random(5), recent_replies=[DRAFT])
        assert result.regenerated
        assert result.text != DRAFT
        assert structure_similarity(result.text, DRAFT) < 0.6
        pool = [render_template(t, {"topic": "your job"}) for t in self.templates.personality.regenerate[result.mode.value]]
        assert result.text in pool

    def test_low_spontaneity_keeps_the_draft(self):
        result = self.variator.compose(DRAFT, "I lost my job", 2, 40, 0, rng=random.Random(5))
        assert not result.regenerated
        assert result.text == DRAFT

    def test_no_meaning_for_minor_incidents(self):
        result = self.variator.compose(DRAFT, "I spilled a drink at the party", 6, 40, 0, rng=random.Random(2))
        assert result.mode == PersonalityMode.WARM_SOCIAL
        assert not result.meaning_applied
        assert not contains_meaning_phrase(result.text, self.templates)

    def test_no_meaning_in_early_turns(self):
        result = self.variator.compose(DRAFT, "What is the point of life anyway", 3, 40, 0, rng=random.Random(2))
        assert not result.meaning_applied

    def test_meaning_is_blended_when_eligible(self):
        result = self.variator.compose(DRAFT, "What is the point of life anyway", 4, 40, 0, rng=random.Random(2))
        assert result.meaning_applied
        assert contains_meaning_phrase(result.text, self.templates)

    def test_meaning_can_be_disallowed(self):
        result = self.variator.compose(DRAFT, "What is the point of life anyway", 6, 40, 0, rng=random.Random(2), allow_meaning=False)
        assert not result.meaning_applied

    def test_vary_returns_text(self):
        text = self.variator.vary(DRAFT, "I lost my job", 2, 40, 0, rng=random.Random(5))
        assert text == DRAFT

    def test_strip_meaning_phrases(self):
        insight = self.templates.meaning.insights[0]
        text = f"That sounds hard. Looking at it from another angle, {insight} What do you think?"
        stripped = strip_meaning_phrases(text, self.templates)
        assert not contains_meaning_phrase(stripped, self.templates)
        assert stripped == "That sounds hard. What do you think?"
