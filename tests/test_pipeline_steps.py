import random

import pytest

from conftest import make_history
from support_pipeline.domain.models import ConcernTag, SignalReport
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.personality.variator import contains_meaning_phrase
from support_pipeline.repetition.detector import structure_similarity
from support_pipeline.services.pipeline.rule_table import RuleTable
from support_pipeline.services.pipeline.steps import ALL_STEPS

DRAFT = "Thank you for sharing that with me. What feels most important about your job for you right now?"
MEANING_SENTENCE = "One thing that stands out to me is that even in a hard season we still get to choose the attitude we bring to it."

JOB_HISTORY = (
    ("I lost my job last month", "I'm sorry, that is a big change."),
    ("Losing my job has been really hard", "Change like that can shake everything up."),
    ("My boss never gave me a chance", "That sounds unfair."),
    ("I keep thinking about work", "What comes to mind most often?"),
)


@pytest.fixture
def rule_table(test_settings) -> RuleTable:
    return RuleTable.from_yaml(test_settings.resolve_pipeline_path())


def make_context(resources, utterance, history, turn_count):
    return TurnContext(
        utterance,
        history,
        turn_count,
        rng=random.Random(3),
        memory_store=resources.new_memory_store(history),
    )


class TestSafetySteps:
    @pytest.mark.asyncio
    async def test_crisis_step_ends_the_turn(self, resources):
        context = make_context(resources, "I want to end my life", make_history(), 1)
        await ALL_STEPS["crisis_detection"].execute(context, resources)

        assert context.terminal
        assert context.concern_tag == ConcernTag.SUICIDE
        assert "988" in context.draft

    @pytest.mark.asyncio
    async def test_ordinary_message_leaves_the_turn_open(self, resources):
        context = make_context(resources, "work was long today", make_history(), 1)
        await ALL_STEPS["crisis_detection"].execute(context, resources)

        assert not context.terminal
        assert context.draft is None
        assert not context.get("crisis_assessment").is_crisis

    @pytest.mark.asyncio
    async def test_signal_step_tags_specialized_concerns(self, resources):
        context = make_context(resources, "I can't stop gambling away my paycheck", make_history(), 1)
        await ALL_STEPS["signal_detection"].execute(context, resources)

        assert context.get("signals").specialized_concern is not None
        assert context.concern_tag == ConcernTag.GAMBLING
        assert not context.terminal


class TestGroundingSteps:
    @pytest.mark.asyncio
    async def test_greeting_draft_sets_the_fast_path(self, resources, templates):
        context = make_context(resources, "hello", make_history(), 1)
        for name in ("signal_detection", "memory_recall", "draft_composition"):
            await ALL_STEPS[name].execute(context, resources)

        assert context.get("intent") == "greeting"
        assert context.get("fast_path") is True
        assert context.draft in templates.greetings
        assert not ALL_STEPS["retrieval_augmentation"].should_run(context)

    @pytest.mark.asyncio
    async def test_retrieval_records_the_path_taken(self, resources):
        context = make_context(resources, "What helps with insomnia?", make_history(), 1)
        context.set_draft(DRAFT)
        await ALL_STEPS["retrieval_augmentation"].execute(context, resources)

        assert context.get("retrieval_path") == "rerank"
        assert context.get("retrieval_result").confidence == pytest.approx(0.25)


class TestRepetitionAndVariation:
    @pytest.mark.asyncio
    async def test_repeated_draft_is_regenerated(self, resources):
        history = make_history(("I lost my job", DRAFT))
        context = make_context(resources, "I still can't find a new job", history, 2)
        context.set("signals", SignalReport())
        context.set("meaning_eligible", False)
        context.set_draft(DRAFT)

        await ALL_STEPS["repetition_check"].execute(context, resources)
        assert context.get("repetition_report").is_repetitive

        await ALL_STEPS["personality_variation"].execute(context, resources)
        assert context.get("approach").spontaneity_level > resources.get_settings().spontaneity_regeneration_threshold
        assert context.draft != DRAFT
        assert structure_similarity(context.draft, DRAFT) < 0.6
        assert context.get("personality_mode") is not None


class TestEnforcementSteps:
    @pytest.mark.asyncio
    async def test_memory_clause_is_prepended_when_nothing_is_referenced(self, resources, templates, rule_table):
        history = make_history(*JOB_HISTORY)
        context = make_context(resources, "Things have been rough lately", history, 5)
        store = context.get("memory_store")
        record = store.read()
        context.set("memory_record", record)
        context.set("active_rule", rule_table.get("memory_retention"))
        context.set_draft("How has the week been?")

        await ALL_STEPS["memory_reference"].execute(context, resources)

        clause = store.reference_clause(record, 5, templates)
        assert "job" in clause
        assert context.draft == f"{clause} How has the week been?"
        violation = context.get("memory_violation")
        assert violation.detected
        assert violation.rule_name == "memory_retention"

    @pytest.mark.asyncio
    async def test_memory_clause_not_required_early(self, resources, rule_table):
        history = make_history(("I lost my job last month", "I'm sorry."))
        context = make_context(resources, "Things have been rough lately", history, 2)
        context.set("memory_record", context.get("memory_store").read())
        context.set("active_rule", rule_table.get("memory_retention"))
        context.set_draft("How has the week been?")

        await ALL_STEPS["memory_reference"].execute(context, resources)

        assert context.draft == "How has the week been?"
        assert not context.get("memory_violation").detected

    @pytest.mark.asyncio
    async def test_meaning_framing_removed_from_ineligible_turn(self, resources, templates, rule_table):
        context = make_context(resources, "I spilled coffee on my shirt", make_history(), 6)
        context.set("meaning_eligible", False)
        context.set("active_rule", rule_table.get("meaning_integration"))
        context.set_draft(f"Oh no, that's annoying. {MEANING_SENTENCE}")

        await ALL_STEPS["meaning_guard"].execute(context, resources)

        assert context.get("meaning_violation").detected
        assert not contains_meaning_phrase(context.draft, templates)
        assert context.draft.startswith("Oh no, that's annoying.")

    @pytest.mark.asyncio
    async def test_meaning_framing_kept_when_eligible(self, resources, rule_table):
        draft = f"That sounds heavy. {MEANING_SENTENCE}"
        context = make_context(resources, "What is the point of any of this", make_history(), 6)
        context.set("meaning_eligible", True)
        context.set("active_rule", rule_table.get("meaning_integration"))
        context.set_draft(draft)

        await ALL_STEPS["meaning_guard"].execute(context, resources)

        assert context.draft == draft
        assert not context.get("meaning_violation").detected
