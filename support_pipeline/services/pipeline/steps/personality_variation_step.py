from .base_step import PipelineStep
from support_pipeline.domain.models import Recommendation, RepetitionReport
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class PersonalityVariationStep(PipelineStep):
    """
    Picks the turn's approach and personality mode and varies the draft.
    Repetition pressure raises spontaneity; past the regeneration threshold
    the draft is replaced rather than patched.
    """
    @property
    def name(self) -> str:
        return "personality_variation"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "turn_count", "history", "signals", "repetition_report", "meaning_eligible"]

    def get_outputs(self) -> list[str]:
        return ["approach", "personality_mode"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        signals = context.get("signals")
        report: RepetitionReport = context.get("repetition_report") or RepetitionReport()
        selector = resources.get_approach_selector()

        approach = selector.select(context.utterance, signals, context.turn_count)
        approach = selector.adjust_for_repetition(approach, report)

        previous_mode = context.history.last_agent_mode()
        exclude = []
        if Recommendation.CHANGE_APPROACH in report.recommendations and previous_mode is not None:
            exclude.append(previous_mode)

        window = resources.get_settings().recent_reply_window
        result = resources.get_variator().compose(
            context.draft,
            context.utterance,
            context.turn_count,
            approach.spontaneity_level,
            approach.creativity_level,
            rng=context.rng,
            previous_mode=previous_mode,
            exclude_modes=exclude,
            recent_replies=context.history.recent_agent_texts(window),
            register=signals.register_profile,
            allow_meaning=bool(context.get("meaning_eligible")),
        )
        context.set("approach", approach)
        context.set("personality_mode", result.mode)
        context.set_draft(result.text)
        context.log(
            f"Mode {result.mode.value}, spontaneity {approach.spontaneity_level}, "
            f"regenerated={result.regenerated}, meaning={result.meaning_applied}."
        )
        return context
