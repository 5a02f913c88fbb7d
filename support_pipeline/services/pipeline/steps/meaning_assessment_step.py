from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class MeaningAssessmentStep(PipelineStep):
    """Decides whether meaning/purpose framing may be used this turn."""

    @property
    def name(self) -> str:
        return "meaning_assessment"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "turn_count", "signals"]

    def get_outputs(self) -> list[str]:
        return ["meaning_eligible"]

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        signals = context.get("signals")
        eligible = (
            resources.get_variator().meaning_eligible(context.utterance, context.turn_count)
            and not signals.is_minor_incident
            and not signals.resists_meaning
            and not context.get("fast_path", False)
        )
        context.set("meaning_eligible", eligible)
        context.log(f"Meaning framing eligible: {eligible}.")
        return context
