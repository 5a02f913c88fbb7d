from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class CrisisDetectionStep(PipelineStep):
    """
    Assesses the utterance for crisis content before anything else runs.
    On a crisis the turn is terminated with a deterministic crisis reply.
    """
    safety_critical = True

    @property
    def name(self) -> str:
        return "crisis_detection"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "history"]

    def get_outputs(self) -> list[str]:
        return ["crisis_assessment"]

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        assessment = resources.get_crisis_detector().assess(context.utterance, context.history)
        context.set("crisis_assessment", assessment)

        if assessment.is_crisis:
            reply = resources.get_crisis_responder().build_reply(assessment)
            context.terminate(reply, assessment.concern_tag())
            context.log(f"Crisis detected: category={assessment.category.value}, severity={assessment.severity.value}.")
        return context
