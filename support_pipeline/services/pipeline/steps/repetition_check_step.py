from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class RepetitionCheckStep(PipelineStep):
    @property
    def name(self) -> str:
        return "repetition_check"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "history"]

    def get_outputs(self) -> list[str]:
        return ["repetition_report"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        window = resources.get_settings().recent_reply_window
        recent_replies = context.history.recent_agent_texts(window)
        # Only the latest exchange counts as a complaint about repetition.
        recent_user_turns = context.history.recent_user_texts(1) + [context.utterance]
        report = resources.get_repetition_detector().score(context.draft, recent_replies, recent_user_turns)
        context.set("repetition_report", report)
        context.log(f"Repetition score {report.score:.2f} ({', '.join(r.value for r in report.recommendations) or 'none'}).")
        return context
