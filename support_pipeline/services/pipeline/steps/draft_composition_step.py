from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

FAST_PATH_INTENTS = {"greeting"}

class DraftCompositionStep(PipelineStep):
    """Produces the base draft from the template bank."""

    @property
    def name(self) -> str:
        return "draft_composition"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "history", "signals", "memory_record", "memory_store"]

    def get_outputs(self) -> list[str]:
        return ["intent", "base_draft", "fast_path"]

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        window = resources.get_settings().recent_reply_window
        intent, draft = resources.get_composer().compose(
            context.utterance,
            context.get("signals"),
            context.get("memory_record"),
            context.get("memory_store"),
            context.history,
            context.rng,
            recent_replies=context.history.recent_agent_texts(window),
        )
        context.set("intent", intent)
        context.set("base_draft", draft)
        context.set("fast_path", intent in FAST_PATH_INTENTS)
        context.set_draft(draft)
        context.log(f"Composed '{intent}' draft.")
        return context
