from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class ConsistencyGuardStep(PipelineStep):
    @property
    def name(self) -> str:
        return "consistency_guard"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "history", "memory_record"]

    def get_outputs(self) -> list[str]:
        return ["consistency"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        result = resources.get_consistency_guard().check(
            context.draft,
            context.utterance,
            context.history,
            record=context.get("memory_record"),
            retrieved=context.get("retrieval_result"),
        )
        context.set("consistency", result)
        if result.is_hallucination:
            context.log(f"Unsupported claims: {result.flagged_claims}")
            if result.corrected:
                context.set_draft(result.corrected)
        return context
