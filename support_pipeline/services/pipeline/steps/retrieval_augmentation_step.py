from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class RetrievalAugmentationStep(PipelineStep):
    """
    Grounds the draft in the knowledge corpus. Confident results are inserted
    into the draft; anything below the threshold only re-ranks the draft.
    """
    @property
    def name(self) -> str:
        return "retrieval_augmentation"

    def get_required_inputs(self) -> list[str]:
        return ["utterance", "history"]

    def get_outputs(self) -> list[str]:
        return ["retrieval_result", "retrieval_path"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None and not context.get("fast_path", False)

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        service = resources.get_retrieval_service()
        text, result, path = await service.augment(context.draft, context.utterance, context.history)
        context.set("retrieval_result", result)
        context.set("retrieval_path", path)
        context.set_draft(text)
        context.log(f"Retrieval ({service.mode.value}): source={result.source_id}, confidence={result.confidence:.2f}, path={path}.")
        return context
