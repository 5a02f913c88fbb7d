from .base_step import PipelineStep
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class MemoryRecallStep(PipelineStep):
    @property
    def name(self) -> str:
        return "memory_recall"

    def get_required_inputs(self) -> list[str]:
        return ["history", "memory_store"]

    def get_outputs(self) -> list[str]:
        return ["memory_record"]

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        record = context.get("memory_store").read(context.history)
        context.set("memory_record", record)
        context.log(f"Memory: {len(record.dominant_topics)} topics, {len(record.tracked_emotions)} emotions over {record.turn_count} user turns.")
        return context
