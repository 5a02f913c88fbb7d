from .base_step import PipelineStep
from support_pipeline.domain.exceptions import RuleEnforcementError
from support_pipeline.domain.models import RuleViolation
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class MemoryReferenceStep(PipelineStep):
    """
    Post-condition of the memory retention rule: past the enforcement turn,
    a reply that references nothing the user has shared gets a memory clause
    prepended. The clause rotates with the turn count.
    """
    @property
    def name(self) -> str:
        return "memory_reference"

    def get_required_inputs(self) -> list[str]:
        return ["turn_count", "memory_record", "memory_store"]

    def get_outputs(self) -> list[str]:
        return ["memory_violation"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        record = context.get("memory_record")
        store = context.get("memory_store")
        rule = context.get("active_rule")
        required = context.turn_count > resources.get_settings().memory_enforcement_min_turn and bool(record.dominant_topics)
        detected = required and not store.references(context.draft, record)
        context.set("memory_violation", RuleViolation(rule_name=rule.name, priority=rule.priority, detected=detected))

        if detected:
            clause = store.reference_clause(record, context.turn_count, resources.get_templates())
            if not clause:
                raise RuleEnforcementError(f"No memory clause for topics {list(record.dominant_topics)}.")
            context.set_draft(f"{clause} {context.draft}")
            context.log(f"Prepended memory clause: {clause}")
        return context
