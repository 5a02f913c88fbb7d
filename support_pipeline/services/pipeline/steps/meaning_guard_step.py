from .base_step import PipelineStep
from support_pipeline.domain.models import RuleViolation
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.personality.variator import contains_meaning_phrase, strip_meaning_phrases
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class MeaningGuardStep(PipelineStep):
    """Post-condition of the meaning rule: ineligible turns carry no meaning framing."""

    @property
    def name(self) -> str:
        return "meaning_guard"

    def get_required_inputs(self) -> list[str]:
        return ["meaning_eligible"]

    def get_outputs(self) -> list[str]:
        return ["meaning_violation"]

    def should_run(self, context: TurnContext) -> bool:
        return context.draft is not None

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        templates = resources.get_templates()
        rule = context.get("active_rule")
        detected = not context.get("meaning_eligible") and contains_meaning_phrase(context.draft, templates)
        context.set("meaning_violation", RuleViolation(rule_name=rule.name, priority=rule.priority, detected=detected))
        if detected:
            context.set_draft(strip_meaning_phrases(context.draft, templates))
            context.log("Removed meaning framing from an ineligible turn.")
        return context
