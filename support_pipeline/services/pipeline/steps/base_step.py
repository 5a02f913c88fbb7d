from abc import ABC, abstractmethod
from typing import List

from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class PipelineStep(ABC):
    """
    One stage of a turn. A step names the context keys it reads and the keys
    it publishes, so a rule table can be checked for missing inputs before any
    turn runs. Steps hold no per-turn state; everything lives in the context.
    """
    # A failure in a safety-critical step ends the turn with the crisis-resources fallback.
    safety_critical: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key used by the pipeline YAML, e.g. 'crisis_detection'."""
        pass

    @abstractmethod
    def get_required_inputs(self) -> List[str]:
        """Context keys that must exist before this step runs."""
        pass

    @abstractmethod
    def get_outputs(self) -> List[str]:
        """Context keys this step sets when it completes."""
        pass

    def should_run(self, context: TurnContext) -> bool:
        """Step-level gate checked after the owning rule's predicate."""
        return True

    @abstractmethod
    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        """
        Reads inputs from the context, does the work with the shared
        collaborators in `resources`, and writes outputs (and possibly a new
        draft) back. Exceptions propagate to the node wrapper.
        """
        pass
