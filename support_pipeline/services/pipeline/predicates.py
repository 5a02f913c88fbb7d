from typing import Callable, Dict

from support_pipeline.domain.turn_context import TurnContext

Predicate = Callable[[TurnContext], bool]

def always(context: TurnContext) -> bool:
    return True

def not_fast_path(context: TurnContext) -> bool:
    return not context.get("fast_path", False)

# Rule 'when' clauses in the pipeline YAML refer to these names.
PREDICATE_REGISTRY: Dict[str, Predicate] = {
    "always": always,
    "not_fast_path": not_fast_path,
}
