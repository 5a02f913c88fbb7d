from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from support_pipeline.domain.pipeline_schema import PipelineDefinition, RuleDefinition
from support_pipeline.domain.turn_context import INITIAL_KEYS
from support_pipeline.services.pipeline.predicates import PREDICATE_REGISTRY, Predicate
from support_pipeline.services.pipeline.steps import ALL_STEPS, PipelineStep

SAFETY_STEP = "crisis_detection"

class Rule:
    """A named, prioritized behavioral rule with its resolved steps and predicate."""

    def __init__(self, definition: RuleDefinition, order: int):
        self.definition = definition
        self.order = order
        self.name = definition.name
        self.priority = definition.priority
        self.timeout_s = definition.timeout_s
        self.predicate: Predicate = PREDICATE_REGISTRY[definition.when]
        self.steps: List[PipelineStep] = [ALL_STEPS[s] for s in definition.steps]
        self.enforce: List[PipelineStep] = [ALL_STEPS[s] for s in definition.enforce]

    def applies(self, context) -> bool:
        return self.predicate(context)

    def __repr__(self) -> str:
        return f"Rule(name={self.name!r}, priority={self.priority})"

class RuleTable:
    """
    The ordered rule set for a pipeline. Rules apply in descending priority,
    ties kept in declaration order. Post-condition checks run afterwards in
    the reverse order, so the highest-priority rule has the last word on the
    final text.
    """
    def __init__(self, definition: PipelineDefinition):
        self.definition = definition
        self._check_names(definition)
        rules = [Rule(d, i) for i, d in enumerate(definition.rules)]
        self._rules: List[Rule] = sorted(rules, key=lambda r: (-r.priority, r.order))
        self._check_order()

    @classmethod
    def from_definition(cls, data: dict) -> "RuleTable":
        # pydantic's ValidationError is a ValueError.
        return cls(PipelineDefinition.model_validate(data))

    @classmethod
    def from_yaml(cls, path: Path) -> "RuleTable":
        if not path.exists():
            raise FileNotFoundError(f"Pipeline definition not found at: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Pipeline Error: definition at {path} must be a mapping.")
        return cls.from_definition(data)

    @staticmethod
    def _check_names(definition: PipelineDefinition) -> None:
        seen: Dict[str, str] = {}
        for rule in definition.rules:
            if rule.when not in PREDICATE_REGISTRY:
                raise ValueError(f"Pipeline Error: Rule '{rule.name}' uses unknown predicate '{rule.when}'.")
            for step_name in rule.steps + rule.enforce:
                if step_name not in ALL_STEPS:
                    raise ValueError(f"Pipeline Error: Rule '{rule.name}' references unknown step '{step_name}'.")
                if step_name in seen:
                    raise ValueError(f"Pipeline Error: Step '{step_name}' is used by both '{seen[step_name]}' and '{rule.name}'.")
                seen[step_name] = rule.name
        if SAFETY_STEP not in seen:
            raise ValueError(f"Pipeline Error: '{definition.name}' has no '{SAFETY_STEP}' step.")

    def _check_order(self) -> None:
        top = self._rules[0]
        if not top.steps or top.steps[0].name != SAFETY_STEP:
            raise ValueError(f"Pipeline Error: '{SAFETY_STEP}' must be the first step of the highest-priority rule.")

        available = set(INITIAL_KEYS)
        for rule, step in self.node_sequence():
            missing = [key for key in step.get_required_inputs() if key not in available]
            if missing:
                raise ValueError(
                    f"Pipeline Error: Step '{step.name}' of rule '{rule.name}' needs {missing}, "
                    f"which no earlier step produces."
                )
            available.update(step.get_outputs())

    def ordered(self) -> List[Rule]:
        return list(self._rules)

    def get(self, name: str) -> Optional[Rule]:
        return next((r for r in self._rules if r.name == name), None)

    def apply_sequence(self) -> List[Tuple[Rule, PipelineStep]]:
        return [(rule, step) for rule in self._rules for step in rule.steps]

    def enforce_sequence(self) -> List[Tuple[Rule, PipelineStep]]:
        return [(rule, step) for rule in reversed(self._rules) for step in rule.enforce]

    def node_sequence(self) -> List[Tuple[Rule, PipelineStep]]:
        return self.apply_sequence() + self.enforce_sequence()
