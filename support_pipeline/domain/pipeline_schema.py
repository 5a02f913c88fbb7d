from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

class RuleDefinition(BaseModel):
    name: str
    priority: float
    # Name of a predicate from PREDICATE_REGISTRY gating the rule's steps.
    when: str = "always"
    steps: List[str] = Field(default_factory=list)
    # Post-condition steps run after every rule has been applied.
    enforce: List[str] = Field(default_factory=list)
    timeout_s: Optional[float] = None

class PipelineDefinition(BaseModel):
    name: str
    description: str = ""
    rules: List[RuleDefinition]

    @field_validator("rules")
    @classmethod
    def _unique_rule_names(cls, rules: List[RuleDefinition]) -> List[RuleDefinition]:
        names = [r.name for r in rules]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate rule names: {duplicates}")
        return rules
