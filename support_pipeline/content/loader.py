import re
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from support_pipeline.domain.exceptions import ContentError
from support_pipeline.domain.models import CRISIS_CONCERNS, CRISIS_SEVERITY_ORDER, ConcernTag, CrisisCategory, PersonalityMode

PLACEHOLDER_PATTERN = re.compile(r'<([^>]+)>')
# Draft pools the composer indexes directly; every other intent falls back to 'default'.
REQUIRED_DRAFT_POOLS = ("default", "recall", "recall_empty")

class CrisisTemplate(BaseModel):
    high: str
    moderate: str

class MeaningTemplates(BaseModel):
    transitions: List[str]
    insights: List[str]

class PersonalityTemplates(BaseModel):
    starters: Dict[str, List[str]]
    regenerate: Dict[str, List[str]]

class RetrievalTemplates(BaseModel):
    rerank_ack: List[str]

class TemplateBank(BaseModel):
    fallback: str
    greetings: List[str]
    drafts: Dict[str, List[str]]
    emotions: Dict[str, List[str]]
    specialized: Dict[str, List[str]] = Field(default_factory=dict)
    memory_reference: List[str]
    meaning: MeaningTemplates
    personality: PersonalityTemplates
    crisis: Dict[str, CrisisTemplate]
    retrieval: RetrievalTemplates

    @model_validator(mode="after")
    def _check_coverage(self) -> "TemplateBank":
        missing_modes = [m.value for m in PersonalityMode if not self.personality.regenerate.get(m.value)]
        if missing_modes:
            raise ValueError(f"No regeneration templates for modes: {missing_modes}")
        missing_crisis = [c.value for c in CRISIS_SEVERITY_ORDER if c != CrisisCategory.NONE and c.value not in self.crisis]
        if missing_crisis:
            raise ValueError(f"No crisis templates for categories: {missing_crisis}")
        if not self.memory_reference:
            raise ValueError("At least one memory reference template is required.")
        missing_drafts = [k for k in REQUIRED_DRAFT_POOLS if not self.drafts.get(k)]
        if missing_drafts:
            raise ValueError(f"Missing or empty draft pools: {missing_drafts}")
        missing_concerns = [t.value for t in ConcernTag if t not in CRISIS_CONCERNS and not self.specialized.get(t.value)]
        if missing_concerns:
            raise ValueError(f"No specialized templates for concerns: {missing_concerns}")
        if not self.retrieval.rerank_ack:
            raise ValueError("At least one retrieval rerank acknowledgement is required.")
        if not self.greetings:
            raise ValueError("At least one greeting template is required.")
        return self

class KnowledgePassage(BaseModel):
    id: str
    content: str
    tags: List[str] = Field(default_factory=list)

class KnowledgeCorpus(BaseModel):
    passages: List[KnowledgePassage]
    crisis_resources: Dict[str, List[str]]
    concern_resources: Dict[str, List[str]] = Field(default_factory=dict)

    def resources_for(self, category: str) -> List[str]:
        return self.crisis_resources.get(category) or self.concern_resources.get(category) or []

def _read_yaml(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Content file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ContentError(f"Failed to parse YAML at {path}: {e}") from e

def load_template_bank(path: Path) -> TemplateBank:
    try:
        return TemplateBank.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise ContentError(f"Invalid template bank at {path}: {e}") from e

def load_knowledge_corpus(path: Path) -> KnowledgeCorpus:
    try:
        return KnowledgeCorpus.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise ContentError(f"Invalid knowledge corpus at {path}: {e}") from e

def render_template(template: str, replacements: Dict[str, Any]) -> str:
    """Fills <placeholder> slots. Every placeholder in the template must be supplied."""
    for key, value in replacements.items():
        template = template.replace(f"<{key}>", str(value))

    missed = PLACEHOLDER_PATTERN.findall(template)
    if missed:
        raise ContentError(f"Missing replacements for placeholders: {missed}")

    return template
