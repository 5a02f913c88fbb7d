from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent.parent

class Settings(BaseSettings):
    """Loads and validates all pipeline settings from the environment and a .env file."""
    model_config = SettingsConfigDict(
        env_prefix='SUPPORT_PIPELINE_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Static content. None means the copy shipped with the package.
    templates_path: Optional[Path] = None
    corpus_path: Optional[Path] = None
    pipeline_path: Optional[Path] = None

    # Seed for every per-turn random source. None draws from the OS.
    random_seed: Optional[int] = None

    # Retrieval
    retrieval_confidence_threshold: float = Field(0.3, ge=0.0, le=1.0)
    fallback_confidence: float = Field(0.25, ge=0.0, le=1.0)
    embedding_backend: Literal["none", "http"] = "none"
    embedding_url: str = "http://localhost:8080/v1/embeddings"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_timeout_s: float = 1.5
    embedding_cooldown_s: float = 300.0

    # Memory
    memory_window: int = Field(5, ge=1)
    memory_decay: float = Field(0.7, gt=0.0, le=1.0)
    memory_floor_weight: float = Field(0.05, ge=0.0)
    memory_enforcement_min_turn: int = 3

    # Repetition and variation
    recent_reply_window: int = Field(5, ge=1)
    structure_similarity_threshold: float = 0.6
    question_similarity_threshold: float = 0.7
    spontaneity_regeneration_threshold: int = 80

    # Time budgets
    stage_timeout_s: float = 2.0
    pipeline_timeout_s: float = 5.0

    def resolve_templates_path(self) -> Path:
        return self.templates_path or PACKAGE_ROOT / "resources" / "templates.yaml"

    def resolve_corpus_path(self) -> Path:
        return self.corpus_path or PACKAGE_ROOT / "resources" / "knowledge_corpus.yaml"

    def resolve_pipeline_path(self) -> Path:
        return self.pipeline_path or PACKAGE_ROOT / "pipelines" / "default.yaml"

# Create a single, importable instance of the settings
settings = Settings()
