from __future__ import annotations
from typing import Optional

from support_pipeline.composition.composer import DraftComposer
from support_pipeline.config.settings import Settings, settings as default_settings
from support_pipeline.consistency.guard import ConsistencyGuard
from support_pipeline.content.loader import KnowledgeCorpus, TemplateBank, load_knowledge_corpus, load_template_bank
from support_pipeline.detectors.crisis import CrisisDetector, CrisisResponder
from support_pipeline.detectors.register import RegisterDetector
from support_pipeline.detectors.specialized import SpecializedConcernDetector
from support_pipeline.domain.models import ConversationHistory
from support_pipeline.memory.store import MemoryStore
from support_pipeline.personality.approach import ApproachSelector
from support_pipeline.personality.variator import PersonalityVariator
from support_pipeline.repetition.detector import RepetitionDetector
from support_pipeline.retrieval.backends import EmbeddingBackend, HttpEmbeddingBackend
from support_pipeline.retrieval.service import RetrievalService

class ResourceProvider:
    """
    A container for the shared, read-only collaborators of every turn: the
    loaded content, the stateless detectors and engines, and the one stateful
    service (retrieval). Per-session state never lives here.
    """
    def __init__(
        self,
        settings: Settings,
        templates: TemplateBank,
        corpus: KnowledgeCorpus,
        retrieval_service: RetrievalService,
    ):
        self._settings = settings
        self._templates = templates
        self._corpus = corpus
        self._retrieval_service = retrieval_service
        self._crisis_detector = CrisisDetector()
        self._crisis_responder = CrisisResponder(templates, corpus)
        self._concern_detector = SpecializedConcernDetector()
        self._register_detector = RegisterDetector()
        self._composer = DraftComposer(templates, corpus)
        self._consistency_guard = ConsistencyGuard(self.new_memory_store)
        self._repetition_detector = RepetitionDetector(
            structure_threshold=settings.structure_similarity_threshold,
            question_threshold=settings.question_similarity_threshold,
        )
        self._approach_selector = ApproachSelector(settings.spontaneity_regeneration_threshold)
        self._variator = PersonalityVariator(
            templates,
            regeneration_threshold=settings.spontaneity_regeneration_threshold,
            meaning_min_turn=settings.memory_enforcement_min_turn,
            similarity_ceiling=settings.structure_similarity_threshold,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, backend: Optional[EmbeddingBackend] = None) -> "ResourceProvider":
        settings = settings or default_settings
        templates = load_template_bank(settings.resolve_templates_path())
        corpus = load_knowledge_corpus(settings.resolve_corpus_path())
        if backend is None and settings.embedding_backend == "http":
            backend = HttpEmbeddingBackend(settings.embedding_url, settings.embedding_model, settings.embedding_timeout_s)
        retrieval = RetrievalService(
            corpus,
            templates,
            backend=backend,
            confidence_threshold=settings.retrieval_confidence_threshold,
            fallback_confidence=settings.fallback_confidence,
            timeout_s=settings.embedding_timeout_s,
            cooldown_s=settings.embedding_cooldown_s,
        )
        print(f"[INFO] ResourceProvider initialized ({len(corpus.passages)} passages, backend={settings.embedding_backend}).")
        return cls(settings, templates, corpus, retrieval)

    def new_memory_store(self, history: ConversationHistory) -> MemoryStore:
        return MemoryStore(
            history,
            window=self._settings.memory_window,
            decay=self._settings.memory_decay,
            floor_weight=self._settings.memory_floor_weight,
        )

    def get_settings(self) -> Settings:
        return self._settings

    def get_templates(self) -> TemplateBank:
        return self._templates

    def get_corpus(self) -> KnowledgeCorpus:
        return self._corpus

    def get_retrieval_service(self) -> RetrievalService:
        return self._retrieval_service

    def get_crisis_detector(self) -> CrisisDetector:
        return self._crisis_detector

    def set_crisis_detector(self, detector: CrisisDetector) -> None:
        self._crisis_detector = detector

    def get_crisis_responder(self) -> CrisisResponder:
        return self._crisis_responder

    def get_concern_detector(self) -> SpecializedConcernDetector:
        return self._concern_detector

    def get_register_detector(self) -> RegisterDetector:
        return self._register_detector

    def get_composer(self) -> DraftComposer:
        return self._composer

    def get_consistency_guard(self) -> ConsistencyGuard:
        return self._consistency_guard

    def get_repetition_detector(self) -> RepetitionDetector:
        return self._repetition_detector

    def get_approach_selector(self) -> ApproachSelector:
        return self._approach_selector

    def get_variator(self) -> PersonalityVariator:
        return self._variator
