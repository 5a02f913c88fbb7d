import random

import pytest
import yaml

from support_pipeline.composition.composer import DraftComposer
from support_pipeline.config.settings import Settings
from support_pipeline.content.loader import load_knowledge_corpus, load_template_bank, render_template
from support_pipeline.detectors.specialized import SpecializedConcernDetector
from support_pipeline.domain.exceptions import ContentError
from support_pipeline.domain.models import ConversationHistory, SignalReport


class TestContentLoading:
    """YAML template bank and knowledge corpus."""

    def test_shipped_content_loads(self):
        settings = Settings(_env_file=None)
        templates = load_template_bank(settings.resolve_templates_path())
        corpus = load_knowledge_corpus(settings.resolve_corpus_path())
        assert templates.greetings
        assert len(corpus.passages) >= 5
        assert corpus.resources_for("gambling")
        assert corpus.resources_for("unknown") == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_template_bank(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("passages: [unclosed\n")
        with pytest.raises(ContentError):
            load_knowledge_corpus(path)

    def test_incomplete_template_bank(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text("fallback: hi\ngreetings: [hello]\n")
        with pytest.raises(ContentError):
            load_template_bank(path)

    @pytest.mark.parametrize("section,key", [
        ("drafts", "recall_empty"),
        ("drafts", "recall"),
        ("specialized", "gambling"),
    ])
    def test_bank_missing_a_pool_the_composer_uses(self, tmp_path, section, key):
        bank = yaml.safe_load(Settings(_env_file=None).resolve_templates_path().read_text(encoding="utf-8"))
        del bank[section][key]
        path = tmp_path / "templates.yaml"
        path.write_text(yaml.safe_dump(bank))
        with pytest.raises(ContentError, match=key):
            load_template_bank(path)

    def test_bank_with_empty_rerank_acknowledgements(self, tmp_path):
        bank = yaml.safe_load(Settings(_env_file=None).resolve_templates_path().read_text(encoding="utf-8"))
        bank["retrieval"]["rerank_ack"] = []
        path = tmp_path / "templates.yaml"
        path.write_text(yaml.safe_dump(bank))
        with pytest.raises(ContentError, match="rerank"):
            load_template_bank(path)

    def test_render_template(self):
        assert render_template("About <topic>.", {"topic": "your job"}) == "About your job."
        with pytest.raises(ContentError):
            render_template("About <topic> and <other>.", {"topic": "x"})


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SUPPORT_PIPELINE_RANDOM_SEED", "42")
        monkeypatch.setenv("SUPPORT_PIPELINE_EMBEDDING_BACKEND", "http")
        settings = Settings(_env_file=None)
        assert settings.random_seed == 42
        assert settings.embedding_backend == "http"

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.retrieval_confidence_threshold == 0.3
        assert settings.memory_enforcement_min_turn == 3
        assert settings.resolve_pipeline_path().name == "default.yaml"


class TestDraftComposer:
    """Intent classification, in priority order."""

    @pytest.fixture(autouse=True)
    def _composer(self, templates, corpus):
        self.composer = DraftComposer(templates, corpus)

    @pytest.mark.parametrize("utterance,signals,intent", [
        ("hi", SignalReport(is_greeting=True), "greeting"),
        ("you keep repeating yourself", SignalReport(), "feedback_loop"),
        ("do you remember what I said about my sister?", SignalReport(), "recall"),
        ("should I take more of my pills tonight to sleep?", SignalReport(), "medical_advice"),
        ("what is therapy like?", SignalReport(), "factual_question"),
        ("I tripped in front of everyone", SignalReport(is_minor_incident=True), "minor_incident"),
        ("nice to meet you", SignalReport(is_small_talk=True), "small_talk"),
        ("I'm so sad", SignalReport(emotions=["sad"]), "emotion"),
        ("my landlord raised the rent", SignalReport(), "default"),
    ])
    def test_classify(self, utterance, signals, intent):
        assert self.composer.classify(utterance, signals) == intent

    def test_specialized_concern_names_the_helpline(self, resources):
        utterance = "I can't stop gambling on sports"
        signals = SignalReport(specialized_concern=SpecializedConcernDetector().detect(utterance))
        store = resources.new_memory_store(ConversationHistory())
        intent, draft = self.composer.compose(utterance, signals, store.read(), store, store.history, random.Random(1))
        assert intent == "specialized"
        assert "1-800-GAMBLER" in draft
