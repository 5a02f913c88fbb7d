import asyncio
import zlib
from typing import List, Optional

import pytest

from support_pipeline.config.settings import Settings
from support_pipeline.content.text import content_words
from support_pipeline.domain.exceptions import RetrievalUnavailableError
from support_pipeline.domain.models import ConversationHistory, ConversationTurn, Speaker
from support_pipeline.retrieval.backends import EmbeddingBackend
from support_pipeline.services.pipeline.orchestrator import RuleOrchestrator
from support_pipeline.services.pipeline.resource_provider import ResourceProvider


class FakeEmbeddingBackend(EmbeddingBackend):
    """Deterministic bag-of-words vectors. Can fail or wait on a gate to simulate a slow service."""

    def __init__(self, dimensions: int = 64, fail: bool = False, gate: Optional[asyncio.Event] = None):
        self.dimensions = dimensions
        self.fail = fail
        self.gate = gate
        self.calls = 0

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RetrievalUnavailableError("embedding service is down")
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in content_words(text):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimensions] += 1.0
        return vector


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_history(*exchanges) -> ConversationHistory:
    """Builds a history from (user_text, agent_text) pairs; agent_text may be None."""
    history = ConversationHistory()
    for user_text, agent_text in exchanges:
        history.append(ConversationTurn(text=user_text, speaker=Speaker.USER))
        if agent_text is not None:
            history.append(ConversationTurn(text=agent_text, speaker=Speaker.AGENT))
    return history


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, random_seed=7, embedding_backend="none")


@pytest.fixture
def resources(test_settings) -> ResourceProvider:
    return ResourceProvider.from_settings(test_settings)


@pytest.fixture
def templates(resources):
    return resources.get_templates()


@pytest.fixture
def corpus(resources):
    return resources.get_corpus()


@pytest.fixture
def orchestrator(resources) -> RuleOrchestrator:
    return RuleOrchestrator(resources)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
