import asyncio

import httpx
import pytest

from conftest import FakeEmbeddingBackend, make_history
from support_pipeline.domain.exceptions import RetrievalUnavailableError
from support_pipeline.domain.models import RetrievalResult
from support_pipeline.retrieval.backends import HttpEmbeddingBackend
from support_pipeline.retrieval.lexical import rerank_sentences
from support_pipeline.retrieval.service import RetrievalMode, RetrievalService


def make_service(corpus, templates, backend=None, clock=None, **kwargs):
    if clock is not None:
        kwargs["clock"] = clock
    return RetrievalService(corpus, templates, backend=backend, **kwargs)


class TestFallbackRetrieval:
    """Lexical fallback when no embedding backend is configured."""

    @pytest.mark.asyncio
    async def test_fallback_confidence_is_fixed(self, corpus, templates):
        service = make_service(corpus, templates)
        result = await service.retrieve("how do I sleep better with insomnia")
        assert service.mode == RetrievalMode.FALLBACK
        assert result.source_id == "sleep-hygiene"
        assert result.confidence == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_low_confidence_result_is_never_inserted(self, corpus, templates):
        service = make_service(corpus, templates)
        draft = "That's a fair question about trouble sleeping. Let me share what I can."
        text, result, path = await service.augment(draft, "What helps with insomnia?")
        assert path == "rerank"
        assert result.content not in text
        assert "trouble sleeping" in text

    def test_threshold_policy(self, corpus, templates):
        service = make_service(corpus, templates)
        assert not service.is_usable(RetrievalResult(content="x", confidence=0.25))
        assert service.is_usable(RetrievalResult(content="x", confidence=0.3))
        assert not service.is_usable(RetrievalResult(content="", confidence=0.9))

    def test_short_follow_up_borrows_the_last_topic(self, corpus, templates):
        service = make_service(corpus, templates)
        history = make_history(("I was laid off from my job", "That's a lot."))
        assert service.build_query("any tips?", history).endswith("job")

    def test_integrate_appends_to_a_single_sentence(self, corpus, templates):
        service = make_service(corpus, templates)
        result = RetrievalResult(content="Fact here.", confidence=0.9, source_id="x")
        assert service.integrate("One sentence.", result) == "One sentence. Fact here."
        assert service.integrate("A. B. C?", result) == "A. B. Fact here. C?"


class TestRerank:
    def test_overlapping_sentences_move_first_and_questions_stay_last(self):
        text, overlapped = rerank_sentences("Thanks. Your sleep matters. What helps?", "how do I sleep better?")
        assert overlapped
        assert text == "Your sleep matters. Thanks. What helps?"

    def test_acknowledgement_only_when_nothing_overlaps_a_question(self, corpus, templates):
        service = make_service(corpus, templates)
        query = "is my job search normal?"
        reranked = service.rerank("Thank you for telling me. What would help?", query)
        pool = templates.retrieval.rerank_ack
        assert reranked.startswith(pool[len(query) % len(pool)].replace("<topic>", "your job"))
        assert reranked.endswith("What would help?")

    def test_no_acknowledgement_for_statements(self, corpus, templates):
        service = make_service(corpus, templates)
        draft = "Thank you for telling me. What would help?"
        assert service.rerank(draft, "my job search is slow") == draft


class TestEmbeddingRetrieval:
    """Embedding mode, single-flight initialization and cooldown."""

    @pytest.mark.asyncio
    async def test_confident_match_is_inserted(self, corpus, templates):
        backend = FakeEmbeddingBackend()
        service = make_service(corpus, templates, backend=backend)
        passage = next(p for p in corpus.passages if p.id == "grief-process")
        result = await service.retrieve(passage.content)
        assert service.mode == RetrievalMode.EMBEDDING
        assert result.source_id == "grief-process"
        assert result.confidence > 0.99

    @pytest.mark.asyncio
    async def test_failed_initialization_respects_cooldown(self, corpus, templates, fake_clock):
        backend = FakeEmbeddingBackend(fail=True)
        service = make_service(corpus, templates, backend=backend, clock=fake_clock, cooldown_s=60)
        assert await service.ensure_initialized() == RetrievalMode.FALLBACK
        assert await service.ensure_initialized() == RetrievalMode.FALLBACK
        assert service.init_attempts == 1

        fake_clock.advance(61)
        await service.ensure_initialized()
        assert service.init_attempts == 2

    @pytest.mark.asyncio
    async def test_initialization_is_single_flight(self, corpus, templates):
        gate = asyncio.Event()
        backend = FakeEmbeddingBackend(gate=gate)
        service = make_service(corpus, templates, backend=backend)

        first = asyncio.create_task(service.ensure_initialized())
        await asyncio.sleep(0)
        assert await service.ensure_initialized() == RetrievalMode.FALLBACK

        gate.set()
        assert await first == RetrievalMode.EMBEDDING
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_query_failure_degrades_to_fallback(self, corpus, templates, fake_clock):
        backend = FakeEmbeddingBackend()
        service = make_service(corpus, templates, backend=backend, clock=fake_clock)
        await service.ensure_initialized()
        backend.fail = True

        result = await service.retrieve("trouble sleeping at night")
        assert service.mode == RetrievalMode.FALLBACK
        assert result.confidence == pytest.approx(0.25)

        # Still cooling down, so no new initialization attempt.
        await service.retrieve("trouble sleeping at night")
        assert service.init_attempts == 1


class TestHttpEmbeddingBackend:
    @pytest.mark.asyncio
    async def test_vectors_are_returned_in_input_order(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]})

        backend = HttpEmbeddingBackend("http://embeddings.test/v1/embeddings", "test-model", transport=httpx.MockTransport(handler))
        assert await backend.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        backend = HttpEmbeddingBackend(
            "http://embeddings.test/v1/embeddings",
            "test-model",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with pytest.raises(RetrievalUnavailableError):
            await backend.embed(["a"])

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_unavailable(self):
        backend = HttpEmbeddingBackend(
            "http://embeddings.test/v1/embeddings",
            "test-model",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []})),
        )
        with pytest.raises(RetrievalUnavailableError):
            await backend.embed(["a"])
