import asyncio

import pytest

from support_pipeline.data_layer.session_store import SessionStore
from support_pipeline.domain.models import Speaker
from support_pipeline.services.conversation_service import ConversationService


@pytest.fixture
def service(orchestrator) -> ConversationService:
    return ConversationService(orchestrator)


class TestSessionStore:
    def test_get_or_create_returns_the_same_session(self, resources):
        store = SessionStore(resources.new_memory_store)
        first = store.get_or_create("alice")
        assert store.get_or_create("alice") is first
        assert first.memory_store.history is first.history
        assert first.turn_count == 0

    def test_reset_forgets_the_session(self, resources):
        store = SessionStore(resources.new_memory_store)
        store.get_or_create("alice")
        store.reset("alice")
        assert not store.exists("alice")
        assert store.session_ids() == []


class TestConversationService:
    @pytest.mark.asyncio
    async def test_turn_count_follows_the_session(self, service):
        await service.handle_turn("s1", "hi")
        await service.handle_turn("s1", "my week has been long")

        session = service.sessions.get_or_create("s1")
        assert session.turn_count == 2
        assert [t.speaker for t in session.history.turns] == [Speaker.USER, Speaker.AGENT] * 2

    @pytest.mark.asyncio
    async def test_concurrent_turns_in_one_session_run_in_order(self, service):
        utterances = ["first thing", "second thing", "third thing"]
        await asyncio.gather(*(service.handle_turn("s1", u) for u in utterances))

        history = service.sessions.get_or_create("s1").history
        assert [t.text for t in history.user_turns()] == utterances
        assert len(history) == 6

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, service):
        await asyncio.gather(
            service.handle_turn("a", "my sister moved away"),
            service.handle_turn("b", "my exam is tomorrow"),
        )
        history_a = service.sessions.get_or_create("a").history
        history_b = service.sessions.get_or_create("b").history
        assert [t.text for t in history_a.user_turns()] == ["my sister moved away"]
        assert [t.text for t in history_b.user_turns()] == ["my exam is tomorrow"]

    @pytest.mark.asyncio
    async def test_stream_turn_yields_steps_then_result(self, service):
        events = [event async for event in service.stream_turn("s1", "hi")]

        assert events[0]["type"] == "log"
        assert events[0]["data"]["step_name"] == "crisis_detection"
        assert events[-1]["type"] == "result"
        assert events[-1]["data"]["reply"]
        assert service.sessions.get_or_create("s1").turn_count == 1

    @pytest.mark.asyncio
    async def test_crisis_in_one_session_does_not_touch_another(self, service):
        crisis = await service.handle_turn("a", "I want to kill myself")
        calm = await service.handle_turn("b", "hi")
        assert crisis.concern_tag is not None
        assert calm.concern_tag is None
