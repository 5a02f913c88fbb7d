from __future__ import annotations
import asyncio
from typing import Any, AsyncGenerator, Dict, Optional

from support_pipeline.config.settings import Settings
from support_pipeline.data_layer.session_store import SessionStore
from support_pipeline.domain.models import TurnResult
from support_pipeline.services.pipeline.orchestrator import RuleOrchestrator
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class ConversationService:
    """
    Entry point for hosts: maps a session id to its history and memory, and
    runs each turn through the orchestrator with the session's lock held.
    """
    def __init__(self, orchestrator: RuleOrchestrator, sessions: Optional[SessionStore] = None):
        self.orchestrator = orchestrator
        self.sessions = sessions or SessionStore(orchestrator.resources.new_memory_store)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ConversationService":
        resources = ResourceProvider.from_settings(settings)
        return cls(RuleOrchestrator(resources))

    async def handle_turn(self, session_id: str, utterance: str) -> TurnResult:
        session = self.sessions.get_or_create(session_id)
        async with session.lock:
            return await self.orchestrator.process_turn(
                utterance,
                session.history,
                session.turn_count + 1,
                session_id=session_id,
                memory_store=session.memory_store,
            )

    async def stream_turn(self, session_id: str, utterance: str) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Runs a turn and yields its events as they happen: 'log' and
        'lifecycle_update' per step, then a final 'result'.
        """
        event_queue: asyncio.Queue = asyncio.Queue()

        async def on_event(event: Dict[str, Any]) -> None:
            await event_queue.put(event)

        async def run_turn() -> None:
            session = self.sessions.get_or_create(session_id)
            try:
                async with session.lock:
                    await self.orchestrator.process_turn(
                        utterance,
                        session.history,
                        session.turn_count + 1,
                        session_id=session_id,
                        memory_store=session.memory_store,
                        on_event=on_event,
                    )
            finally:
                await event_queue.put(None)

        turn_task = asyncio.create_task(run_turn())
        while True:
            event = await event_queue.get()
            if event is None:
                break
            yield event
        await turn_task
