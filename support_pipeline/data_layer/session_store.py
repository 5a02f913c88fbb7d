import asyncio
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from support_pipeline.domain.models import ConversationHistory
from support_pipeline.memory.store import MemoryStore

@dataclass
class SessionState:
    session_id: str
    history: ConversationHistory
    memory_store: MemoryStore
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def turn_count(self) -> int:
        return len(self.history.user_turns())

class SessionStore:
    """
    In-process session registry. Each session owns its history and memory
    store; turns within a session are serialized by the session's lock while
    different sessions run independently.
    """
    def __init__(self, memory_store_factory: Callable[[ConversationHistory], MemoryStore]):
        self._memory_store_factory = memory_store_factory
        self._sessions: Dict[str, SessionState] = {}
        self._registry_lock = threading.Lock()
        print("[INFO] SessionStore initialized (in-memory, no persistence).")

    def get_or_create(self, session_id: str) -> SessionState:
        with self._registry_lock:
            state = self._sessions.get(session_id)
            if state is None:
                history = ConversationHistory()
                state = SessionState(session_id, history, self._memory_store_factory(history))
                self._sessions[session_id] = state
            return state

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def reset(self, session_id: str) -> None:
        with self._registry_lock:
            self._sessions.pop(session_id, None)

    def session_ids(self) -> List[str]:
        return list(self._sessions)
