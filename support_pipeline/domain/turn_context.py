import random
import time
from typing import Any, Dict, List, Optional

from support_pipeline.domain.models import ConcernTag, ConversationHistory

INITIAL_KEYS = ("utterance", "history", "turn_count", "session_id", "memory_store")

class TurnContext:
    """
    Mutable state for a single turn. Steps read their inputs with get() and
    publish their outputs with set(); the reply being built is tracked as a
    draft with checkpoint/restore so a failing stage can be rolled back.
    """
    def __init__(
        self,
        utterance: str,
        history: ConversationHistory,
        turn_count: int,
        session_id: str = "default",
        rng: Optional[random.Random] = None,
        deadline: Optional[float] = None,
        memory_store: Any = None,
    ):
        self._data: Dict[str, Any] = {
            "utterance": utterance,
            "history": history,
            "turn_count": turn_count,
            "session_id": session_id,
            "memory_store": memory_store,
        }
        self.rng = rng or random.Random()
        self.deadline = deadline
        self.execution_log: List[str] = []
        self.debug_log: List[Dict[str, Any]] = []
        self.terminal = False
        self.concern_tag: Optional[ConcernTag] = None
        self._draft: Optional[str] = None
        self._draft_trail: List[str] = []

    @property
    def utterance(self) -> str:
        return self._data["utterance"]

    @property
    def history(self) -> ConversationHistory:
        return self._data["history"]

    @property
    def turn_count(self) -> int:
        return self._data["turn_count"]

    @property
    def session_id(self) -> str:
        return self._data["session_id"]

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def log(self, message: str) -> None:
        self.execution_log.append(message)

    @property
    def draft(self) -> Optional[str]:
        return self._draft

    def set_draft(self, text: str) -> None:
        """Accepts a new candidate reply. Empty text never replaces a usable draft."""
        if not text or not text.strip():
            self.log("Rejected empty draft.")
            return
        self._draft = text.strip()
        self._draft_trail.append(self._draft)

    def checkpoint(self) -> Optional[str]:
        return self._draft

    def restore(self, checkpoint: Optional[str]) -> None:
        if checkpoint != self._draft:
            self.log("Draft restored to last known-good candidate.")
        self._draft = checkpoint

    def terminate(self, reply: str, concern_tag: Optional[ConcernTag]) -> None:
        """Ends the turn with a final reply that no later stage may alter."""
        self._draft = reply
        self._draft_trail.append(reply)
        self.concern_tag = concern_tag
        self.terminal = True

    def time_left(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()
