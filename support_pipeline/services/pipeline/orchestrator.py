import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from support_pipeline.config.settings import Settings
from support_pipeline.detectors.crisis import SAFETY_FALLBACK_REPLY
from support_pipeline.domain.models import ConcernTag, ConversationHistory, ConversationTurn, Speaker, TurnResult
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.memory.store import MemoryStore
from support_pipeline.services.pipeline.graph_builder import TurnGraphBuilder
from support_pipeline.services.pipeline.resource_provider import ResourceProvider
from support_pipeline.services.pipeline.rule_table import RuleTable

EventCallback = Callable[[Dict[str, Any]], Awaitable[None]]

class RuleOrchestrator:
    """
    Runs one conversational turn through the compiled rule graph and commits
    the exchange to history. Whatever happens inside the graph, the caller
    gets a reply: crisis replies are final, failed stages fall back to the
    last known-good draft, and a failure before safety was assessed answers
    with the crisis-resources fallback.
    """
    def __init__(self, resources: ResourceProvider, rule_table: Optional[RuleTable] = None):
        self.resources = resources
        self.settings: Settings = resources.get_settings()
        self.rule_table = rule_table or RuleTable.from_yaml(self.settings.resolve_pipeline_path())
        self.graph = TurnGraphBuilder(self.rule_table, resources).build()
        self._recursion_limit = len(self.rule_table.node_sequence()) + 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RuleOrchestrator":
        return cls(ResourceProvider.from_settings(settings))

    def _turn_rng(self, session_id: str, turn_count: int) -> random.Random:
        if self.settings.random_seed is None:
            return random.Random()
        return random.Random(f"{self.settings.random_seed}:{session_id}:{turn_count}")

    async def process(self, utterance: str, history: ConversationHistory, turn_count: int, session_id: str = "default") -> str:
        result = await self.process_turn(utterance, history, turn_count, session_id)
        return result.reply

    async def process_turn(
        self,
        utterance: str,
        history: ConversationHistory,
        turn_count: int,
        session_id: str = "default",
        memory_store: Optional[MemoryStore] = None,
        on_event: Optional[EventCallback] = None,
    ) -> TurnResult:
        memory_store = memory_store or self.resources.new_memory_store(history)
        context = TurnContext(
            utterance,
            history,
            turn_count,
            session_id=session_id,
            rng=self._turn_rng(session_id, turn_count),
            deadline=time.monotonic() + self.settings.pipeline_timeout_s,
            memory_store=memory_store,
        )
        initial_state = {"turn_context": context, "debug_log": [], "error_info": []}
        config = {"recursion_limit": self._recursion_limit}

        try:
            async for update in self.graph.astream(initial_state, config=config, stream_mode="updates"):
                if on_event is not None:
                    await self._emit_update(update, on_event)
            reply = context.draft or self.resources.get_templates().fallback
        except Exception as e:
            print(f"[ERROR] Turn {turn_count} of session '{session_id}' failed at the orchestrator boundary: {e!r}")
            reply = self._recover(context)

        result = self._commit(context, reply, history, memory_store)
        if on_event is not None:
            await on_event({"type": "result", "data": {"reply": result.reply, "concern_tag": result.concern_tag, "execution_log": context.execution_log}})
        return result

    def _recover(self, context: TurnContext) -> str:
        if context.terminal:
            return context.draft
        if not context.has("crisis_assessment"):
            context.terminate(SAFETY_FALLBACK_REPLY, ConcernTag.CRISIS)
            return SAFETY_FALLBACK_REPLY
        return context.draft or self.resources.get_templates().fallback

    @staticmethod
    async def _emit_update(update: Dict[str, Any], on_event: EventCallback) -> None:
        for node_name, node_output in update.items():
            if not isinstance(node_output, dict):
                continue
            for log_data in node_output.get("debug_log", []):
                log_data = {**log_data, "timestamp": time.time()}
                await on_event({"type": "log", "data": log_data})
                await on_event({"type": "lifecycle_update", "data": {"step_name": node_name, "status": log_data["status"]}})

    @staticmethod
    def _commit(context: TurnContext, reply: str, history: ConversationHistory, memory_store: MemoryStore) -> TurnResult:
        """Appends the user turn and the reply to history. Runs once per turn, on every path."""
        if context.get("committed"):
            return TurnResult(reply=reply, concern_tag=context.concern_tag, history=history)
        context.set("committed", True)
        turns = [
            ConversationTurn(text=context.utterance, speaker=Speaker.USER, concern_tag=context.concern_tag),
            ConversationTurn(
                text=reply,
                speaker=Speaker.AGENT,
                concern_tag=context.concern_tag,
                personality_mode=None if context.terminal else context.get("personality_mode"),
            ),
        ]
        for turn in turns:
            memory_store.write(turn)
            if memory_store.history is not history:
                history.append(turn)
        return TurnResult(reply=reply, concern_tag=context.concern_tag, history=history)
