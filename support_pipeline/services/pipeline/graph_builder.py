import asyncio
import operator
import time
import traceback
from typing import Annotated, Any, Dict, List, TypedDict

from langchain_core.runnables import Runnable
from langgraph.graph import END, START, StateGraph

from support_pipeline.detectors.crisis import SAFETY_FALLBACK_REPLY
from support_pipeline.domain.exceptions import SafetyStageError
from support_pipeline.domain.lifecycle import StepLifecycle
from support_pipeline.domain.models import ConcernTag
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider
from support_pipeline.services.pipeline.rule_table import Rule, RuleTable
from support_pipeline.services.pipeline.steps import PipelineStep

class TurnGraphState(TypedDict):
    turn_context: TurnContext
    debug_log: Annotated[List[Dict[str, Any]], operator.add]
    error_info: Annotated[List[Dict[str, Any]], operator.add]

def route_after_step(state: TurnGraphState) -> str:
    return "halt" if state["turn_context"].terminal else "continue"

class TurnGraphBuilder:
    """
    Compiles a RuleTable into a linear LangGraph. Every step becomes a node;
    after each node a conditional edge either continues to the next step or
    halts once a step has ended the turn.
    """
    def __init__(self, rule_table: RuleTable, resources: ResourceProvider):
        self.rule_table = rule_table
        self.resources = resources
        self.graph_builder = StateGraph(TurnGraphState)

    def _node_wrapper(self, rule: Rule, step: PipelineStep):
        settings = self.resources.get_settings()

        async def wrapped_node(state: TurnGraphState) -> Dict[str, Any]:
            context = state["turn_context"]
            start_time = time.perf_counter()

            def record(status: StepLifecycle, error: Dict[str, Any] = None) -> Dict[str, Any]:
                debug_record = {
                    "step_name": step.name,
                    "rule": rule.name,
                    "priority": rule.priority,
                    "status": status.value,
                    "duration_ms": (time.perf_counter() - start_time) * 1000,
                }
                if error:
                    debug_record["error"] = error
                context.debug_log.append(debug_record)
                return debug_record

            if context.terminal or not rule.applies(context) or not step.should_run(context):
                return {"debug_log": [record(StepLifecycle.SKIPPED)]}

            timeout = rule.timeout_s or settings.stage_timeout_s
            time_left = context.time_left()
            if time_left is not None:
                # Safety always runs, even with the turn budget spent.
                if time_left <= 0 and not step.safety_critical:
                    context.log(f"Turn budget exhausted; skipping {step.name}.")
                    return {"debug_log": [record(StepLifecycle.SKIPPED)]}
                if not step.safety_critical:
                    timeout = min(timeout, time_left)

            context.set("active_rule", rule)
            checkpoint = context.checkpoint()
            try:
                await asyncio.wait_for(step.execute(context, self.resources), timeout=timeout)
                return {"debug_log": [record(StepLifecycle.COMPLETED)]}
            except asyncio.TimeoutError:
                status = StepLifecycle.TIMED_OUT
                error_details = {"message": f"Step '{step.name}' exceeded {timeout:.2f}s.", "traceback": ""}
            except Exception as e:
                status = StepLifecycle.FAILED
                error_details = {"message": str(e), "traceback": traceback.format_exc()}
            finally:
                context.set("active_rule", None)

            context.restore(checkpoint)
            if step.safety_critical:
                escalated = SafetyStageError(f"Safety step '{step.name}' did not complete: {error_details['message']}")
                error_details = {**error_details, "message": str(escalated), "type": type(escalated).__name__}
                print(f"[ERROR] Safety step '{step.name}' failed ({status.value}); answering with the crisis fallback.")
                context.terminate(SAFETY_FALLBACK_REPLY, ConcernTag.CRISIS)
            else:
                print(f"[WARNING] Step '{step.name}' {status.value.lower()}; keeping last known-good draft. {error_details['message']}")
            return {
                "debug_log": [record(status, error_details)],
                "error_info": [{"failed_step": step.name, "rule": rule.name, **error_details}],
            }
        return wrapped_node

    def build(self) -> Runnable:
        sequence = self.rule_table.node_sequence()
        for rule, step in sequence:
            self.graph_builder.add_node(step.name, self._node_wrapper(rule, step))

        names = [step.name for _, step in sequence]
        self.graph_builder.add_edge(START, names[0])
        for current, following in zip(names, names[1:]):
            self.graph_builder.add_conditional_edges(current, route_after_step, {"continue": following, "halt": END})
        self.graph_builder.add_edge(names[-1], END)
        return self.graph_builder.compile()
