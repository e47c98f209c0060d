from __future__ import annotations

"""LangGraph thinking pipeline.

``ThinkingPipeline`` turns one input string into one ``PipelineResult``.

Stages
------

1. Complexity detection (local heuristic). A simple input jumps to a minimal
   ``simple_response`` formatting step and the run ends there.
2. Intent analysis.
3. Memory retrieval, only when memory is enabled.
4. Planning.
5. Reasoning/optimization; the optimized plan replaces the working plan.
6. Safety validation, with three outcomes:

   - not allowed: the run ends with a blocked-operation error;
   - allowed but requires confirmation: the run ends with a non-error
     "awaiting confirmation" result and nothing is executed;
   - allowed: the run continues.

7. Tool routing.
8. Execution and output formatting.

When memory is enabled the outcome of every non-simple run is recorded
afterwards, including blocked, confirmation and failed runs.

Events
------

Every stage publishes ``stage:start`` and ``stage:complete`` (and
``stage:progress`` / ``step:executing`` / ``step:complete`` for sub-steps) on
the ``pipeline`` topic, carrying a ``PipelineEvent``. ``start``, ``complete``
and ``error`` frame the run.

Failure
-------

Any exception raised by a collaborator aborts the remaining stages. It is
caught once in ``process``, recorded to memory when enabled, published as an
``error`` event and returned as ``PipelineResult(success=False)``.

Execution
---------

Without a ``StepRunner`` the execution stage simulates each step with a fixed
delay. The runner is where the pipeline would hand routed steps to
``TaskOrchestrator``/``ToolExecutor``; that wiring is not finalized.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Type, TypeVar

from langgraph.graph import END, StateGraph
from pydantic import BaseModel

from ..schemas.base import epoch_ms
from .complexity import ComplexityDetector
from .events import PIPELINE_TOPIC, PipelineEventStatus, PipelineStageName, create_pipeline_event
from .interfaces import MemoryRecord
from .models import PipelineDeps, _PipelineState
from .types import (
    ExecutionPlan,
    FormattedOutput,
    Intent,
    OptimizationResult,
    OutputRequest,
    PipelineContext,
    PipelineResult,
    RoutingDecision,
    SafetyCheck,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_STEP_DELAY_MS = 100


def _coerce(model: Type[M], value: Any) -> M:
    """Accept a model instance or a mapping that validates as one."""
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class ThinkingPipeline:
    """Sequence the thinking collaborators for a single input."""

    def __init__(
        self,
        deps: PipelineDeps,
        *,
        enable_memory: bool = False,
        step_delay_ms: int = DEFAULT_STEP_DELAY_MS,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            deps: Collaborators and optional event bus.
            enable_memory: Run memory retrieval and outcome recording.
            step_delay_ms: Simulated per-step delay used when no step runner is set.
            user_id: Default user id stamped on every run's context.
            session_id: Default session id; a fresh id is generated per run when omitted.
        """
        self._deps = deps
        self._complexity = deps.complexity if deps.complexity is not None else ComplexityDetector()
        self._enable_memory = enable_memory
        self._step_delay_ms = step_delay_ms
        self._user_id = user_id
        self._session_id = session_id
        self._graph = self._build_graph()

    @property
    def memory_enabled(self) -> bool:
        return self._enable_memory

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_PipelineState)
        g.add_node("complexity", self._node_complexity)
        g.add_node("simple_response", self._node_simple_response)
        g.add_node("intent", self._node_intent)
        g.add_node("memory_retrieval", self._node_memory_retrieval)
        g.add_node("planning", self._node_planning)
        g.add_node("reasoning", self._node_reasoning)
        g.add_node("safety", self._node_safety)
        g.add_node("routing", self._node_routing)
        g.add_node("execution", self._node_execution)
        g.add_node("output_formatting", self._node_output_formatting)
        g.add_node("memory_update", self._node_memory_update)

        g.set_entry_point("complexity")
        g.add_conditional_edges(
            "complexity",
            self._route_after_complexity,
            {"simple": "simple_response", "pipeline": "intent"},
        )
        g.add_edge("simple_response", END)
        g.add_conditional_edges(
            "intent",
            self._route_after_intent,
            {"memory": "memory_retrieval", "plan": "planning"},
        )
        g.add_edge("memory_retrieval", "planning")
        g.add_edge("planning", "reasoning")
        g.add_edge("reasoning", "safety")
        g.add_conditional_edges(
            "safety",
            self._route_after_safety,
            {"halt": "memory_update", "continue": "routing"},
        )
        g.add_edge("routing", "execution")
        g.add_edge("execution", "output_formatting")
        g.add_edge("output_formatting", "memory_update")
        g.add_edge("memory_update", END)
        return g.compile()

    async def process(
        self,
        text: str,
        *,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> PipelineResult:
        """Run the pipeline for one input. Collaborator failures are returned, not raised."""
        ctx_kwargs: Dict[str, Any] = {"input": text, "user_id": user_id or self._user_id}
        if session_id or self._session_id:
            ctx_kwargs["session_id"] = session_id or self._session_id
        context = PipelineContext(**ctx_kwargs)
        steps: List[str] = []

        self._emit("start", {"input": text, "session_id": context.session_id})
        try:
            state: _PipelineState = {"context": context, "steps_executed": steps}
            final = await self._graph.ainvoke(state)
            result: PipelineResult = final["result"]
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Pipeline failed for session {context.session_id}: {message}")
            if self._enable_memory:
                await self._remember_failure(context, message)
            self._emit("error", {"error": message})
            return self._error_result(context, steps, message)

        result.execution_time = epoch_ms() - context.start_time
        self._emit(
            "complete",
            {"success": result.success, "requires_confirmation": result.requires_confirmation},
        )
        return result

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _route_after_complexity(self, state: _PipelineState) -> str:
        complexity = state["context"].complexity
        return "pipeline" if complexity is not None and complexity.should_use_pipeline else "simple"

    def _route_after_intent(self, state: _PipelineState) -> str:
        return "memory" if self._enable_memory else "plan"

    def _route_after_safety(self, state: _PipelineState) -> str:
        check = state["context"].safety
        if check is None or not check.allowed or check.requires_confirmation:
            return "halt"
        return "continue"

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _node_complexity(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("complexity_detection")
        started = time.perf_counter()
        self._stage("stage:start", PipelineStageName.complexity_check, PipelineEventStatus.start, {"input": ctx.input})

        complexity = self._complexity.detect(ctx.input)
        ctx.complexity = complexity

        self._stage(
            "stage:complete",
            PipelineStageName.complexity_check,
            PipelineEventStatus.complete,
            {
                "complexity": complexity.model_dump(),
                "factors": [f for f in complexity.reasoning.split("; ") if f],
                "reasoning": complexity.reasoning,
                "should_use_pipeline": complexity.should_use_pipeline,
                "bypass_reason": None
                if complexity.should_use_pipeline
                else "Query is simple enough for direct response",
            },
            started,
        )
        logger.debug(f"Complexity {complexity.level.value} ({complexity.score:.2f}) for session {ctx.session_id}")
        return state

    async def _node_simple_response(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("simple_response")
        output = await self._format(
            OutputRequest(content=f"Processing simple query: {ctx.input}", format="plain", metadata={"simple": True})
        )
        state["result"] = PipelineResult(
            success=True,
            output=output,
            context=ctx,
            execution_time=epoch_ms() - ctx.start_time,
            steps_executed=list(state["steps_executed"]),
        )
        return state

    async def _node_intent(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("intent_analysis")
        started = time.perf_counter()
        self._stage("stage:start", PipelineStageName.intent_detection, PipelineEventStatus.start, {"input": ctx.input})

        intent = _coerce(Intent, await self._deps.intent.detect(ctx.input))
        ctx.intent = intent

        self._stage(
            "stage:complete",
            PipelineStageName.intent_detection,
            PipelineEventStatus.complete,
            {
                "intent": intent.model_dump(),
                "processing_time": _elapsed_ms(started),
                "confidence": intent.confidence,
                "details": {
                    "action": intent.category.value,
                    "target": intent.entities.get("target"),
                    "parameters": intent.entities,
                },
            },
            started,
        )
        return state

    async def _node_memory_retrieval(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("memory_retrieval")
        started = time.perf_counter()
        self._stage(
            "stage:start",
            PipelineStageName.memory_retrieval,
            PipelineEventStatus.start,
            {"input": ctx.input, "intent": ctx.intent.category.value if ctx.intent else None},
        )

        recall = self._deps.memory_recall
        items: List[Any] = list(await recall.recall(ctx.input, ctx.intent)) if recall is not None else []
        ctx.memory_context = items

        self._stage(
            "stage:complete",
            PipelineStageName.memory_retrieval,
            PipelineEventStatus.complete,
            {
                "long_term": [self._memory_preview(item) for item in items],
                "context_size": len(items),
                "retrieval_time": _elapsed_ms(started),
                "total_entries": len(items),
            },
            started,
        )
        return state

    async def _node_planning(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("planning")
        started = time.perf_counter()
        self._stage(
            "stage:start",
            PipelineStageName.plan_generation,
            PipelineEventStatus.start,
            {
                "intent": ctx.intent.category.value if ctx.intent else None,
                "complexity": ctx.complexity.level.value if ctx.complexity else None,
            },
        )

        plan = _coerce(
            ExecutionPlan,
            await self._deps.planner.create_plan(
                intent=ctx.intent, user_input=ctx.input, memory_context=ctx.memory_context
            ),
        )
        ctx.plan = plan

        self._stage(
            "stage:complete",
            PipelineStageName.plan_generation,
            PipelineEventStatus.complete,
            {
                "plan": plan.model_dump(),
                "steps": [
                    {
                        "id": s.id,
                        "action": s.description,
                        "tool": s.tool,
                        "dependencies": list(s.dependencies),
                        "estimated_time": s.estimated_duration,
                    }
                    for s in plan.steps
                ],
                "dag": self._plan_dag(plan),
                "total_steps": len(plan.steps),
                "estimated_duration": plan.total_estimated_duration,
            },
            started,
        )
        return state

    async def _node_reasoning(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("reasoning")
        started = time.perf_counter()
        plan = ctx.plan
        self._stage(
            "stage:start",
            PipelineStageName.reasoning_optimization,
            PipelineEventStatus.start,
            {"plan_steps": len(plan.steps) if plan else 0},
        )

        optimization = _coerce(
            OptimizationResult,
            await self._deps.reasoning.optimize(plan=plan, memory_context=ctx.memory_context),
        )
        ctx.optimization = optimization
        ctx.plan = optimization.optimized_plan

        self._stage(
            "stage:complete",
            PipelineStageName.reasoning_optimization,
            PipelineEventStatus.complete,
            {
                "original_steps": len(optimization.original_plan.steps),
                "optimized_steps": len(optimization.optimized_plan.steps),
                "parallelizable": optimization.parallel_groups
                or optimization.optimized_plan.parallel_groups
                or [],
                "estimated_speedup": optimization.estimated_improvement or 0,
                "optimizations": list(optimization.optimizations),
            },
            started,
        )
        return state

    async def _node_safety(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("safety_validation")
        started = time.perf_counter()
        steps = ctx.plan.steps if ctx.plan else []
        self._stage("stage:start", PipelineStageName.safety_check, PipelineEventStatus.start, {"steps": len(steps)})

        check = _coerce(SafetyCheck, await self._deps.safety.validate(ctx.plan))
        ctx.safety = check

        self._stage(
            "stage:complete",
            PipelineStageName.safety_check,
            PipelineEventStatus.complete,
            {
                "overall_safe": check.allowed,
                "risk_level": check.risk_level.value,
                "warnings": list(check.risks),
                "requires_confirmation": check.requires_confirmation,
                "blocked_reasons": check.blocked_reasons,
            },
            started,
        )

        if not check.allowed:
            reasons = ", ".join(check.blocked_reasons or [])
            message = f"Operation blocked: {reasons}" if reasons else "Operation blocked"
            logger.warning(f"Session {ctx.session_id}: {message}")
            state["result"] = self._error_result(ctx, state["steps_executed"], message)
        elif check.requires_confirmation:
            logger.info(f"Session {ctx.session_id} awaiting confirmation (risk={check.risk_level.value})")
            state["result"] = self._confirmation_result(ctx, state["steps_executed"], check)
        return state

    async def _node_routing(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("tool_routing")
        started = time.perf_counter()
        steps = ctx.plan.steps if ctx.plan else []
        self._stage("stage:start", PipelineStageName.tool_routing, PipelineEventStatus.start, {"steps": len(steps)})

        routing = _coerce(RoutingDecision, await self._deps.router.route(ctx.plan))
        ctx.routing = routing

        for index, route in enumerate(routing.routes):
            self._stage(
                "stage:progress",
                PipelineStageName.tool_routing,
                PipelineEventStatus.progress,
                {
                    "step_id": steps[index].id if index < len(steps) else f"step-{index}",
                    "selected_tool": route.tool,
                    "route": route.model_dump(),
                    "reasoning": f"Selected {route.tool} for {route.method}",
                },
            )

        self._stage(
            "stage:complete",
            PipelineStageName.tool_routing,
            PipelineEventStatus.complete,
            {"total_routes": len(routing.routes), "execution_mode": routing.execution_mode},
            started,
        )
        return state

    async def _node_execution(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("execution")
        started = time.perf_counter()
        total = len(ctx.plan.steps) if ctx.plan else 0
        self._stage(
            "stage:start", PipelineStageName.step_execution, PipelineEventStatus.start, {"total_steps": total}
        )

        state["execution_result"] = await self._execute_steps(ctx)

        self._stage(
            "stage:complete",
            PipelineStageName.step_execution,
            PipelineEventStatus.complete,
            {"total_steps": total, "duration": _elapsed_ms(started)},
            started,
        )
        return state

    async def _node_output_formatting(self, state: _PipelineState) -> _PipelineState:
        ctx = state["context"]
        state["steps_executed"].append("output_formatting")
        started = time.perf_counter()
        routing = ctx.routing
        mode = routing.execution_mode if routing else "sequential"
        self._stage(
            "stage:start", PipelineStageName.output_aggregation, PipelineEventStatus.start, {"execution_mode": mode}
        )

        output = await self._format(
            OutputRequest(
                content=state.get("execution_result"),
                metadata={
                    "execution_mode": mode,
                    "steps_count": len(ctx.plan.steps) if ctx.plan else 0,
                    "optimizations": list(ctx.optimization.optimizations) if ctx.optimization else [],
                },
            )
        )

        self._stage(
            "stage:complete",
            PipelineStageName.output_aggregation,
            PipelineEventStatus.complete,
            {
                "output": output.model_dump(),
                "format": output.format,
                "content": output.content,
                "aggregation_method": mode,
                "metadata": output.metadata or {},
            },
            started,
        )
        state["result"] = PipelineResult(
            success=True,
            output=output,
            context=ctx,
            execution_time=epoch_ms() - ctx.start_time,
            steps_executed=list(state["steps_executed"]),
        )
        return state

    async def _node_memory_update(self, state: _PipelineState) -> _PipelineState:
        store = self._deps.memory_store
        if not self._enable_memory or store is None:
            return state

        ctx = state["context"]
        result = state["result"]
        started = time.perf_counter()
        self._stage(
            "stage:start",
            PipelineStageName.memory_update,
            PipelineEventStatus.start,
            {"has_output": result.success},
        )
        await store.store(
            MemoryRecord(
                input=ctx.input,
                session_id=ctx.session_id,
                user_id=ctx.user_id,
                success=result.success,
                output=result.output,
                error=result.error,
                metadata={"requires_confirmation": result.requires_confirmation},
            )
        )
        self._stage(
            "stage:complete",
            PipelineStageName.memory_update,
            PipelineEventStatus.complete,
            {"saved": True, "entries": 1, "success": result.success, "duration": _elapsed_ms(started)},
            started,
        )
        return state

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _execute_steps(self, ctx: PipelineContext) -> Dict[str, Any]:
        plan_steps = ctx.plan.steps if ctx.plan else []
        routes = ctx.routing.routes if ctx.routing else []
        runner = self._deps.step_runner
        total = len(plan_steps)
        outputs: List[Dict[str, Any]] = []

        for index, step in enumerate(plan_steps):
            step_start = epoch_ms()
            base = {
                "step_id": step.id,
                "step_index": index,
                "total_steps": total,
                "description": step.description,
                "tool": step.tool,
                "start_time": step_start,
            }
            self._stage(
                "step:executing",
                PipelineStageName.step_execution,
                PipelineEventStatus.progress,
                {**base, "status": "running", "progress": index / total * 100},
            )

            if runner is not None:
                route = routes[index] if index < len(routes) else None
                step_output = await runner.run(step, route, ctx)
            else:
                if self._step_delay_ms > 0:
                    await asyncio.sleep(self._step_delay_ms / 1000.0)
                step_output = {"status": "success", "message": f"Executed {step.description}"}
            outputs.append({"step_id": step.id, "output": step_output})

            end = epoch_ms()
            self._stage(
                "step:complete",
                PipelineStageName.step_execution,
                PipelineEventStatus.progress,
                {
                    **base,
                    "status": "complete",
                    "progress": (index + 1) / total * 100,
                    "end_time": end,
                    "duration": end - step_start,
                    "output": step_output,
                },
            )

        return {
            "message": f"Executed {total} step(s)" if runner is not None else "Steps simulated; no step runner configured",
            "routes": [{"tool": r.tool, "method": r.method, "status": "complete"} for r in routes],
            "plan": ctx.plan.model_dump() if ctx.plan else None,
            "step_outputs": outputs,
        }

    async def _format(self, request: OutputRequest) -> FormattedOutput:
        return _coerce(FormattedOutput, await self._deps.output.format(request))

    async def _remember_failure(self, ctx: PipelineContext, message: str) -> None:
        store = self._deps.memory_store
        if store is None:
            return
        try:
            await store.store(
                MemoryRecord(
                    input=ctx.input, session_id=ctx.session_id, user_id=ctx.user_id, success=False, error=message
                )
            )
        except Exception as e:
            logger.warning(f"Recording failed run to memory failed: {e}")

    def _error_result(self, ctx: PipelineContext, steps: List[str], message: str) -> PipelineResult:
        return PipelineResult(
            success=False,
            output=FormattedOutput(
                format="markdown",
                content=f"**Error**\n\n{message}",
                error=True,
                error_message=message,
            ),
            context=ctx,
            execution_time=epoch_ms() - ctx.start_time,
            steps_executed=list(steps),
            error=message,
        )

    def _confirmation_result(self, ctx: PipelineContext, steps: List[str], check: SafetyCheck) -> PipelineResult:
        return PipelineResult(
            success=False,
            output=FormattedOutput(
                format="markdown",
                content=check.confirmation_message or "Confirmation required",
                error=False,
                metadata={
                    "requires_confirmation": True,
                    "risk_level": check.risk_level.value,
                    "risks": list(check.risks),
                },
            ),
            context=ctx,
            execution_time=epoch_ms() - ctx.start_time,
            steps_executed=list(steps),
            requires_confirmation=True,
        )

    @staticmethod
    def _plan_dag(plan: ExecutionPlan) -> Dict[str, Any]:
        return {
            "nodes": [{"id": s.id, "label": s.description, "type": s.tool} for s in plan.steps],
            "edges": [
                {"from": dep, "to": s.id, "type": "dependency"} for s in plan.steps for dep in s.dependencies
            ],
        }

    @staticmethod
    def _memory_preview(item: Any) -> Dict[str, Any]:
        if isinstance(item, dict):
            return {
                "content": str(item.get("content", item)),
                "relevance": item.get("relevance", 0.5),
                "source": item.get("source"),
            }
        return {"content": str(item), "relevance": 0.5, "source": None}

    def _stage(
        self,
        event: str,
        stage: PipelineStageName,
        status: PipelineEventStatus,
        data: Any,
        started: Optional[float] = None,
    ) -> None:
        metadata = {"processing_time": _elapsed_ms(started)} if started is not None else None
        logger.debug(f"{event} {stage.value}")
        self._emit(event, create_pipeline_event(stage, status, data, metadata))

    def _emit(self, event: str, payload: Any) -> None:
        bus = self._deps.event_bus
        if bus is not None:
            bus.publish(PIPELINE_TOPIC, event, payload)
