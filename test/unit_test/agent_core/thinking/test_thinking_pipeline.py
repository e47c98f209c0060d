from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from operone_ai.agent_core.events.bus import BusMessage, EventBus
from operone_ai.agent_core.planning.planner import StructuredPlanner
from operone_ai.agent_core.policy.safety import PolicySafetyEngine
from operone_ai.agent_core.schemas.domain import RiskLevel
from operone_ai.agent_core.thinking.events import PipelineStageName
from operone_ai.agent_core.thinking.interfaces import MemoryRecord
from operone_ai.agent_core.thinking.models import PipelineDeps
from operone_ai.agent_core.thinking.pipeline import ThinkingPipeline
from operone_ai.agent_core.thinking.types import (
    ExecutionPlan,
    FormattedOutput,
    Intent,
    IntentCategory,
    OptimizationResult,
    OutputRequest,
    PipelineContext,
    PlanStep,
    RoutingDecision,
    SafetyCheck,
    ToolRoute,
)

REQUEST = "Read the file /tmp/notes.txt and then summarize it"

FULL_RUN = [
    "complexity_detection",
    "intent_analysis",
    "planning",
    "reasoning",
    "safety_validation",
    "tool_routing",
    "execution",
    "output_formatting",
]


class _Intent:
    def __init__(self, category: IntentCategory = IntentCategory.file_read) -> None:
        self.category = category
        self.calls: List[str] = []

    async def detect(self, text: str) -> Intent:
        self.calls.append(text)
        return Intent(category=self.category, confidence=0.9, entities={"filePaths": ["/tmp/notes.txt"]})


class _Planner:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def create_plan(self, *, intent: Intent, user_input: str, memory_context: Optional[List[Any]] = None) -> ExecutionPlan:
        self.calls.append({"intent": intent, "user_input": user_input, "memory_context": memory_context})
        if self.error is not None:
            raise self.error
        return ExecutionPlan(
            id="plan-1",
            steps=[
                PlanStep(id="p1", description="Read file", tool="fs", parameters={"operation": "read", "path": "/tmp/notes.txt"}),
                PlanStep(id="p2", description="Summarize", tool="ai", dependencies=["p1"]),
            ],
        )


class _Reasoning:
    def __init__(self) -> None:
        self.calls = 0

    async def optimize(self, *, plan: ExecutionPlan, memory_context: Optional[List[Any]] = None) -> Dict[str, Any]:
        self.calls += 1
        optimized = plan.model_copy(update={"metadata": {"optimized": True}})
        return {
            "originalPlan": plan.model_dump(),
            "optimizedPlan": optimized.model_dump(),
            "optimizations": ["cached file read"],
            "estimatedImprovement": 0.2,
        }


class _Safety:
    def __init__(self, check: Any = None) -> None:
        self.check = check if check is not None else SafetyCheck(allowed=True, risk_level=RiskLevel.low)
        self.calls = 0

    async def validate(self, plan: ExecutionPlan) -> Any:
        self.calls += 1
        return self.check


class _Router:
    def __init__(self) -> None:
        self.calls = 0

    async def route(self, plan: ExecutionPlan) -> RoutingDecision:
        self.calls += 1
        return RoutingDecision(routes=[ToolRoute(tool=s.tool, method="run") for s in plan.steps])


class _Output:
    def __init__(self) -> None:
        self.requests: List[OutputRequest] = []

    async def format(self, request: OutputRequest) -> FormattedOutput:
        self.requests.append(request)
        return FormattedOutput(format=request.format or "json", content=str(request.content), metadata=request.metadata)


class _Memory:
    def __init__(self) -> None:
        self.recalled: List[str] = []
        self.stored: List[MemoryRecord] = []

    async def recall(self, text: str, intent: Intent) -> List[Any]:
        self.recalled.append(text)
        return [{"content": "user prefers short summaries", "relevance": 0.9}]

    async def store(self, record: MemoryRecord) -> None:
        self.stored.append(record)


class _Runner:
    def __init__(self) -> None:
        self.ran: List[str] = []

    async def run(self, step: PlanStep, route: Optional[ToolRoute], context: PipelineContext) -> Any:
        self.ran.append(step.id)
        return {"step": step.id, "via": route.tool if route else None}


class _Collaborators:
    def __init__(self) -> None:
        self.intent = _Intent()
        self.planner = _Planner()
        self.reasoning = _Reasoning()
        self.safety = _Safety()
        self.router = _Router()
        self.output = _Output()
        self.memory = _Memory()

    def deps(self, **overrides: Any) -> PipelineDeps:
        kwargs: Dict[str, Any] = dict(
            intent=self.intent,
            planner=self.planner,
            reasoning=self.reasoning,
            safety=self.safety,
            router=self.router,
            output=self.output,
            memory_recall=self.memory,
            memory_store=self.memory,
        )
        kwargs.update(overrides)
        return PipelineDeps(**kwargs)


@pytest.fixture
def fakes() -> _Collaborators:
    return _Collaborators()


def _pipeline(deps: PipelineDeps, **kwargs: Any) -> ThinkingPipeline:
    kwargs.setdefault("step_delay_ms", 0)
    return ThinkingPipeline(deps, **kwargs)


@pytest.mark.asyncio
async def test_simple_input_takes_the_fast_path(fakes: _Collaborators, bus: EventBus, captured: List[BusMessage]) -> None:
    pipeline = _pipeline(fakes.deps(event_bus=bus), enable_memory=True)

    result = await pipeline.process("Hello")

    assert result.success is True
    assert result.steps_executed == ["complexity_detection", "simple_response"]
    assert fakes.intent.calls == []
    assert fakes.planner.calls == []
    assert fakes.safety.calls == 0
    assert fakes.memory.stored == []
    assert result.output.format == "plain"
    assert fakes.output.requests[0].content == "Processing simple query: Hello"
    assert fakes.output.requests[0].metadata == {"simple": True}
    assert [m.event for m in captured if m.event in ("start", "complete")] == ["start", "complete"]


@pytest.mark.asyncio
async def test_full_run_executes_every_stage(fakes: _Collaborators, bus: EventBus, captured: List[BusMessage]) -> None:
    pipeline = _pipeline(fakes.deps(event_bus=bus), user_id="alice")

    result = await pipeline.process(REQUEST)

    assert result.success is True
    assert result.steps_executed == FULL_RUN
    assert result.error is None
    assert result.execution_time >= 0
    assert result.context.user_id == "alice"
    assert result.context.plan.metadata == {"optimized": True}
    assert result.context.optimization.optimizations == ["cached file read"]
    assert fakes.planner.calls[0]["memory_context"] is None
    assert fakes.router.calls == 1

    final_request = fakes.output.requests[-1]
    assert final_request.metadata["steps_count"] == 2
    assert final_request.content["message"] == "Steps simulated; no step runner configured"
    assert [o["step_id"] for o in final_request.content["step_outputs"]] == ["p1", "p2"]

    started = [m.payload.stage for m in captured if m.event == "stage:start"]
    assert started == [
        PipelineStageName.complexity_check,
        PipelineStageName.intent_detection,
        PipelineStageName.plan_generation,
        PipelineStageName.reasoning_optimization,
        PipelineStageName.safety_check,
        PipelineStageName.tool_routing,
        PipelineStageName.step_execution,
        PipelineStageName.output_aggregation,
    ]
    assert len([m for m in captured if m.event == "step:executing"]) == 2
    assert len([m for m in captured if m.event == "step:complete"]) == 2
    assert len([m for m in captured if m.event == "stage:progress"]) == 2
    assert all(m.topic == "pipeline" for m in captured)
    assert captured[-1].event == "complete"
    assert captured[-1].payload == {"success": True, "requires_confirmation": False}


@pytest.mark.asyncio
async def test_blocked_plan_reports_every_reason(fakes: _Collaborators) -> None:
    reasons = ["Path '/bin/ls' is in a protected system directory", "Destructive operations are not allowed"]
    fakes.safety.check = SafetyCheck(allowed=False, risk_level=RiskLevel.critical, blocked_reasons=reasons)
    pipeline = _pipeline(fakes.deps(), enable_memory=True)

    result = await pipeline.process(REQUEST)

    assert result.success is False
    for reason in reasons:
        assert reason in result.error
    assert result.error.startswith("Operation blocked: ")
    assert result.output.error is True
    assert result.output.content.startswith("**Error**")
    assert result.steps_executed[-1] == "safety_validation"
    assert fakes.router.calls == 0
    assert fakes.memory.stored[-1].success is False
    assert fakes.memory.stored[-1].error == result.error


@pytest.mark.asyncio
async def test_confirmation_interrupts_without_error(fakes: _Collaborators, bus: EventBus, captured: List[BusMessage]) -> None:
    fakes.safety.check = {
        "allowed": True,
        "riskLevel": "high",
        "risks": ["Remote command execution on peer machine"],
        "requiresConfirmation": True,
        "confirmationMessage": "Proceed?",
    }
    pipeline = _pipeline(fakes.deps(event_bus=bus))

    result = await pipeline.process(REQUEST)

    assert result.success is False
    assert result.requires_confirmation is True
    assert result.error is None
    assert result.output.error is False
    assert result.output.content == "Proceed?"
    assert result.output.metadata["risk_level"] == "high"
    assert result.output.metadata["risks"] == ["Remote command execution on peer machine"]
    assert fakes.router.calls == 0
    assert "execution" not in result.steps_executed
    assert captured[-1].payload == {"success": False, "requires_confirmation": True}


@pytest.mark.asyncio
async def test_collaborator_failure_is_returned_as_result(fakes: _Collaborators, bus: EventBus, captured: List[BusMessage]) -> None:
    fakes.planner.error = RuntimeError("planner offline")
    pipeline = _pipeline(fakes.deps(event_bus=bus), enable_memory=True)

    result = await pipeline.process(REQUEST)

    assert result.success is False
    assert result.error == "planner offline"
    assert result.output.content == "**Error**\n\nplanner offline"
    assert result.steps_executed == ["complexity_detection", "intent_analysis", "memory_retrieval", "planning"]
    assert fakes.safety.calls == 0
    assert fakes.memory.stored[-1].error == "planner offline"
    assert captured[-1].event == "error"
    assert captured[-1].payload == {"error": "planner offline"}


@pytest.mark.asyncio
async def test_memory_is_recalled_and_outcome_stored(fakes: _Collaborators) -> None:
    pipeline = _pipeline(fakes.deps(), enable_memory=True)

    result = await pipeline.process(REQUEST, user_id="bob", session_id="sess-9")

    assert result.steps_executed == FULL_RUN[:2] + ["memory_retrieval"] + FULL_RUN[2:]
    assert fakes.memory.recalled == [REQUEST]
    assert fakes.planner.calls[0]["memory_context"] == [{"content": "user prefers short summaries", "relevance": 0.9}]
    [record] = fakes.memory.stored
    assert record.success is True
    assert record.user_id == "bob"
    assert record.session_id == "sess-9"


@pytest.mark.asyncio
async def test_memory_stages_skipped_when_disabled(fakes: _Collaborators) -> None:
    result = await _pipeline(fakes.deps()).process(REQUEST)
    assert "memory_retrieval" not in result.steps_executed
    assert fakes.memory.recalled == []
    assert fakes.memory.stored == []


@pytest.mark.asyncio
async def test_step_runner_replaces_simulation(fakes: _Collaborators) -> None:
    runner = _Runner()
    result = await _pipeline(fakes.deps(step_runner=runner)).process(REQUEST)

    assert result.success is True
    assert runner.ran == ["p1", "p2"]
    content = fakes.output.requests[-1].content
    assert content["message"] == "Executed 2 step(s)"
    assert content["step_outputs"][0]["output"] == {"step": "p1", "via": "fs"}


@pytest.mark.asyncio
async def test_default_planner_and_policy_require_confirmation_for_shell(fakes: _Collaborators) -> None:
    deps = fakes.deps(
        intent=_Intent(IntentCategory.shell_command),
        planner=StructuredPlanner(),
        reasoning=_Reasoning(),
        safety=PolicySafetyEngine(),
    )
    result = await _pipeline(deps).process("Run the build script in /home/me/project/ and then report back")

    assert result.requires_confirmation is True
    assert result.output.content.startswith("This operation has been flagged as MEDIUM risk.")
    assert result.context.plan.steps[0].tool == "shell"
    assert fakes.router.calls == 0


@pytest.mark.asyncio
async def test_default_policy_blocks_dangerous_shell_command(fakes: _Collaborators) -> None:
    deps = fakes.deps(
        intent=_Intent(IntentCategory.shell_command),
        planner=StructuredPlanner(),
        safety=PolicySafetyEngine(),
    )
    result = await _pipeline(deps).process("Please run rm -rf /home/me/build/ and then rebuild everything")

    assert result.success is False
    assert "Dangerous command detected: rm -rf" in result.error
