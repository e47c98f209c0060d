from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from operone_ai.agent_core.events.bus import BusMessage, EventBus
from operone_ai.agent_core.orchestration.models import TaskStatus
from operone_ai.agent_core.orchestration.orchestrator import TaskOrchestrator
from operone_ai.agent_core.orchestration.storage import InMemoryTaskStorage
from operone_ai.agent_core.schemas.domain import AITask, AITaskStatus, StepStatus, TaskStep
from operone_ai.agent_core.tools.executor import ToolExecutor
from operone_ai.agent_core.tools.registry import ToolRegistry
from operone_ai.agent_core.tools.schema import ToolCategory, ToolDefinition, ToolExecutionContext, ToolExecutionResult
from operone_ai.agent_core.tools.step_adapter import ToolStepAdapter
from operone_ai.core.errors import ToolExecutorNotConfiguredError


class _StepExecutor:
    """Records calls and fails for tools listed in ``failures``."""

    def __init__(self, failures: Optional[Dict[str, str]] = None) -> None:
        self.failures = failures or {}
        self.calls: List[Tuple[str, Dict[str, Any], str]] = []

    async def __call__(self, tool: str, args: Dict[str, Any], step_id: str) -> Any:
        self.calls.append((tool, args, step_id))
        if tool in self.failures:
            raise RuntimeError(self.failures[tool])
        return {"tool": tool, "ok": True}


class _BrokenStorage:
    async def save_task(self, task: AITask) -> None:
        raise RuntimeError("db down")

    async def get_task(self, task_id: str) -> Optional[AITask]:
        raise RuntimeError("db down")

    async def update_task_status(self, task_id: str, status: AITaskStatus) -> None:
        raise RuntimeError("db down")

    async def update_step_status(self, task_id: str, step_id: str, status: StepStatus, result: Any = None, error: Optional[str] = None) -> None:
        raise RuntimeError("db down")

    async def list_tasks(self, limit: int = 50) -> List[AITask]:
        raise RuntimeError("db down")


def _ai_task(*tools: str) -> AITask:
    return AITask(
        prompt="Clean up the downloads folder and archive old files",
        steps=[TaskStep(id=f"s{i}", tool=t, args={"n": i}) for i, t in enumerate(tools, start=1)],
    )


@pytest.mark.asyncio
async def test_failing_step_fails_task_and_skips_the_rest(bus: EventBus, captured: List[BusMessage]) -> None:
    storage = InMemoryTaskStorage()
    executor = _StepExecutor(failures={"write": "disk full"})
    orch = TaskOrchestrator(storage=storage, event_bus=bus, step_executor=executor)
    ai = _ai_task("read", "write", "notify")

    wrapper = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert ai.status == AITaskStatus.failed
    assert [s.status for s in ai.steps] == [StepStatus.completed, StepStatus.failed, StepStatus.pending]
    assert ai.steps[1].error == "disk full"
    assert ai.steps[0].result == {"tool": "read", "ok": True}
    assert [c[0] for c in executor.calls] == ["read", "write"]

    assert wrapper.status == TaskStatus.FAILED
    assert str(wrapper.error) == "disk full"

    stored = await storage.get_task(ai.id)
    assert stored.status == AITaskStatus.failed
    assert stored.steps[1].status == StepStatus.failed
    assert stored.steps[1].error == "disk full"
    assert stored.steps[2].status == StepStatus.pending

    aitask_events = [m.event for m in captured if m.topic == "aitask"]
    assert aitask_events == [
        "created",
        "updated",
        "step-started",
        "step-completed",
        "step-started",
        "step-failed",
        "failed",
    ]
    failed = [m for m in captured if m.key == "aitask:step-failed"][0]
    assert failed.payload["error"] == "disk full"


@pytest.mark.asyncio
async def test_successful_ai_task(bus: EventBus, captured: List[BusMessage]) -> None:
    storage = InMemoryTaskStorage()
    orch = TaskOrchestrator(storage=storage, event_bus=bus)
    orch.set_tool_executor(_StepExecutor())
    ai = _ai_task("read", "summarize")

    wrapper = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert wrapper.id == ai.id
    assert wrapper.name == f"AI Task: {ai.prompt[:30]}..."
    assert wrapper.status == TaskStatus.COMPLETED
    assert wrapper.result == [{"tool": "read", "ok": True}, {"tool": "summarize", "ok": True}]
    assert ai.status == AITaskStatus.completed
    assert ai.current_step_id == "s2"
    assert orch.get_ai_task(ai.id) is ai
    assert orch.get_stats().ai_tasks == 1

    stored = await storage.get_task(ai.id)
    assert stored.status == AITaskStatus.completed
    assert all(s.status == StepStatus.completed for s in stored.steps)
    assert "aitask:completed" in [m.key for m in captured]
    assert captured[-1].key == "task:completed"


@pytest.mark.asyncio
async def test_completed_steps_are_not_repeated() -> None:
    executor = _StepExecutor()
    orch = TaskOrchestrator(step_executor=executor)
    ai = _ai_task("read", "write")
    ai.steps[0].status = StepStatus.completed

    await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert [c[0] for c in executor.calls] == ["write"]
    assert ai.status == AITaskStatus.completed


@pytest.mark.asyncio
async def test_missing_step_executor_fails_the_task(bus: EventBus, captured: List[BusMessage]) -> None:
    storage = InMemoryTaskStorage()
    orch = TaskOrchestrator(storage=storage, event_bus=bus)
    ai = _ai_task("read")
    wrapper = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert wrapper.status == TaskStatus.FAILED
    assert isinstance(wrapper.error, ToolExecutorNotConfiguredError)
    assert orch.get_ai_task(ai.id).status == AITaskStatus.failed
    assert (await storage.get_task(ai.id)).status == AITaskStatus.failed
    assert [m.event for m in captured if m.topic == "aitask"] == ["created", "failed"]


@pytest.mark.asyncio
async def test_failed_ai_task_can_be_resubmitted() -> None:
    storage = InMemoryTaskStorage()
    executor = _StepExecutor(failures={"write": "disk full"})
    orch = TaskOrchestrator(storage=storage, step_executor=executor)
    ai = _ai_task("read", "write", "notify")

    first = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)
    assert first.status == TaskStatus.FAILED

    executor.failures.clear()
    second = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert second is not first
    assert orch.get_task(ai.id) is second
    assert second.status == TaskStatus.COMPLETED
    assert ai.status == AITaskStatus.completed
    assert [c[0] for c in executor.calls] == ["read", "write", "write", "notify"]
    assert [s.status for s in ai.steps] == [StepStatus.completed] * 3
    assert ai.steps[1].error is None

    stored = await storage.get_task(ai.id)
    assert stored.status == AITaskStatus.completed
    assert stored.steps[1].error is None


@pytest.mark.asyncio
async def test_resubmitting_a_running_ai_task_is_rejected_without_side_effects(
    bus: EventBus, captured: List[BusMessage]
) -> None:
    release = asyncio.Event()

    async def blocking(tool: str, args: Dict[str, Any], step_id: str) -> Any:
        await release.wait()
        return tool

    orch = TaskOrchestrator(event_bus=bus, step_executor=blocking)
    ai = _ai_task("read")
    wrapper = await orch.submit_ai_task(ai)
    await asyncio.sleep(0)
    created_before = len([m for m in captured if m.key == "aitask:created"])

    with pytest.raises(ValueError, match="already exists"):
        await orch.submit_ai_task(ai)

    assert len([m for m in captured if m.key == "aitask:created"]) == created_before
    assert orch.get_task(ai.id) is wrapper

    release.set()
    await orch.wait_for_all(timeout_ms=2000)
    assert wrapper.status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_storage_failures_are_tolerated() -> None:
    orch = TaskOrchestrator(storage=_BrokenStorage(), step_executor=_StepExecutor())
    ai = _ai_task("read")
    wrapper = await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert wrapper.status == TaskStatus.COMPLETED
    assert ai.status == AITaskStatus.completed


@pytest.mark.asyncio
async def test_steps_run_through_tool_executor() -> None:
    reg = ToolRegistry()

    async def read(params: Dict[str, Any], ctx: ToolExecutionContext) -> ToolExecutionResult:
        return ToolExecutionResult(success=True, data=f"read {params['n']}")

    async def write(params: Dict[str, Any], ctx: ToolExecutionContext) -> ToolExecutionResult:
        return ToolExecutionResult(success=False, error="disk full")

    reg.register(ToolDefinition(name="read", description="read", category=ToolCategory.file), read)
    reg.register(ToolDefinition(name="write", description="write", category=ToolCategory.file), write)

    orch = TaskOrchestrator()
    orch.set_tool_executor(ToolStepAdapter(ToolExecutor(reg), ToolExecutionContext(user_id="u", session_id="s")))
    ai = _ai_task("read", "write", "read")

    await orch.submit_ai_task(ai)
    await orch.wait_for_all(timeout_ms=2000)

    assert ai.status == AITaskStatus.failed
    assert ai.steps[0].result == "read 1"
    assert ai.steps[1].status == StepStatus.failed
    assert ai.steps[1].error == "disk full"
    assert ai.steps[2].status == StepStatus.pending
