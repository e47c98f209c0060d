"""Task orchestration, tool execution and the thinking pipeline.

Design overview
---------------

The agent core is split into two cooperating halves:

- **Execution** runs work:

  - ``orchestration.TaskOrchestrator`` schedules prioritized tasks with
    dependency gating under a concurrency bound, and runs multi-step AI tasks.
  - ``tools.ToolExecutor`` executes registered tools with permission checks,
    parameter validation, a timeout, history recording and state capture.

- **Thinking** decides what to run:

  - ``thinking.ThinkingPipeline`` takes a request through complexity
    detection, intent, memory, planning, reasoning, safety, routing,
    execution, output formatting and memory update, as a LangGraph graph.
  - ``policy.PolicySafetyEngine`` is the default safety stage.

Both halves publish progress on ``events.EventBus``.

Typical usage
-------------

Use ``factory`` to build components from ``operone_ai.core.config.Settings``:

1. Build a ``ToolRegistry`` and register tools.
2. ``build_tool_executor`` and ``build_orchestrator``.
3. ``connect_tool_executor`` so AI-task steps run as tool calls.
4. ``submit_ai_task`` and ``wait_for_all``.
"""

from .events.bus import EventBus
from .orchestration import Task, TaskOrchestrator, TaskPriority, TaskStatus
from .schemas.domain import AITask, AITaskStatus, RiskLevel, StepStatus, TaskStep
from .thinking import PipelineDeps, ThinkingPipeline
from .tools import ToolExecutor, ToolRegistry

__all__ = [
    "AITask",
    "AITaskStatus",
    "EventBus",
    "PipelineDeps",
    "RiskLevel",
    "StepStatus",
    "Task",
    "TaskOrchestrator",
    "TaskPriority",
    "TaskStatus",
    "TaskStep",
    "ThinkingPipeline",
    "ToolExecutor",
    "ToolRegistry",
]
