from __future__ import annotations

"""Pipeline dependency bundle and LangGraph state types.

- ``PipelineDeps`` collects the collaborators ``ThinkingPipeline`` calls.
- ``_PipelineState`` is the state passed between LangGraph nodes for one run.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, NotRequired, Optional, Required, TypedDict

from ..events.bus import EventBus
from .complexity import ComplexityDetector
from .interfaces import (
    IntentEngine,
    MemoryRecall,
    MemoryStore,
    OutputEngine,
    PlanningEngine,
    ReasoningEngine,
    SafetyEngine,
    StepRunner,
    ToolRouter,
)
from .types import PipelineContext, PipelineResult


@dataclass(frozen=True)
class PipelineDeps:
    """Dependency bundle for ``ThinkingPipeline``.

    The six engines are required. Memory collaborators are consulted only when
    the pipeline is built with ``enable_memory=True``; a missing one turns its
    stage into a no-op.

    ``complexity`` defaults to a ``ComplexityDetector`` with built-in thresholds.

    ``step_runner`` is the seam between the pipeline and real tool execution.
    When it is absent the execution stage only simulates each step with a
    fixed delay.
    """

    intent: IntentEngine
    planner: PlanningEngine
    reasoning: ReasoningEngine
    safety: SafetyEngine
    router: ToolRouter
    output: OutputEngine

    complexity: Optional[ComplexityDetector] = None
    memory_recall: Optional[MemoryRecall] = None
    memory_store: Optional[MemoryStore] = None
    step_runner: Optional[StepRunner] = None
    event_bus: Optional[EventBus] = None


class _PipelineState(TypedDict):
    """Mutable LangGraph state for a single pipeline run.

    Required keys:

    - ``context``: the run's ``PipelineContext``.
    - ``steps_executed``: stage names appended as each stage starts.

    Optional keys:

    - ``execution_result``: aggregate produced by the execution stage.
    - ``result``: the final ``PipelineResult`` once a terminal stage has run.
    """

    context: Required[PipelineContext]
    steps_executed: Required[List[str]]
    execution_result: NotRequired[Dict[str, Any]]
    result: NotRequired[PipelineResult]
