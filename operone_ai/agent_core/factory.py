from __future__ import annotations

"""Convenience factories for wiring the agent core.

Every component in ``agent_core`` takes its configuration as constructor
arguments. The helpers here translate ``Settings`` into those arguments and
connect the orchestrator to the tool executor, so application wiring and
tests stay concise while advanced deployments can still build each piece by
hand.
"""

from dataclasses import replace
from typing import Optional

from operone_ai.core.config import Settings
from operone_ai.core.config import settings as default_settings

from .events.bus import EventBus
from .history.recorder import CommandHistoryRecorder
from .orchestration.orchestrator import TaskOrchestrator
from .orchestration.storage import InMemoryTaskStorage, TaskStorage
from .security.permissions import RolePermissionValidator
from .thinking.complexity import ComplexityDetector
from .thinking.models import PipelineDeps
from .thinking.pipeline import ThinkingPipeline
from .tools.executor import ToolExecutionOptions, ToolExecutor
from .tools.interfaces import HistoryRecorder, PermissionValidator, StateCapture
from .tools.registry import ToolRegistry
from .tools.schema import ToolExecutionContext
from .tools.step_adapter import ToolStepAdapter


def build_history_recorder(settings: Optional[Settings] = None) -> CommandHistoryRecorder:
    """Build the in-memory command history sized from settings."""
    cfg = (settings or default_settings).tool_executor
    return CommandHistoryRecorder(max_size=cfg.history_max_size)


def build_tool_executor(
    registry: ToolRegistry,
    *,
    settings: Optional[Settings] = None,
    permission_validator: Optional[PermissionValidator] = None,
    history_recorder: Optional[HistoryRecorder] = None,
    state_capture: Optional[StateCapture] = None,
) -> ToolExecutor:
    """Construct a ``ToolExecutor`` whose timeout behaviour comes from settings.

    A ``RolePermissionValidator`` with no assigned users is used when no
    validator is given, so every permission-gated tool is denied until roles
    are assigned.
    """
    cfg = (settings or default_settings).tool_executor
    return ToolExecutor(
        registry,
        permission_validator=permission_validator if permission_validator is not None else RolePermissionValidator(),
        history_recorder=history_recorder,
        state_capture=state_capture,
        default_timeout_ms=cfg.timeout_ms,
        cancel_on_timeout=cfg.cancel_on_timeout,
    )


def build_orchestrator(
    *,
    settings: Optional[Settings] = None,
    storage: Optional[TaskStorage] = None,
    event_bus: Optional[EventBus] = None,
) -> TaskOrchestrator:
    """Construct a ``TaskOrchestrator`` with in-memory storage by default."""
    cfg = (settings or default_settings).orchestrator
    return TaskOrchestrator(
        cfg.max_concurrent,
        storage=storage if storage is not None else InMemoryTaskStorage(),
        event_bus=event_bus,
    )


def connect_tool_executor(
    orchestrator: TaskOrchestrator,
    executor: ToolExecutor,
    context: ToolExecutionContext,
    *,
    options: Optional[ToolExecutionOptions] = None,
) -> ToolStepAdapter:
    """Run the orchestrator's AI-task steps through ``executor`` as ``context``.

    Returns the adapter that was installed.
    """
    adapter = ToolStepAdapter(executor, context, options=options)
    orchestrator.set_tool_executor(adapter)
    return adapter


def build_complexity_detector(settings: Optional[Settings] = None) -> ComplexityDetector:
    cfg = (settings or default_settings).complexity
    return ComplexityDetector(
        simple_threshold=cfg.simple_threshold,
        complex_threshold=cfg.complex_threshold,
        max_simple_length=cfg.max_simple_length,
    )


def build_pipeline(
    *,
    deps: PipelineDeps,
    settings: Optional[Settings] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> ThinkingPipeline:
    """Construct a ``ThinkingPipeline`` from a dependency bundle and settings.

    A bundle without a complexity detector gets one built from
    ``settings.complexity``.
    """
    settings = settings or default_settings
    cfg = settings.pipeline
    if deps.complexity is None:
        deps = replace(deps, complexity=build_complexity_detector(settings))
    return ThinkingPipeline(
        deps,
        enable_memory=cfg.enable_memory,
        step_delay_ms=cfg.step_delay_ms,
        user_id=user_id,
        session_id=session_id,
    )
