"""Bounded-concurrency scheduling of generic tasks and multi-step AI tasks."""

from .models import TERMINAL_STATUSES, OrchestratorStats, Task, TaskBody, TaskPriority, TaskStatus
from .orchestrator import StepExecutor, TaskOrchestrator
from .storage import InMemoryTaskStorage, TaskStorage

__all__ = [
    "TERMINAL_STATUSES",
    "InMemoryTaskStorage",
    "OrchestratorStats",
    "StepExecutor",
    "Task",
    "TaskBody",
    "TaskOrchestrator",
    "TaskPriority",
    "TaskStatus",
    "TaskStorage",
]
