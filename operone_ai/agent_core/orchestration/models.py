from __future__ import annotations

"""Scheduler units and statistics for ``TaskOrchestrator``.

``Task`` carries an executable body, so it is a plain dataclass rather than a
pydantic record. It is created by the caller, handed to ``add_task`` and
mutated only by the orchestrator afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable, List, Optional
from uuid import uuid4

from ..schemas.base import BaseSchema, epoch_ms

TaskBody = Callable[[], Awaitable[Any]]


class TaskPriority(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class TaskStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})


@dataclass(eq=False)
class Task:
    """
    Generic schedulable unit.

    Attributes:
        name: Human-readable label.
        execute: Zero-argument coroutine function producing the task result.
        id: Unique key inside one orchestrator.
        priority: Queue ordering; higher runs first, FIFO among equals.
        dependencies: Ids that must be COMPLETED before this task is queued.
        status: Lifecycle state, owned by the orchestrator.
        error: The exception raised by ``execute`` when the task failed.
    """

    name: str
    execute: TaskBody
    id: str = field(default_factory=lambda: str(uuid4()))
    priority: TaskPriority = TaskPriority.NORMAL
    dependencies: List[str] = field(default_factory=list)

    status: TaskStatus = TaskStatus.PENDING
    created_at: float = field(default_factory=epoch_ms)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OrchestratorStats(BaseSchema):
    total: int
    ai_tasks: int
    pending: int
    queued: int
    running: int
    completed: int
    failed: int
    cancelled: int
    max_concurrent: int
