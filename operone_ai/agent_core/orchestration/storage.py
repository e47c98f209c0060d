from __future__ import annotations

"""Persistence contract for AI tasks.

``TaskOrchestrator`` mirrors every AI-task and step transition through a
``TaskStorage``. Calls are best-effort: the orchestrator logs storage failures
and keeps running. Persistence engines live outside this package;
``InMemoryTaskStorage`` is the in-process implementation used by default
wiring and tests.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from ..schemas.base import epoch_ms
from ..schemas.domain import AITask, AITaskStatus, StepStatus

logger = logging.getLogger(__name__)


class TaskStorage(Protocol):
    async def save_task(self, task: AITask) -> None: ...

    async def get_task(self, task_id: str) -> Optional[AITask]: ...

    async def update_task_status(self, task_id: str, status: AITaskStatus) -> None: ...

    async def update_step_status(
        self,
        task_id: str,
        step_id: str,
        status: StepStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> None: ...

    async def list_tasks(self, limit: int = 50) -> List[AITask]: ...


class InMemoryTaskStorage:
    """
    Dict-backed ``TaskStorage``.

    Stored records are deep copies, so later in-place mutations by the
    orchestrator become visible only through the ``update_*`` calls.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, AITask] = {}

    async def save_task(self, task: AITask) -> None:
        self._tasks[task.id] = task.model_copy(deep=True)

    async def get_task(self, task_id: str) -> Optional[AITask]:
        stored = self._tasks.get(task_id)
        return stored.model_copy(deep=True) if stored is not None else None

    async def update_task_status(self, task_id: str, status: AITaskStatus) -> None:
        stored = self._tasks.get(task_id)
        if stored is None:
            logger.debug(f"update_task_status ignored for unknown task {task_id}")
            return
        stored.status = status
        stored.touch()

    async def update_step_status(
        self,
        task_id: str,
        step_id: str,
        status: StepStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> None:
        stored = self._tasks.get(task_id)
        if stored is None:
            logger.debug(f"update_step_status ignored for unknown task {task_id}")
            return
        for step in stored.steps:
            if step.id != step_id:
                continue
            step.status = status
            if status == StepStatus.running:
                step.started_at = epoch_ms()
            elif status in (StepStatus.completed, StepStatus.failed):
                step.completed_at = epoch_ms()
            if status == StepStatus.completed:
                step.error = None
            if result is not None:
                step.result = result
            if error is not None:
                step.error = error
            stored.current_step_id = step_id
            stored.touch()
            return
        logger.debug(f"update_step_status ignored for unknown step {step_id} of task {task_id}")

    async def list_tasks(self, limit: int = 50) -> List[AITask]:
        """Most recently created first."""
        ordered = sorted(self._tasks.values(), key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in ordered[:limit]]
