from __future__ import annotations

"""Bounded-concurrency task scheduler.

``TaskOrchestrator`` runs ``Task`` bodies on the current event loop with at
most ``max_concurrent`` of them RUNNING at once.

Lifecycle
---------

PENDING -> QUEUED -> RUNNING -> COMPLETED | FAILED | CANCELLED

- A task is queued as soon as every dependency is COMPLETED. Waiting tasks are
  tracked in a reverse index (dependency id -> waiting task ids), so a
  completion only re-checks its direct dependents.
- The queue is kept in descending priority order; a new task goes before the
  first queued task of strictly lower priority, which preserves FIFO order
  among equal priorities.
- A FAILED or CANCELLED dependency leaves its dependents PENDING forever.
- Cancelling a RUNNING task only changes its recorded status. The body keeps
  running and its outcome is stored without overwriting CANCELLED.

AI tasks
--------

``submit_ai_task`` wraps an ``AITask`` in a NORMAL-priority ``Task`` whose body
runs the steps one after another through the injected step executor
``(tool, args, step_id) -> result``. The first failing step fails the AI task
and stops the loop. A finished AI task may be submitted again; completed
steps are skipped, so the run resumes at the failed step. Every transition is
mirrored to the optional ``TaskStorage`` and published on the event bus.

Events are published while the orchestrator mutates its own state. A handler
may run before the publishing call has finished its bookkeeping (for example a
completion handler can observe the next task already starting).

All public methods must be called from the event-loop thread; ``add_task`` and
``submit_ai_task`` require a running loop.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from operone_ai.core.errors import TaskNotFoundError, ToolExecutorNotConfiguredError
from operone_ai.core.logging_config import get_logger

from ..events.bus import EventBus
from ..schemas.base import epoch_ms
from ..schemas.domain import AITask, AITaskStatus, StepStatus
from .models import OrchestratorStats, Task, TaskPriority, TaskStatus
from .storage import TaskStorage

logger = get_logger(__name__)

StepExecutor = Callable[[str, Dict[str, Any], str], Awaitable[Any]]

DEFAULT_MAX_CONCURRENT = 5


class TaskOrchestrator:
    """Priority and dependency aware scheduler with an AI-task extension."""

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        *,
        storage: Optional[TaskStorage] = None,
        event_bus: Optional[EventBus] = None,
        step_executor: Optional[StepExecutor] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            max_concurrent: Upper bound on RUNNING tasks.
            storage: Optional AI-task persistence collaborator.
            event_bus: Bus for lifecycle events; a private bus is created when omitted.
            step_executor: Callback used to run AI-task steps (see ``set_tool_executor``).
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max_concurrent = max_concurrent
        self._storage = storage
        self._bus = event_bus or EventBus()
        self._step_executor = step_executor

        self._tasks: Dict[str, Task] = {}
        self._ai_tasks: Dict[str, AITask] = {}
        self._queue: List[Task] = []
        self._running: Dict[str, asyncio.Task[None]] = {}
        self._dependents: Dict[str, List[str]] = {}
        self._idle_waiters: List[asyncio.Future[None]] = []

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    def set_tool_executor(self, executor: StepExecutor) -> None:
        """Inject the callback that runs one AI-task step."""
        self._step_executor = executor

    # ------------------------------------------------------------------
    # Generic scheduling
    # ------------------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        """
        Register a task and queue it if its dependencies are already met.

        The task is reset to PENDING with a fresh ``created_at``.

        Raises:
            ValueError: If a task with the same id is already known.
            RuntimeError: If no event loop is running.
        """
        asyncio.get_running_loop()
        if task.id in self._tasks:
            raise ValueError(f"Task {task.id} already exists")

        task.dependencies = list(dict.fromkeys(task.dependencies))
        task.status = TaskStatus.PENDING
        task.created_at = epoch_ms()
        self._tasks[task.id] = task
        logger.debug(f"Task added: {task.id} ({task.name}) priority={task.priority.name}")
        self._emit("task", "added", task)

        unmet = self._unmet_dependencies(task)
        if not unmet:
            self._enqueue(task)
        else:
            for dep_id in unmet:
                self._dependents.setdefault(dep_id, []).append(task.id)
            logger.debug(f"Task {task.id} waiting on {unmet}")
        return task

    def cancel_task(self, task_id: str) -> bool:
        """
        Mark a task CANCELLED.

        A queued task is removed from the queue and never starts. A running task
        keeps running; only its recorded status changes.

        Returns:
            False if the task had already reached a terminal state, True otherwise.

        Raises:
            TaskNotFoundError: If the id is unknown.
        """
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.is_terminal:
            logger.debug(f"Cancel ignored for task {task_id} in state {task.status.value}")
            return False

        was_running = task.status == TaskStatus.RUNNING
        task.status = TaskStatus.CANCELLED
        self._queue = [t for t in self._queue if t.id != task_id]
        if was_running:
            logger.info(f"Task {task_id} cancelled while running; the in-flight body is not interrupted")
        else:
            logger.info(f"Task {task_id} cancelled")
        self._emit("task", "cancelled", task)
        self._notify_if_idle()
        return True

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def get_all_tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def get_tasks_by_status(self, status: TaskStatus) -> List[Task]:
        return [t for t in self._tasks.values() if t.status == status]

    async def wait_for_all(self, timeout_ms: Optional[float] = None) -> None:
        """
        Wait until nothing is running and nothing is queued.

        PENDING tasks blocked on unmet dependencies do not keep this waiting.
        ``timeout_ms`` of None or 0 waits without a deadline.

        Raises:
            TimeoutError: If the deadline passes first.
        """
        if self._is_idle():
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        try:
            if not timeout_ms:
                await waiter
            else:
                await asyncio.wait_for(waiter, timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timeout waiting for tasks after {timeout_ms:g}ms") from None
        finally:
            if waiter in self._idle_waiters:
                self._idle_waiters.remove(waiter)

    def get_stats(self) -> OrchestratorStats:
        return OrchestratorStats(
            total=len(self._tasks),
            ai_tasks=len(self._ai_tasks),
            pending=len(self.get_tasks_by_status(TaskStatus.PENDING)),
            queued=len(self._queue),
            running=len(self._running),
            completed=len(self.get_tasks_by_status(TaskStatus.COMPLETED)),
            failed=len(self.get_tasks_by_status(TaskStatus.FAILED)),
            cancelled=len(self.get_tasks_by_status(TaskStatus.CANCELLED)),
            max_concurrent=self._max_concurrent,
        )

    def _unmet_dependencies(self, task: Task) -> List[str]:
        out: List[str] = []
        for dep_id in task.dependencies:
            dep = self._tasks.get(dep_id)
            if dep is None or dep.status != TaskStatus.COMPLETED:
                out.append(dep_id)
        return out

    def _enqueue(self, task: Task) -> None:
        task.status = TaskStatus.QUEUED
        index = next((i for i, t in enumerate(self._queue) if t.priority < task.priority), None)
        if index is None:
            self._queue.append(task)
        else:
            self._queue.insert(index, task)
        self._emit("task", "queued", task)
        self._process_queue()

    def _process_queue(self) -> None:
        while self._queue and len(self._running) < self._max_concurrent:
            self._start(self._queue.pop(0))

    def _start(self, task: Task) -> None:
        task.status = TaskStatus.RUNNING
        task.started_at = epoch_ms()
        # Reserve the slot before publishing so re-entrant handlers see the bound.
        self._running[task.id] = asyncio.get_running_loop().create_task(self._run(task), name=f"task:{task.id}")
        logger.debug(f"Task started: {task.id} ({len(self._running)}/{self._max_concurrent} running)")
        self._emit("task", "started", task)

    async def _run(self, task: Task) -> None:
        try:
            result = await task.execute()
            task.result = result
            task.completed_at = epoch_ms()
            if task.status == TaskStatus.CANCELLED:
                logger.debug(f"Task {task.id} finished after cancellation; status kept")
            else:
                task.status = TaskStatus.COMPLETED
                logger.debug(f"Task completed: {task.id}")
                self._emit("task", "completed", task)
                self._release_dependents(task.id)
        except Exception as e:
            task.error = e
            task.completed_at = epoch_ms()
            if task.status == TaskStatus.CANCELLED:
                logger.debug(f"Task {task.id} failed after cancellation; status kept: {e}")
            else:
                task.status = TaskStatus.FAILED
                logger.warning(f"Task failed: {task.id} ({task.name}): {e}")
                self._emit("task", "failed", task)
        finally:
            self._running.pop(task.id, None)
            self._process_queue()
            self._notify_if_idle()

    def _release_dependents(self, completed_id: str) -> None:
        for waiting_id in self._dependents.pop(completed_id, []):
            waiting = self._tasks.get(waiting_id)
            if waiting is None or waiting.status != TaskStatus.PENDING:
                continue
            if not self._unmet_dependencies(waiting):
                self._enqueue(waiting)

    def _is_idle(self) -> bool:
        return not self._running and not self._queue

    def _notify_if_idle(self) -> None:
        if not self._is_idle():
            return
        for waiter in self._idle_waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _emit(self, topic: str, event: str, payload: Any) -> None:
        self._bus.publish(topic, event, payload)

    # ------------------------------------------------------------------
    # AI tasks
    # ------------------------------------------------------------------

    async def submit_ai_task(self, ai_task: AITask, *, priority: TaskPriority = TaskPriority.NORMAL) -> Task:
        """
        Store an AI task and schedule its steps.

        An AI task whose previous run has finished may be submitted again; the
        old wrapper is replaced and steps already completed are not repeated.

        Returns:
            The wrapping generic ``Task`` (same id as the AI task).

        Raises:
            ValueError: If the AI task is still waiting or its body is still running.
        """
        previous = self._tasks.get(ai_task.id)
        if previous is not None:
            if not previous.is_terminal or ai_task.id in self._running:
                raise ValueError(f"Task {ai_task.id} already exists")
            del self._tasks[ai_task.id]
            logger.info(f"Resubmitting AI task {ai_task.id} after {previous.status.value} run")

        self._ai_tasks[ai_task.id] = ai_task
        if self._storage is not None:
            await self._persist("save_task", ai_task)
        self._emit("aitask", "created", ai_task)

        wrapper = Task(
            id=ai_task.id,
            name=f"AI Task: {ai_task.prompt[:30]}...",
            priority=priority,
            execute=lambda: self._execute_ai_task_steps(ai_task),
        )
        return self.add_task(wrapper)

    def get_ai_task(self, task_id: str) -> Optional[AITask]:
        return self._ai_tasks.get(task_id)

    async def _execute_ai_task_steps(self, task: AITask) -> List[Any]:
        if self._step_executor is None:
            err = ToolExecutorNotConfiguredError()
            task.status = AITaskStatus.failed
            task.touch()
            await self._persist("update_task_status", task.id, AITaskStatus.failed)
            logger.warning(f"AI task {task.id} failed: {err}")
            self._emit("aitask", "failed", {"task_id": task.id, "error": str(err)})
            raise err

        await self._persist("update_task_status", task.id, AITaskStatus.running)
        task.status = AITaskStatus.running
        task.touch()
        self._emit("aitask", "updated", task)

        results: List[Any] = []
        for step in task.steps:
            # Steps completed by an earlier run are not repeated.
            if step.status == StepStatus.completed:
                continue

            step.status = StepStatus.running
            step.started_at = epoch_ms()
            task.current_step_id = step.id
            task.touch()
            await self._persist("update_step_status", task.id, step.id, StepStatus.running)
            self._emit("aitask", "step-started", {"task_id": task.id, "step": step})

            try:
                result = await self._step_executor(step.tool, dict(step.args), step.id)
            except Exception as e:
                message = str(e) or type(e).__name__
                step.status = StepStatus.failed
                step.error = message
                step.completed_at = epoch_ms()
                task.status = AITaskStatus.failed
                task.touch()
                await self._persist("update_step_status", task.id, step.id, StepStatus.failed, None, message)
                await self._persist("update_task_status", task.id, AITaskStatus.failed)
                logger.warning(f"AI task {task.id} failed at step {step.id} ({step.tool}): {message}")
                self._emit("aitask", "step-failed", {"task_id": task.id, "step": step, "error": message})
                self._emit("aitask", "failed", {"task_id": task.id, "error": message})
                raise

            step.status = StepStatus.completed
            step.result = result
            step.error = None
            step.completed_at = epoch_ms()
            task.touch()
            await self._persist("update_step_status", task.id, step.id, StepStatus.completed, result)
            self._emit("aitask", "step-completed", {"task_id": task.id, "step": step, "result": result})
            results.append(result)

        task.status = AITaskStatus.completed
        task.touch()
        await self._persist("update_task_status", task.id, AITaskStatus.completed)
        logger.info(f"AI task completed: {task.id} ({len(results)} step(s) run)")
        self._emit("aitask", "completed", task)
        return results

    async def _persist(self, method: str, *args: Any) -> None:
        if self._storage is None:
            return
        try:
            await getattr(self._storage, method)(*args)
        except Exception as e:
            logger.warning(f"Task storage {method} failed: {e}")
