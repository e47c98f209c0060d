"""In-process publish/subscribe channel keyed by ``topic:event``.

Publishers call ``publish(topic, event, payload)``; subscribers register a
shell-style pattern (``"pipeline:*"``, ``"aitask:step-*"``, ``"*"``) that is
matched against the ``"<topic>:<event>"`` key.

Delivery is synchronous and happens inside the ``publish`` call. Handlers
may be plain functions or coroutine functions; coroutines are scheduled on the
running loop and not awaited by the publisher. A handler that raises is
logged and skipped, the remaining handlers still run.

Delivery is not atomic with respect to the publisher's own bookkeeping: the
orchestrator emits while it mutates its queue, so a handler may observe a
state that is about to change again before ``publish`` returns.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Callable, Deque, List, Optional, Set

from ..schemas.base import epoch_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusMessage:
    """One published event as seen by handlers."""

    topic: str
    event: str
    payload: Any = None
    timestamp: float = field(default_factory=epoch_ms)

    @property
    def key(self) -> str:
        return f"{self.topic}:{self.event}"


EventHandler = Callable[[BusMessage], Any]


@dataclass
class _Subscription:
    pattern: str
    handler: EventHandler


class EventBus:
    """Typed topic/event channel with wildcard subscriptions and bounded history."""

    def __init__(self, *, max_history: int = 200) -> None:
        self._subscriptions: List[_Subscription] = []
        self._history: Deque[BusMessage] = deque(maxlen=max_history)
        self._pending: Set[asyncio.Task[Any]] = set()

    def subscribe(self, pattern: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for every key matching ``pattern``.

        Returns:
            A callable that removes this subscription. Calling it twice is a no-op.
        """
        sub = _Subscription(pattern=pattern, handler=handler)
        self._subscriptions.append(sub)
        logger.debug(f"Handler subscribed to '{pattern}'")

        def unsubscribe() -> None:
            try:
                self._subscriptions.remove(sub)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, topic: str, event: str, payload: Any = None) -> int:
        """
        Deliver an event to every matching handler.

        Returns:
            Number of handlers that were invoked without raising.
        """
        message = BusMessage(topic=topic, event=event, payload=payload)
        self._history.append(message)

        delivered = 0
        for sub in list(self._subscriptions):
            if not fnmatchcase(message.key, sub.pattern):
                continue
            try:
                outcome = sub.handler(message)
                if inspect.isawaitable(outcome):
                    self._schedule(outcome, sub.pattern)
                delivered += 1
            except Exception as e:
                logger.warning(f"Event handler for '{sub.pattern}' failed on '{message.key}': {e}")
        return delivered

    def history(self, pattern: Optional[str] = None) -> List[BusMessage]:
        """Recently published messages, oldest first, optionally filtered by pattern."""
        if pattern is None:
            return list(self._history)
        return [m for m in self._history if fnmatchcase(m.key, pattern)]

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _schedule(self, awaitable: Any, pattern: str) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning(f"Async event handler for '{pattern}' failed: {t.exception()}")

        task.add_done_callback(_done)
