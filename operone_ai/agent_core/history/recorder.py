from __future__ import annotations

"""Bounded in-memory command history.

``CommandHistoryRecorder`` implements the executor's ``HistoryRecorder``
contract. Entries are kept oldest-first and pruned from the front once
``max_size`` is exceeded. Reversible entries can later be marked undone by an
undo manager; the recorder itself never reverts anything.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pydantic import Field

from ..schemas.base import utc_now
from ..tools.interfaces import HistoryEntry

logger = logging.getLogger(__name__)


class CommandHistoryEntry(HistoryEntry):
    """A recorded invocation with its identity and undo flag."""

    id: str = Field(default_factory=lambda: f"cmd-{uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=utc_now)
    undone: bool = False


class CommandHistoryRecorder:
    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._entries: List[CommandHistoryEntry] = []

    async def record(self, entry: HistoryEntry) -> None:
        stored = CommandHistoryEntry(**dict(entry))
        self._entries.append(stored)
        if len(self._entries) > self._max_size:
            del self._entries[: len(self._entries) - self._max_size]
        logger.debug(f"Recorded '{stored.tool_name}' as {stored.id} (success={stored.result.success})")

    def get_history(
        self,
        *,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        reversible_only: bool = False,
    ) -> List[CommandHistoryEntry]:
        """
        Filter recorded entries, oldest first.

        ``reversible_only`` keeps reversible entries that have not been undone.
        """
        out = list(self._entries)
        if user_id is not None:
            out = [e for e in out if e.context.user_id == user_id]
        if start is not None:
            out = [e for e in out if e.timestamp >= start]
        if end is not None:
            out = [e for e in out if e.timestamp <= end]
        if reversible_only:
            out = [e for e in out if e.reversible and not e.undone]
        return out

    def get_entry(self, entry_id: str) -> Optional[CommandHistoryEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def mark_undone(self, entry_id: str) -> bool:
        entry = self.get_entry(entry_id)
        if entry is None:
            return False
        entry.undone = True
        return True

    def get_reversible_commands(self, user_id: Optional[str] = None) -> List[CommandHistoryEntry]:
        """Undo candidates, most recent first."""
        return list(reversed(self.get_history(user_id=user_id, reversible_only=True)))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
