from __future__ import annotations

"""Collaborator contracts consumed by ``ToolExecutor``.

The executor depends on these Protocols instead of concrete implementations.
All methods are async. Default implementations live in
``agent_core.security`` (permissions), ``agent_core.history`` (audit trail)
and below (state snapshots).
"""

from typing import Any, Dict, Protocol, Sequence

from pydantic import Field

from ..schemas.base import BaseSchema, utc_now
from .schema import ToolExecutionContext, ToolExecutionResult


class HistoryEntry(BaseSchema):
    """Everything known about one tool invocation, handed to ``HistoryRecorder``."""

    tool_name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    context: ToolExecutionContext
    result: ToolExecutionResult
    state_before: Any = None
    state_after: Any = None
    reversible: bool = False


class PermissionValidator(Protocol):
    """Decide whether a user holds every required permission."""

    async def validate(self, user_id: str, required_permissions: Sequence[str]) -> bool:
        """
        Args:
            user_id: The calling user.
            required_permissions: Permissions declared by the tool definition.

        Returns:
            True only if every permission is held.
        """
        ...


class HistoryRecorder(Protocol):
    """Audit sink for tool invocations."""

    async def record(self, entry: HistoryEntry) -> None: ...


class StateCapture(Protocol):
    """Snapshot the state a reversible tool is about to touch."""

    async def capture(self, tool_name: str, params: Dict[str, Any], context: ToolExecutionContext) -> Any: ...


class SnapshotStateCapture:
    """Default ``StateCapture``: records what was invoked and when.

    Tool-specific captures (file contents, config values) are expected to be
    supplied by the hosting process.
    """

    async def capture(self, tool_name: str, params: Dict[str, Any], context: ToolExecutionContext) -> Any:
        return {"tool_name": tool_name, "params": dict(params), "timestamp": utc_now()}
