"""Exception hierarchy shared by the agent core.

Only conditions that the caller cannot express as data are raised. Tool and
step failures are normally returned as result objects (see
``ToolExecutionResult`` and ``ToolErrorKind``); the exceptions below cover the
remaining cases.
"""

from __future__ import annotations

from enum import Enum


class OperoneError(Exception):
    """Base class for all errors raised by ``operone_ai``."""


class DuplicateToolError(OperoneError, ValueError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is already registered")
        self.name = name


class TaskNotFoundError(OperoneError, KeyError):
    """No task with the given id is known to the orchestrator."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id

    def __str__(self) -> str:
        return str(self.args[0])


class ToolExecutorNotConfiguredError(OperoneError, RuntimeError):
    """An AI task was executed without a step executor callback."""

    def __init__(self) -> None:
        super().__init__("Tool executor not configured for AI tasks")


class ToolStepError(OperoneError, RuntimeError):
    """A tool-backed AI task step returned an unsuccessful result.

    ``str(err)`` is the tool's own error text so that the failed step records it
    verbatim.
    """

    def __init__(self, message: str, *, tool_name: str, kind: "ToolErrorKind | None" = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name
        self.kind = kind


class ToolErrorKind(str, Enum):
    """Machine-readable classification of a failed tool execution."""

    not_found = "not_found"
    permission_denied = "permission_denied"
    parameter_validation = "parameter_validation"
    timeout = "timeout"
    execution_failure = "execution_failure"
