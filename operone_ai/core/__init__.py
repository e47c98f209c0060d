"""Cross-cutting infrastructure: configuration, logging and error types."""

from .errors import (
    DuplicateToolError,
    OperoneError,
    TaskNotFoundError,
    ToolErrorKind,
    ToolExecutorNotConfiguredError,
    ToolStepError,
)

__all__ = [
    "OperoneError",
    "DuplicateToolError",
    "TaskNotFoundError",
    "ToolErrorKind",
    "ToolExecutorNotConfiguredError",
    "ToolStepError",
]
