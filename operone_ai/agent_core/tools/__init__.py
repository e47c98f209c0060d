"""Tool catalog and execution.

- ``schema``: tool definitions, execution context/result and export helpers.
- ``registry``: ``ToolRegistry``, the catalog of registered tools.
- ``executor``: ``ToolExecutor``, validated and time-bounded execution.
- ``interfaces``: collaborator Protocols consumed by the executor.
- ``step_adapter``: ``ToolStepAdapter`` for running AI-task steps as tool calls.
"""

from .executor import ToolExecutionOptions, ToolExecutor, ToolInvocation, validate_parameters
from .interfaces import HistoryEntry, HistoryRecorder, PermissionValidator, SnapshotStateCapture, StateCapture
from .registry import ToolRegistry
from .schema import (
    RegisteredTool,
    ToolCategory,
    ToolDefinition,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolParameter,
    ToolResultMetadata,
    to_anthropic_tool,
    to_json_schema,
    to_openai_function,
)
from .step_adapter import ToolStepAdapter

__all__ = [
    "HistoryEntry",
    "HistoryRecorder",
    "PermissionValidator",
    "RegisteredTool",
    "SnapshotStateCapture",
    "StateCapture",
    "ToolCategory",
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolExecutionOptions",
    "ToolExecutionResult",
    "ToolExecutor",
    "ToolInvocation",
    "ToolParameter",
    "ToolRegistry",
    "ToolResultMetadata",
    "ToolStepAdapter",
    "to_anthropic_tool",
    "to_json_schema",
    "to_openai_function",
    "validate_parameters",
]
