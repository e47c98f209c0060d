"""Tool definitions, execution context/result models and export helpers.

A tool is a named, permissioned unit of work described by a ``ToolDefinition``
and backed by an async executor function. Definitions are validated once on
registration and never mutated afterwards.

The ``to_*`` helpers translate a definition into the tool-calling schemas used
by external model APIs. Nothing inside the agent core depends on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from ..schemas.base import BaseSchema, utc_now
from operone_ai.core.errors import ToolErrorKind

ParameterType = Literal["string", "number", "boolean", "object", "array"]


class ToolCategory(str, Enum):
    file = "file"
    shell = "shell"
    network = "network"
    ai = "ai"
    system = "system"
    data = "data"
    task = "task"


class ToolParameter(BaseSchema):
    """One declared tool parameter. ``items``/``properties`` describe nested shapes."""

    name: str
    type: ParameterType
    description: str = ""
    required: bool = False
    enum: Optional[List[str]] = None
    items: Optional[ToolParameter] = None
    properties: Optional[Dict[str, ToolParameter]] = None


class ToolDefinition(BaseSchema):
    """
    Immutable description of a tool.

    Attributes:
        name: Unique registry key.
        category: Closed category set used for indexing.
        parameters: Ordered parameter declarations checked before execution.
        required_permissions: Every permission a caller must hold.
        reversible: Whether before/after state may be captured for undo.
        dangerous: Informational flag for planners and UIs.
        peer_required: The tool must run on a remote peer.
        required_capabilities: Peer capabilities needed when ``peer_required`` is set.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    description: str
    category: ToolCategory
    parameters: List[ToolParameter] = Field(default_factory=list)
    required_permissions: List[str] = Field(default_factory=list, alias="requiredPermissions")
    reversible: bool = False
    dangerous: bool = False
    peer_required: bool = Field(default=False, alias="peerRequired")
    required_capabilities: List[str] = Field(default_factory=list, alias="requiredCapabilities")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("parameters")
    @classmethod
    def _unique_parameter_names(cls, value: List[ToolParameter]) -> List[ToolParameter]:
        seen: set[str] = set()
        for p in value:
            if p.name in seen:
                raise ValueError(f"duplicate parameter name: {p.name}")
            seen.add(p.name)
        return value


class ToolExecutionContext(BaseSchema):
    """Caller identity passed to every execution. Never persisted by the executor."""

    user_id: str
    peer_id: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    session_id: str
    timestamp: datetime = Field(default_factory=utc_now)


class ToolResultMetadata(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    reversible: Optional[bool] = None
    undo_command: Optional[str] = None
    state_before: Any = None
    state_after: Any = None


class ToolExecutionResult(BaseSchema):
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ToolErrorKind] = None
    duration: float = Field(default=0.0, description="Wall-clock duration in milliseconds")
    metadata: Optional[ToolResultMetadata] = None

    @classmethod
    def failure(cls, error: str, *, kind: ToolErrorKind, duration: float = 0.0) -> ToolExecutionResult:
        return cls(success=False, error=error, error_kind=kind, duration=duration)


ToolExecutorFunction = Callable[[Dict[str, Any], ToolExecutionContext], Awaitable[ToolExecutionResult]]


@dataclass(frozen=True)
class RegisteredTool:
    """A definition paired with its executor. Owned by ``ToolRegistry``."""

    definition: ToolDefinition
    executor: ToolExecutorFunction

    @property
    def name(self) -> str:
        return self.definition.name


def _parameter_properties(tool: ToolDefinition, *, nested: bool = False) -> Dict[str, Any]:
    props: Dict[str, Any] = {}
    for param in tool.parameters:
        prop: Dict[str, Any] = {"type": param.type, "description": param.description}
        if param.enum:
            prop["enum"] = list(param.enum)
        if nested and param.items is not None:
            prop["items"] = param.items.model_dump(exclude_none=True)
        if nested and param.properties:
            prop["properties"] = {k: v.model_dump(exclude_none=True) for k, v in param.properties.items()}
        props[param.name] = prop
    return props


def _required_names(tool: ToolDefinition) -> List[str]:
    return [p.name for p in tool.parameters if p.required]


def to_openai_function(tool: ToolDefinition) -> Dict[str, Any]:
    """Convert a tool definition to the OpenAI function-calling format."""
    return {
        "name": tool.name,
        "description": tool.description,
        "parameters": {
            "type": "object",
            "properties": _parameter_properties(tool),
            "required": _required_names(tool),
        },
    }


def to_anthropic_tool(tool: ToolDefinition) -> Dict[str, Any]:
    """Convert a tool definition to the Anthropic tool-use format."""
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": {
            "type": "object",
            "properties": _parameter_properties(tool),
            "required": _required_names(tool),
        },
    }


def to_json_schema(tool: ToolDefinition) -> Dict[str, Any]:
    """Convert a tool definition to a generic JSON schema including safety flags."""
    return {
        "name": tool.name,
        "description": tool.description,
        "category": tool.category.value,
        "parameters": {
            "type": "object",
            "properties": _parameter_properties(tool, nested=True),
            "required": _required_names(tool),
        },
        "permissions": list(tool.required_permissions),
        "reversible": tool.reversible,
        "dangerous": tool.dangerous,
    }
