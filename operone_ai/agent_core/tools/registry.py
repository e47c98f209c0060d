from __future__ import annotations

"""Tool registry.

The registry is the single source of truth for which tools exist and how to run
them. It maps a tool name to a ``RegisteredTool`` (definition + executor) and
keeps a secondary index by category.

Registration is expected to happen at process start-up. Runtime mutation is
rare and not guarded; all access happens on the event-loop thread.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from operone_ai.core.errors import DuplicateToolError

from .schema import (
    RegisteredTool,
    ToolCategory,
    ToolDefinition,
    ToolExecutorFunction,
    to_anthropic_tool,
    to_json_schema,
    to_openai_function,
)

logger = logging.getLogger(__name__)

ToolFilter = Callable[[ToolDefinition], bool]


class ToolRegistry:
    """
    In-memory catalog of tool definitions and their executors.

    Notes:
        - ``register`` validates the definition and refuses duplicate names.
        - ``get`` returns ``None`` for unknown names; use ``has`` to test membership.
        - Filters (``get_by_category``, ``search`` ...) never mutate the registry.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: Dict[str, RegisteredTool] = {}
        self._categories: Dict[ToolCategory, Set[str]] = {}

    def register(
        self,
        definition: ToolDefinition | Mapping[str, Any],
        executor: ToolExecutorFunction,
    ) -> RegisteredTool:
        """
        Register a tool.

        Args:
            definition: A ``ToolDefinition`` or a mapping that validates as one.
            executor: Async function ``(params, context) -> ToolExecutionResult``.

        Returns:
            The stored ``RegisteredTool``.

        Raises:
            pydantic.ValidationError: If the definition is malformed.
            DuplicateToolError: If a tool with the same name is already registered.
        """
        validated = (
            definition if isinstance(definition, ToolDefinition) else ToolDefinition.model_validate(dict(definition))
        )
        if validated.name in self._tools:
            raise DuplicateToolError(validated.name)

        tool = RegisteredTool(definition=validated, executor=executor)
        self._tools[validated.name] = tool
        self._categories.setdefault(validated.category, set()).add(validated.name)
        logger.info(f"Registered tool '{validated.name}' (category={validated.category.value})")
        return tool

    def unregister(self, name: str) -> bool:
        """
        Remove a tool and its category index entry.

        Returns:
            True if a tool was removed, False if the name was unknown.
        """
        tool = self._tools.pop(name, None)
        if tool is None:
            return False

        category = tool.definition.category
        names = self._categories.get(category)
        if names is not None:
            names.discard(name)
            if not names:
                del self._categories[category]
        logger.info(f"Unregistered tool '{name}'")
        return True

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> List[RegisteredTool]:
        return list(self._tools.values())

    def get_by_category(self, category: ToolCategory | str) -> List[RegisteredTool]:
        try:
            key = ToolCategory(category)
        except ValueError:
            return []
        return [self._tools[n] for n in sorted(self._categories.get(key, ())) if n in self._tools]

    def get_by_permission(self, permission: str) -> List[RegisteredTool]:
        return [t for t in self._tools.values() if permission in t.definition.required_permissions]

    def search(self, query: str) -> List[RegisteredTool]:
        """Case-insensitive substring search over tool names and descriptions."""
        needle = query.lower()
        return [
            t
            for t in self._tools.values()
            if needle in t.definition.name.lower() or needle in t.definition.description.lower()
        ]

    def get_for_user(self, permissions: Iterable[str]) -> List[RegisteredTool]:
        """Tools whose required permissions are all granted."""
        granted = set(permissions)
        return [t for t in self._tools.values() if set(t.definition.required_permissions) <= granted]

    def get_for_peer(self, peer_id: str, capabilities: Iterable[str]) -> List[RegisteredTool]:
        """
        Tools that can run on the given peer.

        Tools that do not require a peer can run anywhere. Peer-bound tools are
        included only when the peer offers every required capability.
        """
        offered = set(capabilities)
        out: List[RegisteredTool] = []
        for tool in self._tools.values():
            d = tool.definition
            if not d.peer_required or set(d.required_capabilities) <= offered:
                out.append(tool)
        logger.debug(f"{len(out)} tool(s) available for peer '{peer_id}'")
        return out

    def get_categories(self) -> List[ToolCategory]:
        return list(self._categories.keys())

    def count(self) -> int:
        return len(self._tools)

    def clear(self) -> None:
        self._tools.clear()
        self._categories.clear()

    # ------------------------------------------------------------------
    # Export helpers
    # ------------------------------------------------------------------

    def _definitions(self, tool_filter: Optional[ToolFilter]) -> List[ToolDefinition]:
        defs = [t.definition for t in self._tools.values()]
        return [d for d in defs if tool_filter(d)] if tool_filter is not None else defs

    def get_openai_functions(self, tool_filter: Optional[ToolFilter] = None) -> List[Dict[str, Any]]:
        return [to_openai_function(d) for d in self._definitions(tool_filter)]

    def get_anthropic_tools(self, tool_filter: Optional[ToolFilter] = None) -> List[Dict[str, Any]]:
        return [to_anthropic_tool(d) for d in self._definitions(tool_filter)]

    def get_json_schemas(self, tool_filter: Optional[ToolFilter] = None) -> List[Dict[str, Any]]:
        return [to_json_schema(d) for d in self._definitions(tool_filter)]
