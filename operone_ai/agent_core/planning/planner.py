from __future__ import annotations

"""Structured planning for the thinking pipeline.

``StructuredPlanner`` implements the pipeline's ``PlanningEngine`` contract.

Responsibilities
----------------

- Convert an ``Intent`` plus the raw user input into an ``ExecutionPlan``.
- Assign every step to a tool family the safety engine and router understand.

The planner is intentionally constrained:

- It does not execute tools.
- It does not decide safety or confirmation.
- It only emits structured steps.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic_ai import Agent

from ..thinking.types import ExecutionPlan, Intent, IntentCategory, PlanStep, ToolType
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an expert planner for a desktop automation assistant. "
    "Return a minimal, safe, ordered sequence of steps as JSON. "
    "Each step names one tool family and the parameters it needs; "
    "use 'dependencies' to reference earlier step ids."
)

_CATEGORY_TOOLS: Dict[IntentCategory, ToolType] = {
    IntentCategory.file_read: ToolType.fs,
    IntentCategory.file_write: ToolType.fs,
    IntentCategory.file_search: ToolType.fs,
    IntentCategory.shell_command: ToolType.shell,
    IntentCategory.network_request: ToolType.networking,
    IntentCategory.github_query: ToolType.networking,
    IntentCategory.automation: ToolType.automation,
    IntentCategory.multi_pc: ToolType.peer,
    IntentCategory.memory_recall: ToolType.memory,
}


class StructuredPlanner:
    """Planner that produces ``ExecutionPlan`` objects.

    The planner supports two modes:

    - ``model=None``: deterministic fallback that emits a single step whose
      tool family is derived from the intent category. This is useful for tests
      or deployments that want to avoid LLM calls.
    - ``model!=None``: uses Pydantic AI to produce a list of ``PlanStep``
      objects.
    """

    def __init__(self, *, model: Any | None = None, registry: Optional[ToolRegistry] = None) -> None:
        """
        Initialize the planner.

        Args:
            model: A Pydantic AI model instance or model name. If None, the
                   planner operates in deterministic mode.
            registry: Optional tool registry whose catalog is offered to the model.
        """
        self._model = model
        self._registry = registry

    async def create_plan(
        self,
        *,
        intent: Intent,
        user_input: str,
        memory_context: Optional[List[Any]] = None,
    ) -> ExecutionPlan:
        """Generate a plan for one request.

        Parameters
        ----------
        intent:
            The detected intent.
        user_input:
            The raw request text.
        memory_context:
            Prior context recalled for this request, passed to the model verbatim.

        Returns
        -------
        ExecutionPlan
            The ordered steps plus the intent recorded in ``metadata``.
        """
        metadata: Dict[str, Any] = {"intent_category": intent.category.value, "multi_intent": intent.multi_intent}

        if self._model is None:
            step = self._fallback_step(intent, user_input)
            metadata["planner"] = "deterministic"
            return ExecutionPlan(steps=[step], total_estimated_duration=step.estimated_duration, metadata=metadata)

        agent: Agent = Agent(self._model, output_type=List[PlanStep], system_prompt=_SYSTEM_PROMPT)
        result = await agent.run(self._prompt(intent, user_input, memory_context))
        steps: List[PlanStep] = list(result.output)
        logger.debug(f"Model planner produced {len(steps)} step(s) for intent {intent.category.value}")

        metadata["planner"] = "model"
        durations = [s.estimated_duration for s in steps if s.estimated_duration is not None]
        return ExecutionPlan(
            steps=steps,
            total_estimated_duration=sum(durations) if durations else None,
            metadata=metadata,
        )

    def _prompt(self, intent: Intent, user_input: str, memory_context: Optional[List[Any]]) -> str:
        lines = [
            "Create a short plan for this request.",
            f"intent={intent.category.value}",
            f"entities={intent.entities}",
            f"request={user_input}",
        ]
        if memory_context:
            lines.append(f"context={memory_context}")
        if self._registry is not None:
            catalog = ", ".join(f"{t.name} ({t.definition.category.value})" for t in self._registry.get_all())
            lines.append(f"available_tools={catalog}")
        tool_families = ", ".join(t.value for t in ToolType)
        lines.append(f"tool_families={tool_families}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _fallback_step(intent: Intent, user_input: str) -> PlanStep:
        tool = _CATEGORY_TOOLS.get(intent.category, ToolType.ai)
        entities = intent.entities
        category = intent.category

        if category == IntentCategory.file_read:
            paths = entities.get("filePaths") or entities.get("file_paths") or []
            params: Dict[str, Any] = {"operation": "read", "path": paths[0] if paths else None}
        elif category == IntentCategory.file_write:
            paths = entities.get("filePaths") or entities.get("file_paths") or []
            params = {"operation": "write", "path": paths[0] if paths else "output.txt"}
        elif category == IntentCategory.file_search:
            params = {"operation": "search", "query": user_input}
        elif category == IntentCategory.shell_command:
            params = {"command": user_input}
        elif category == IntentCategory.network_request:
            urls = entities.get("urls") or []
            params = {"url": urls[0] if urls else None, "method": "GET"}
        else:
            params = {"prompt": user_input}

        return PlanStep(
            description=f"Handle {category.value.replace('_', ' ')} request",
            tool=tool.value,
            parameters=params,
            estimated_duration=1000.0,
        )
