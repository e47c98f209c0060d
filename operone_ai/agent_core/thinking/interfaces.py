from __future__ import annotations

"""Collaborator contracts consumed by ``ThinkingPipeline``.

All methods are async. Implementations may return the models from
``thinking.types`` or plain mappings with the same shape (snake_case or
camelCase keys); the pipeline validates mappings at the stage boundary.
"""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import Field

from ..schemas.base import BaseSchema, epoch_ms
from .types import (
    ExecutionPlan,
    FormattedOutput,
    Intent,
    OptimizationResult,
    OutputRequest,
    PipelineContext,
    PlanStep,
    RoutingDecision,
    SafetyCheck,
    ToolRoute,
)


class IntentEngine(Protocol):
    async def detect(self, text: str) -> Intent: ...


class PlanningEngine(Protocol):
    async def create_plan(
        self,
        *,
        intent: Intent,
        user_input: str,
        memory_context: Optional[List[Any]] = None,
    ) -> ExecutionPlan: ...


class ReasoningEngine(Protocol):
    async def optimize(
        self,
        *,
        plan: ExecutionPlan,
        memory_context: Optional[List[Any]] = None,
    ) -> OptimizationResult: ...


class SafetyEngine(Protocol):
    async def validate(self, plan: ExecutionPlan) -> SafetyCheck: ...


class ToolRouter(Protocol):
    async def route(self, plan: ExecutionPlan) -> RoutingDecision: ...


class OutputEngine(Protocol):
    async def format(self, request: OutputRequest) -> FormattedOutput: ...


class MemoryRecall(Protocol):
    """Read prior context; entries are opaque to the pipeline."""

    async def recall(self, text: str, intent: Intent) -> List[Any]: ...


class MemoryRecord(BaseSchema):
    """Outcome of one pipeline run handed to ``MemoryStore``."""

    input: str
    session_id: str
    user_id: Optional[str] = None
    success: bool
    output: Optional[FormattedOutput] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=epoch_ms)


class MemoryStore(Protocol):
    async def store(self, record: MemoryRecord) -> None: ...


class StepRunner(Protocol):
    """Runs one routed plan step for real instead of the simulated delay."""

    async def run(self, step: PlanStep, route: Optional[ToolRoute], context: PipelineContext) -> Any: ...
