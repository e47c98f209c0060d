"""Pipeline event envelope published on the ``pipeline`` bus topic."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from ..schemas.base import BaseSchema, epoch_ms

PIPELINE_TOPIC = "pipeline"


class PipelineEventStatus(str, Enum):
    start = "start"
    progress = "progress"
    complete = "complete"
    error = "error"


class PipelineStageName(str, Enum):
    complexity_check = "complexity_check"
    intent_detection = "intent_detection"
    memory_retrieval = "memory_retrieval"
    plan_generation = "plan_generation"
    reasoning_optimization = "reasoning_optimization"
    safety_check = "safety_check"
    tool_routing = "tool_routing"
    step_execution = "step_execution"
    output_aggregation = "output_aggregation"
    memory_update = "memory_update"


class PipelineEvent(BaseSchema):
    stage: PipelineStageName
    status: PipelineEventStatus
    data: Any = None
    timestamp: float = Field(default_factory=epoch_ms)
    metadata: Optional[Dict[str, Any]] = None


def create_pipeline_event(
    stage: PipelineStageName,
    status: PipelineEventStatus,
    data: Any,
    metadata: Optional[Dict[str, Any]] = None,
) -> PipelineEvent:
    return PipelineEvent(stage=stage, status=status, data=data, metadata=metadata)


def format_stage_name(stage: PipelineStageName | str) -> str:
    """``"safety_check"`` -> ``"Safety Check"``."""
    value = stage.value if isinstance(stage, PipelineStageName) else str(stage)
    return " ".join(word[:1].upper() + word[1:] for word in value.split("_"))
