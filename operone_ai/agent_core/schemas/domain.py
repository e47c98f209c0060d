from __future__ import annotations

"""Persisted domain records for AI tasks.

An ``AITask`` represents one user request decomposed into ordered
``TaskStep`` items, each bound to a single tool call. The records are mutated
step by step by ``TaskOrchestrator`` and mirrored to a ``TaskStorage``
collaborator after every transition, so they are plain, serializable models.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema, epoch_ms


class RiskLevel(str, Enum):
    safe = "safe"
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


RISK_ORDER: Dict[RiskLevel, int] = {
    RiskLevel.safe: 0,
    RiskLevel.low: 1,
    RiskLevel.medium: 2,
    RiskLevel.high: 3,
    RiskLevel.critical: 4,
}


def risk_ge(a: RiskLevel, b: RiskLevel) -> bool:
    """Check if risk level 'a' is greater than or equal to 'b'."""
    return RISK_ORDER[a] >= RISK_ORDER[b]


class AITaskStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class StepStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class TaskStep(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    description: str = ""
    tool: str
    args: Dict[str, Any] = Field(default_factory=dict)

    status: StepStatus = StepStatus.pending
    result: Any = None
    error: Optional[str] = None

    started_at: Optional[float] = None
    completed_at: Optional[float] = None


class AITask(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    prompt: str

    status: AITaskStatus = AITaskStatus.pending
    steps: List[TaskStep] = Field(default_factory=list)
    current_step_id: Optional[str] = None

    created_at: float = Field(default_factory=epoch_ms)
    updated_at: float = Field(default_factory=epoch_ms)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        self.updated_at = epoch_ms()
