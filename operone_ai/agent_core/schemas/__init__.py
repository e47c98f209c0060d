"""Schemas and DTOs for the agent core."""

from .base import BaseSchema
from .domain import (
    AITask,
    AITaskStatus,
    RiskLevel,
    StepStatus,
    TaskStep,
    risk_ge,
)

__all__ = [
    "BaseSchema",
    "AITask",
    "AITaskStatus",
    "RiskLevel",
    "StepStatus",
    "TaskStep",
    "risk_ge",
]
