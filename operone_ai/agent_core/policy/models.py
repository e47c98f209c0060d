from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.domain import RISK_ORDER, RiskLevel

DEFAULT_BLOCKED_PATHS = [
    "/System",
    "/usr/bin",
    "/bin",
    "/sbin",
    "C:\\Windows\\System32",
    "C:\\Windows\\SysWOW64",
]

DEFAULT_DANGEROUS_COMMANDS = ["rm -rf", "dd", "mkfs", "format", ":(){:|:&};:", "chmod 777"]


class SafetyPolicyConfig(BaseSchema):
    """
    Configuration for plan safety validation.

    Consumed by ``PolicySafetyEngine``. Defaults block protected system
    directories, known destructive shell commands and file deletion, and ask
    for confirmation from ``medium`` risk upwards.
    """

    allow_destructive_ops: bool = Field(
        default=False,
        description="Allow file delete operations instead of blocking them.",
    )
    require_confirmation_at_or_above: RiskLevel = RiskLevel.medium
    blocked_tools: set[str] = Field(
        default_factory=set,
        description="Tool families in this set are blocked outright.",
    )
    allowed_paths: Optional[List[str]] = Field(
        default=None,
        description="If set, file operations must target a path under one of these prefixes.",
    )
    blocked_paths: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_PATHS),
        description="File operations touching these locations are blocked.",
    )
    dangerous_commands: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DANGEROUS_COMMANDS),
        description="Shell commands containing any of these words are blocked.",
    )


@dataclass(frozen=True)
class StepVerdict:
    """
    Safety evaluation of a single plan step.

    Attributes:
        allowed: False when the step is blocked by policy.
        risk: The assessed risk level of the step.
        risks: Human-readable risk descriptions.
        requires_confirmation: Whether the user must confirm before execution.
        blocked_reasons: Why the step was blocked, empty when allowed.
    """

    allowed: bool
    risk: RiskLevel
    risks: Tuple[str, ...] = field(default_factory=tuple)
    requires_confirmation: bool = False
    blocked_reasons: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def blocked(cls, reason: str, *, risk: RiskLevel, risks: Tuple[str, ...]) -> StepVerdict:
        return cls(allowed=False, risk=risk, risks=risks, blocked_reasons=(reason,))


def max_risk(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if RISK_ORDER[a] >= RISK_ORDER[b] else b
