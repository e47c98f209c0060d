from __future__ import annotations

"""Policy-driven plan safety validation.

``PolicySafetyEngine`` implements the thinking pipeline's ``SafetyEngine``
contract. It evaluates every plan step independently and folds the verdicts
into one ``SafetyCheck``:

- ``allowed`` is False as soon as one step is blocked; every blocked reason is
  reported.
- ``risk_level`` is the highest step risk.
- ``requires_confirmation`` is set when a step asks for it or when the highest
  risk reaches ``require_confirmation_at_or_above``.

Step rules by tool family
-------------------------

- blocked tools: blocked, critical.
- ``fs``: protected paths blocked; ``delete`` blocked unless destructive
  operations are allowed; ``write``/``delete`` are medium risk; wildcards
  are high risk.
- ``shell``: dangerous commands blocked; otherwise at least medium risk and
  always confirmed; elevated privileges and package installs are high risk.
- ``networking``: local/internal targets and plain HTTP are medium risk.
- ``peer``: high risk, always confirmed.
- ``automation``: medium risk, always confirmed.
- anything else: low risk.
"""

import logging
import re
from typing import List, Optional

from ..schemas.domain import RiskLevel, risk_ge
from ..thinking.types import ExecutionPlan, PlanStep, SafetyCheck, ToolType
from .models import SafetyPolicyConfig, StepVerdict, max_risk

logger = logging.getLogger(__name__)

_PRIVILEGE_PATTERN = re.compile(r"\b(sudo|su)\b")
_PACKAGE_INSTALL_PATTERN = re.compile(r"\b(apt|apt-get|yum|brew)\b|npm install -g|pip install")
_LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1", "192.168.")


class PolicySafetyEngine:
    """Validate execution plans against a ``SafetyPolicyConfig``."""

    def __init__(self, config: Optional[SafetyPolicyConfig] = None) -> None:
        self._cfg = config or SafetyPolicyConfig()
        self._dangerous = [
            (cmd, re.compile(r"(?<!\w)" + re.escape(cmd.lower()) + r"(?!\w)")) for cmd in self._cfg.dangerous_commands
        ]

    @property
    def config(self) -> SafetyPolicyConfig:
        """Return the underlying configuration object."""
        return self._cfg

    async def validate(self, plan: ExecutionPlan) -> SafetyCheck:
        risks: List[str] = []
        blocked: List[str] = []
        risk = RiskLevel.safe
        confirm = False

        for step in plan.steps:
            verdict = self.evaluate_step(step)
            for r in verdict.risks:
                if r not in risks:
                    risks.append(r)
            risk = max_risk(risk, verdict.risk)
            if not verdict.allowed:
                blocked.extend(verdict.blocked_reasons)
            confirm = confirm or verdict.requires_confirmation

        if risk_ge(risk, self._cfg.require_confirmation_at_or_above):
            confirm = True

        allowed = not blocked
        if not allowed:
            logger.info(f"Plan {plan.id} blocked: {blocked}")

        return SafetyCheck(
            allowed=allowed,
            risk_level=risk,
            risks=risks,
            requires_confirmation=confirm,
            confirmation_message=self._confirmation_message(plan, risks, risk) if confirm else None,
            blocked_reasons=blocked or None,
        )

    def evaluate_step(self, step: PlanStep) -> StepVerdict:
        """
        Evaluate one plan step.

        Args:
            step: The plan step; ``step.tool`` names the tool family.

        Returns:
            A StepVerdict describing whether the step may run and at what risk.
        """
        if step.tool in self._cfg.blocked_tools:
            return StepVerdict.blocked(
                f"Tool '{step.tool}' is blocked by safety policy",
                risk=RiskLevel.critical,
                risks=(f"Blocked tool: {step.tool}",),
            )

        if step.tool == ToolType.fs.value:
            return self._evaluate_fs(step)
        if step.tool == ToolType.shell.value:
            return self._evaluate_shell(step)
        if step.tool == ToolType.networking.value:
            return self._evaluate_network(step)
        if step.tool == ToolType.peer.value:
            return StepVerdict(
                allowed=True,
                risk=RiskLevel.high,
                risks=("Remote command execution on peer machine",),
                requires_confirmation=True,
            )
        if step.tool == ToolType.automation.value:
            return StepVerdict(
                allowed=True,
                risk=RiskLevel.medium,
                risks=("Automated task execution",),
                requires_confirmation=True,
            )
        return StepVerdict(allowed=True, risk=RiskLevel.low)

    def _evaluate_fs(self, step: PlanStep) -> StepVerdict:
        path = str(step.parameters.get("path") or "")
        operation = str(step.parameters.get("operation") or "")

        if path and self._is_blocked_path(path):
            return StepVerdict.blocked(
                f"Path '{path}' is in a protected system directory",
                risk=RiskLevel.critical,
                risks=(f"Blocked path: {path}",),
            )
        if path and self._cfg.allowed_paths is not None and not any(path.startswith(p) for p in self._cfg.allowed_paths):
            return StepVerdict.blocked(
                f"Path '{path}' is outside the allowed directories",
                risk=RiskLevel.high,
                risks=(f"Path outside allowed directories: {path}",),
            )

        risk = RiskLevel.safe
        risks: List[str] = []
        if operation in ("write", "delete"):
            risk = RiskLevel.medium
            risks.append(f"File {operation} operation")
            if operation == "delete" and not self._cfg.allow_destructive_ops:
                return StepVerdict.blocked(
                    "Destructive operations are not allowed", risk=RiskLevel.high, risks=tuple(risks)
                )

        if "*" in path or "?" in path:
            risk = RiskLevel.high
            risks.append("Wildcard file operation")

        return StepVerdict(
            allowed=True,
            risk=risk,
            risks=tuple(risks),
            requires_confirmation=risk_ge(risk, RiskLevel.high),
        )

    def _evaluate_shell(self, step: PlanStep) -> StepVerdict:
        command = str(step.parameters.get("command") or "").lower()

        for cmd, pattern in self._dangerous:
            if pattern.search(command):
                return StepVerdict.blocked(
                    f"Dangerous command detected: {cmd}",
                    risk=RiskLevel.critical,
                    risks=(f"Blocked dangerous command: {cmd}",),
                )

        risk = RiskLevel.medium
        risks: List[str] = []
        if _PRIVILEGE_PATTERN.search(command):
            risk = RiskLevel.high
            risks.append("Command requires elevated privileges")
        if _PACKAGE_INSTALL_PATTERN.search(command):
            risk = RiskLevel.high
            risks.append("System package installation")

        return StepVerdict(allowed=True, risk=risk, risks=tuple(risks), requires_confirmation=True)

    def _evaluate_network(self, step: PlanStep) -> StepVerdict:
        url = str(step.parameters.get("url") or "")
        risk = RiskLevel.low
        risks: List[str] = []

        if any(marker in url for marker in _LOCAL_HOST_MARKERS):
            risk = RiskLevel.medium
            risks.append("Request to internal/local network")
        if url.startswith("http://") and "localhost" not in url:
            risk = RiskLevel.medium
            risks.append("Unencrypted HTTP request")

        return StepVerdict(
            allowed=True,
            risk=risk,
            risks=tuple(risks),
            requires_confirmation=risk_ge(risk, RiskLevel.high),
        )

    def _is_blocked_path(self, path: str) -> bool:
        return any(blocked in path for blocked in self._cfg.blocked_paths)

    @staticmethod
    def _confirmation_message(plan: ExecutionPlan, risks: List[str], risk: RiskLevel) -> str:
        risk_list = "\n".join(f"  - {r}" for r in risks)
        step_list = "\n".join(f"  {i}. {s.description} ({s.tool})" for i, s in enumerate(plan.steps, start=1))
        return (
            f"This operation has been flagged as {risk.value.upper()} risk.\n\n"
            f"Risks identified:\n{risk_list}\n\n"
            f"Plan includes {len(plan.steps)} step(s):\n{step_list}\n\n"
            "Do you want to proceed?"
        )
