"""Safety policy for execution plans.

``SafetyPolicyConfig`` configures ``PolicySafetyEngine``, the default
``SafetyEngine`` of the thinking pipeline.
"""

from .models import DEFAULT_BLOCKED_PATHS, DEFAULT_DANGEROUS_COMMANDS, SafetyPolicyConfig, StepVerdict, max_risk
from .safety import PolicySafetyEngine

__all__ = [
    "DEFAULT_BLOCKED_PATHS",
    "DEFAULT_DANGEROUS_COMMANDS",
    "PolicySafetyEngine",
    "SafetyPolicyConfig",
    "StepVerdict",
    "max_risk",
]
