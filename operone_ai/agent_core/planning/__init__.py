"""Planning subsystem.

``StructuredPlanner`` is the default ``PlanningEngine``: deterministic without a
model, Pydantic AI backed with one.
"""

from .planner import StructuredPlanner

__all__ = ["StructuredPlanner"]
