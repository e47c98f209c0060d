"""Pydantic base schema utilities for agent core models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms() -> float:
    """Current wall-clock time in milliseconds since the epoch."""
    return utc_now().timestamp() * 1000.0


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all agent core records.

    - ``populate_by_name=True``: records can be built from either the Python field
      name or its camelCase alias (collaborators often speak JSON).
    - ``extra="forbid"``: unknown fields are rejected so malformed collaborator
      output fails loudly at the boundary.
    - ``validate_assignment=True``: the orchestrator mutates step and task status in
      place; assignments are validated against the declared enums.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )
