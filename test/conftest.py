from __future__ import annotations

from typing import List

import pytest

from operone_ai.agent_core.events.bus import BusMessage, EventBus
from operone_ai.agent_core.tools.schema import ToolExecutionContext


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def captured(bus: EventBus) -> List[BusMessage]:
    """Every message published on ``bus``, in order."""
    out: List[BusMessage] = []
    bus.subscribe("*", out.append)
    return out


@pytest.fixture
def tool_context() -> ToolExecutionContext:
    return ToolExecutionContext(user_id="alice", session_id="session-1")
