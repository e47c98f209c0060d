from __future__ import annotations

import asyncio
from typing import List

import pytest

from operone_ai.agent_core.events.bus import BusMessage, EventBus


def test_pattern_subscription_matches_topic_and_event(bus: EventBus) -> None:
    seen: List[str] = []
    bus.subscribe("aitask:step-*", lambda m: seen.append(m.key))

    bus.publish("aitask", "step-started", {"i": 1})
    bus.publish("aitask", "completed")
    bus.publish("task", "step-started")
    bus.publish("aitask", "step-failed")

    assert seen == ["aitask:step-started", "aitask:step-failed"]


def test_handler_receives_message(bus: EventBus) -> None:
    got: List[BusMessage] = []
    bus.subscribe("pipeline:start", got.append)
    assert bus.publish("pipeline", "start", {"input": "x"}) == 1
    assert got[0].topic == "pipeline"
    assert got[0].event == "start"
    assert got[0].payload == {"input": "x"}


def test_unsubscribe_stops_delivery(bus: EventBus) -> None:
    seen: List[str] = []
    off = bus.subscribe("*", lambda m: seen.append(m.key))
    bus.publish("task", "added")
    off()
    off()
    bus.publish("task", "queued")
    assert seen == ["task:added"]
    assert bus.subscriber_count == 0


def test_failing_handler_does_not_block_others(bus: EventBus) -> None:
    seen: List[str] = []

    def broken(message: BusMessage) -> None:
        raise RuntimeError("observer bug")

    bus.subscribe("*", broken)
    bus.subscribe("*", lambda m: seen.append(m.key))

    delivered = bus.publish("task", "completed")

    assert delivered == 1
    assert seen == ["task:completed"]


@pytest.mark.asyncio
async def test_async_handlers_are_scheduled(bus: EventBus) -> None:
    seen: List[str] = []

    async def handler(message: BusMessage) -> None:
        seen.append(message.key)

    bus.subscribe("task:*", handler)
    bus.publish("task", "started")
    assert seen == []
    await asyncio.sleep(0)
    assert seen == ["task:started"]


def test_history_is_bounded_and_filterable() -> None:
    bus = EventBus(max_history=3)
    for event in ("added", "queued", "started", "completed"):
        bus.publish("task", event)
    bus.publish("pipeline", "start")

    assert [m.event for m in bus.history()] == ["started", "completed", "start"]
    assert [m.event for m in bus.history("task:*")] == ["started", "completed"]

    bus.clear_history()
    assert bus.history() == []
