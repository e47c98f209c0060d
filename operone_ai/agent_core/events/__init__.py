"""Publish/subscribe channel used by the orchestrator and the thinking pipeline."""

from .bus import BusMessage, EventBus, EventHandler

__all__ = ["BusMessage", "EventBus", "EventHandler"]
