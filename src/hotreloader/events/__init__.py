"""Event system for observing reload cycles."""

from hotreloader.events.bus import EventBus
from hotreloader.events.types import Event, EventType

__all__ = ["Event", "EventBus", "EventType"]
