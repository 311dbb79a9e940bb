"""Event bus for observing a watch session."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from hotreloader.events.types import Event, EventType

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], Any]


class EventBus:
    """Fans session events out to registered callbacks.

    Callbacks may be plain functions or coroutine functions. They run in
    registration order, inside the publishing task, so a callback that
    submits a change while ``reload.completed`` is published still sees
    the cycle in flight.
    """

    def __init__(self) -> None:
        self._callbacks: list[EventCallback] = []

    def add_callback(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: EventCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def publish(self, event: Event) -> None:
        """Deliver an event to every callback.

        A callback that raises is logged and skipped; the others still run.
        """
        logger.debug(f"Publishing event: {event.type.value}")

        for callback in list(self._callbacks):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Event callback failed on {event.type.value}: {e}")

    async def emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> Event:
        """Build an event and publish it.

        Returns:
            The published event
        """
        event = Event(type=event_type, data=data or {})
        await self.publish(event)
        return event
