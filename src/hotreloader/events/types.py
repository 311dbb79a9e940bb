"""Event type definitions for the event bus."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted by a watch session."""

    # Watcher events
    WATCHER_READY = "watcher.ready"
    WATCHER_ERROR = "watcher.error"
    FILE_CHANGED = "file.changed"

    # Reload cycle events
    RELOAD_STARTED = "reload.started"
    RELOAD_COMPLETED = "reload.completed"
    RELOAD_CRASHED = "reload.crashed"

    # Lifecycle hook events
    HOOK_FAILED = "hook.failed"


class Event(BaseModel):
    """A broadcast event."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
