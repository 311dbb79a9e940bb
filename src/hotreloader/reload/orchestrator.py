"""Single-flight restart orchestration.

Only one reload cycle runs at a time. Changes that arrive while a cycle is
in flight are collected in a pending set; when the cycle finishes, the
pending set becomes the active set and one follow-up cycle handles all of
it, however many events arrived in between.

State machine::

    IDLE -> STARTING -> RUNNING -> IDLE | CRASHED
                                       |
                      (pending changes) v
                               RELOAD_PENDING -> STARTING -> ...
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from hotreloader.events import EventBus, EventType
from hotreloader.reload.invalidator import CacheInvalidator
from hotreloader.reload.state import CycleKind, ReloadState, SessionState

logger = logging.getLogger(__name__)


class Runner(Protocol):
    """What the orchestrator needs from an EntryRunner."""

    async def start(self) -> bool: ...

    async def restart(self) -> bool: ...


@dataclass
class CycleResult:
    """Outcome of one reload cycle."""

    kind: CycleKind
    changes: set[Path]
    invalidated: set[Path]
    success: bool
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_json(self) -> dict:
        return {
            "kind": self.kind.value,
            "changes": sorted(str(p) for p in self.changes),
            "invalidated": sorted(str(p) for p in self.invalidated),
            "success": self.success,
            "duration_seconds": self.duration_seconds,
        }


class RestartOrchestrator:
    """Serialises reload cycles and coalesces changes that arrive mid-cycle."""

    def __init__(
        self,
        invalidator: CacheInvalidator,
        runner: Runner,
        state: SessionState | None = None,
        bus: EventBus | None = None,
    ):
        self.invalidator = invalidator
        self.runner = runner
        self.state = state or SessionState()
        self.bus = bus or EventBus()

        self._state = ReloadState.IDLE
        self._active: set[Path] = set()
        self._pending: set[Path] = set()
        self._full_pending = False

        # Changes seen since the last successful load, kept for crash retries
        self._recorded: set[Path] = set()

        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._history: list[CycleResult] = []

    def current_state(self) -> ReloadState:
        return self._state

    @property
    def busy(self) -> bool:
        return self.state.restarting

    @property
    def pending(self) -> frozenset[Path]:
        return frozenset(self._pending)

    def was_recorded(self, path: Path) -> bool:
        """Check if a path triggered a cycle since the last good load."""
        return path in self._recorded or path in self._active or path in self._pending

    def submit_change(self, path: Path) -> bool:
        """Queue a partial reload for a changed path.

        Returns:
            True if a new cycle was started, False if the change was queued
            behind the cycle in flight.
        """
        if self.busy:
            self._pending.add(path)
            self.state.need_restart = True
            logger.debug(f"Reload in progress, queued {path}")
            return False

        self._active.add(path)
        self._begin(CycleKind.PARTIAL)
        return True

    def submit_full_reload(self) -> bool:
        """Queue a full reload (the entry file itself changed)."""
        if self.busy:
            self._full_pending = True
            self.state.need_restart = True
            logger.debug("Reload in progress, queued full reload")
            return False

        self._begin(CycleKind.FULL)
        return True

    def request_initial_load(self) -> bool:
        """Run the first load of the entry module as a cycle."""
        if self.busy:
            return False
        self._begin(CycleKind.INITIAL)
        return True

    async def wait_idle(self) -> None:
        """Wait until no cycle is in flight and nothing is pending."""
        await self._idle.wait()

    def get_history(self, limit: int = 10) -> list[CycleResult]:
        """Get the most recent cycle results."""
        return self._history[-limit:]

    def _begin(self, kind: CycleKind) -> None:
        self.state.restarting = True
        self._idle.clear()
        self._state = ReloadState.STARTING
        self._task = asyncio.create_task(self._run(kind), name=f"hotreload-{kind.value}")

    async def _run(self, kind: CycleKind) -> None:
        try:
            while True:
                await self._run_cycle(kind)

                # Swap generations; nothing below awaits, so no change can
                # slip in between the swap and the restart decision.
                self._active, self._pending = self._pending, set()
                full_next, self._full_pending = self._full_pending, False
                self.state.need_restart = False

                if not self._active and not full_next:
                    break

                self._state = ReloadState.RELOAD_PENDING
                kind = CycleKind.FULL if full_next else CycleKind.PARTIAL
                logger.debug(f"Changes arrived during reload, running a {kind.value} reload")
        except Exception:
            logger.exception("Reload cycle failed unexpectedly")
            self._state = ReloadState.CRASHED
            self._active.clear()
        finally:
            self.state.restarting = False
            self._idle.set()

    async def _run_cycle(self, kind: CycleKind) -> CycleResult:
        self._state = ReloadState.STARTING
        changes = set(self._active)
        await self.bus.emit(
            EventType.RELOAD_STARTED,
            {"kind": kind.value, "changes": sorted(str(p) for p in changes)},
        )

        if kind is CycleKind.FULL:
            invalidated = self.invalidator.invalidate_all()
        elif kind is CycleKind.PARTIAL:
            invalidated = self.invalidator.invalidate(changes)
        else:
            invalidated = set()

        result = CycleResult(kind=kind, changes=changes, invalidated=invalidated, success=False)

        self._state = ReloadState.RUNNING
        if kind is CycleKind.INITIAL:
            result.success = await self.runner.start()
        else:
            result.success = await self.runner.restart()
        result.finished_at = datetime.now(UTC)

        if result.success:
            self._recorded.clear()
        else:
            self._recorded.update(changes)

        self._state = ReloadState.IDLE if result.success else ReloadState.CRASHED
        self._history.append(result)

        event_type = EventType.RELOAD_COMPLETED if result.success else EventType.RELOAD_CRASHED
        await self.bus.emit(event_type, result.to_json())
        return result
