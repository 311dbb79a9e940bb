"""File change watching for hot-reload.

Wraps ``watchfiles.awatch`` over one or more root paths and turns each
notification into a typed ``ChangeEvent``. Writes are grouped until the
path has been quiet for the stability window, so a file is never reported
halfway through being saved.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import anyio
from watchfiles import Change, DefaultFilter, awatch

from hotreloader.events import EventBus, EventType

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """Kinds of filesystem change."""

    ADD = "add"
    ADD_DIR = "addDir"
    CHANGE = "change"
    UNLINK = "unlink"
    UNLINK_DIR = "unlinkDir"


@dataclass(frozen=True)
class ChangeEvent:
    """Represents a detected file change."""

    kind: ChangeKind
    path: Path
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC), compare=False)


class WatcherError(Exception):
    """Raised when the underlying filesystem notifier fails."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class PathWatcher:
    """Watches root paths recursively and yields change events.

    ``ready`` is set once the notifier is running; no event is yielded
    before that. Notifier failures are reported and the notifier is
    restarted, so the stream only ends when ``stop()`` is called.
    """

    def __init__(
        self,
        targets: Sequence[str | Path],
        stability_threshold_ms: int = 10,
        debounce_ms: int = 1600,
        ignore_paths: Sequence[str | Path] = (),
        ready_timeout_ms: int = 200,
        restart_delay: float = 1.0,
        on_ready: Callable[[], Any] | None = None,
        bus: EventBus | None = None,
    ):
        self.targets = [Path(os.path.abspath(t)) for t in targets]
        self.stability_threshold_ms = stability_threshold_ms
        self.debounce_ms = debounce_ms
        self.ready_timeout_ms = ready_timeout_ms
        self.restart_delay = restart_delay
        self.on_ready = on_ready
        self.bus = bus or EventBus()
        self.watch_filter = DefaultFilter(ignore_paths=[os.path.abspath(p) for p in ignore_paths])

        self.ready = asyncio.Event()
        self._stop_event: anyio.Event | None = None
        self._dirs: set[Path] = set()

    async def _existing_roots(self) -> list[Path]:
        roots = []
        for target in self.targets:
            if target.exists():
                roots.append(target)
            else:
                await self._report(WatcherError(f"watch target does not exist: {target}", target))
        return roots

    def _scan_dirs(self, roots: list[Path]) -> None:
        """Record existing directories so deletions can be typed."""
        self._dirs.clear()
        for root in roots:
            if not root.is_dir():
                continue
            self._dirs.add(root)
            for dirpath, dirnames, _filenames in os.walk(root):
                dirnames[:] = [d for d in dirnames if self.watch_filter(Change.added, os.path.join(dirpath, d))]
                for name in dirnames:
                    self._dirs.add(Path(dirpath) / name)

    def to_event(self, change: Change, raw_path: str) -> ChangeEvent | None:
        """Convert a watchfiles change into a ChangeEvent.

        Returns:
            The event, or None for changes that carry no meaning here
            (attribute changes on directories).
        """
        path = Path(os.path.abspath(raw_path))

        if change == Change.added:
            if path.is_dir():
                self._dirs.add(path)
                return ChangeEvent(kind=ChangeKind.ADD_DIR, path=path)
            return ChangeEvent(kind=ChangeKind.ADD, path=path)

        if change == Change.deleted:
            if path in self._dirs:
                self._dirs = {d for d in self._dirs if not d.is_relative_to(path)}
                return ChangeEvent(kind=ChangeKind.UNLINK_DIR, path=path)
            return ChangeEvent(kind=ChangeKind.UNLINK, path=path)

        if path.is_dir():
            return None
        return ChangeEvent(kind=ChangeKind.CHANGE, path=path)

    async def _set_ready(self) -> None:
        self.ready.set()
        logger.debug(f"Watching {', '.join(str(t) for t in self.targets)}")
        await self.bus.emit(EventType.WATCHER_READY, {"targets": [str(t) for t in self.targets]})
        if self.on_ready is not None:
            self.on_ready()

    async def _report(self, error: WatcherError) -> None:
        logger.error(f"[watcher error]: {error}")
        await self.bus.emit(EventType.WATCHER_ERROR, {"error": str(error)})

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events until ``stop()`` is called."""
        self._stop_event = anyio.Event()
        roots = await self._existing_roots()
        self._scan_dirs(roots)

        if not roots:
            await self._report(WatcherError("no existing watch targets"))
            await self._set_ready()
            await self._stop_event.wait()
            return

        while not self._stop_event.is_set():
            try:
                async for changes in awatch(
                    *roots,
                    watch_filter=self.watch_filter,
                    debounce=self.debounce_ms,
                    step=self.stability_threshold_ms,
                    stop_event=self._stop_event,
                    rust_timeout=self.ready_timeout_ms,
                    yield_on_timeout=True,
                ):
                    if not self.ready.is_set():
                        await self._set_ready()

                    for change, raw_path in sorted(changes, key=lambda c: (c[1], c[0])):
                        event = self.to_event(change, raw_path)
                        if event is not None:
                            yield event
            except Exception as e:
                if self._stop_event.is_set():
                    return
                await self._report(WatcherError(f"{type(e).__name__}: {e}"))
                await asyncio.sleep(self.restart_delay)
                roots = await self._existing_roots() or roots

    def stop(self) -> None:
        """Stop watching; the event stream ends."""
        if self._stop_event is not None:
            self._stop_event.set()
