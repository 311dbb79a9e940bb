"""Watch session: wires the watcher, classifier and reload engine together."""

import logging
import os
import sys
from pathlib import Path
from typing import Any

from hotreloader.config import ResolvedConfig, SessionConfig
from hotreloader.events import EventBus, EventType
from hotreloader.reload.classifier import ChangeClassifier
from hotreloader.reload.immutable import ImmutableConfig, ImmutableNamespace
from hotreloader.reload.invalidator import CacheInvalidator
from hotreloader.reload.orchestrator import RestartOrchestrator
from hotreloader.reload.registry import ModuleRegistry
from hotreloader.reload.runner import EntryRunner
from hotreloader.reload.state import SessionState
from hotreloader.reload.tracker import ImportTracker
from hotreloader.reload.watcher import PathWatcher

logger = logging.getLogger(__name__)


class WatchSession:
    """A live-reload session for one entry file.

    Flow:
    1. Start watching the targets
    2. When the watcher is ready, load the entry module
    3. Classify every change and reload the stale part of the program
    """

    def __init__(
        self,
        config: ResolvedConfig,
        bus: EventBus | None = None,
        watcher: PathWatcher | None = None,
    ):
        self.config = config
        self.bus = bus or EventBus()
        self.state = SessionState()

        namespace = ImmutableNamespace(ImmutableConfig(extra_roots=list(config.immutable_paths)))
        self.registry = ModuleRegistry(namespace)
        self.tracker = ImportTracker(self.registry)
        self.runner = EntryRunner(
            config.entry_file, self.registry, self.tracker, self.state, self.bus, verbose=config.verbose
        )
        self.invalidator = CacheInvalidator(self.registry)
        self.orchestrator = RestartOrchestrator(self.invalidator, self.runner, self.state, self.bus)
        self.classifier = ChangeClassifier(
            config.entry_file, self.registry, self.orchestrator, self.state, verbose=config.verbose
        )
        self.watcher = watcher or PathWatcher(
            config.targets,
            stability_threshold_ms=config.stability_threshold_ms,
            debounce_ms=config.debounce_ms,
            ignore_paths=config.ignore_paths,
            bus=self.bus,
        )
        self.watcher.on_ready = self._on_ready
        self._sys_path_entry: str | None = None

    @property
    def targets(self) -> list[Path]:
        return self.config.targets

    def _on_ready(self) -> None:
        self.orchestrator.request_initial_load()

    def _install(self) -> None:
        # Same as running a script: its directory comes first on sys.path
        entry_dir = os.path.dirname(self.config.entry_file)
        if entry_dir not in sys.path:
            sys.path.insert(0, entry_dir)
            self._sys_path_entry = entry_dir
        self.tracker.install()

    def _uninstall(self) -> None:
        self.tracker.uninstall()
        if self._sys_path_entry is not None and self._sys_path_entry in sys.path:
            sys.path.remove(self._sys_path_entry)
        self._sys_path_entry = None

    async def run(self) -> None:
        """Watch and reload until ``stop()`` is called or the task is cancelled."""
        self._install()
        try:
            async for event in self.watcher.events():
                await self.bus.emit(
                    EventType.FILE_CHANGED,
                    {"kind": event.kind.value, "path": str(event.path)},
                )
                self.classifier.dispatch(event)
            await self.orchestrator.wait_idle()
        finally:
            self._uninstall()

    def stop(self) -> None:
        """Stop watching. ``run()`` returns once the reload in flight ends."""
        self.watcher.stop()


def watch(**params: Any) -> WatchSession:
    """Create a watch session.

    Accepts the fields of ``SessionConfig``. Parameters are validated and
    the entry file resolved immediately, so configuration problems raise
    ``ConfigurationError`` before anything is watched. Run the returned
    session with ``await session.run()``.
    """
    config = SessionConfig.from_params(**params).resolve()
    return WatchSession(config)
