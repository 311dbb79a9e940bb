"""Entry point loading and lifecycle hooks.

The entry module is executed under a private module name, the same way
``python path/to/app.py`` runs a script as ``__main__`` without making it
importable by its file name. Every module it imports goes through the
ImportTracker and lands in the registry.

Lifecycle contract for the loaded program (both optional, both may return
an awaitable)::

    class listeners:
        @staticmethod
        async def start(): ...

    async def on_before_restart(): ...
"""

import importlib
import importlib.machinery
import importlib.util
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Final

from hotreloader.events import EventBus, EventType
from hotreloader.reload.registry import ModuleRegistry
from hotreloader.reload.state import SessionState
from hotreloader.reload.tracker import ImportTracker

logger = logging.getLogger(__name__)

ENTRY_MODULE_NAME: Final = "__hotreload_main__"

LifecycleHook = Callable[[], Awaitable[None] | None]


class LoadError(Exception):
    """Raised when the entry module fails to load."""

    def __init__(self, entry_file: Path, cause: BaseException):
        self.entry_file = entry_file
        self.cause = cause
        super().__init__(f"Failed to load {entry_file}: {type(cause).__name__}: {cause}")


class HookError(Exception):
    """Raised when a lifecycle hook raises or its awaitable fails."""

    def __init__(self, hook: str, cause: BaseException):
        self.hook = hook
        self.cause = cause
        super().__init__(f"Lifecycle hook {hook} failed: {type(cause).__name__}: {cause}")


def _callable_or_none(value: object) -> LifecycleHook | None:
    return value if callable(value) else None


@dataclass
class EntryHandle:
    """The currently loaded program and its lifecycle hooks."""

    module: ModuleType | None = None
    start: LifecycleHook | None = None
    on_before_restart: LifecycleHook | None = None

    @classmethod
    def from_module(cls, module: ModuleType) -> "EntryHandle":
        listeners = getattr(module, "listeners", None)
        if isinstance(listeners, Mapping):
            start = listeners.get("start")
        else:
            start = getattr(listeners, "start", None)

        return cls(
            module=module,
            start=_callable_or_none(start),
            on_before_restart=_callable_or_none(getattr(module, "on_before_restart", None)),
        )


class EntryRunner:
    """Loads the entry module and drives its lifecycle hooks."""

    def __init__(
        self,
        entry_file: Path,
        registry: ModuleRegistry,
        tracker: ImportTracker,
        state: SessionState | None = None,
        bus: EventBus | None = None,
        module_name: str = ENTRY_MODULE_NAME,
        verbose: bool = True,
    ):
        self.entry_file = entry_file
        self.registry = registry
        self.tracker = tracker
        self.state = state or SessionState()
        self.bus = bus or EventBus()
        self.module_name = module_name
        self.progress_level = logging.INFO if verbose else logging.DEBUG
        self.handle = EntryHandle()
        self.load_count = 0

    def _load(self) -> ModuleType:
        """Execute the entry file as a fresh module."""
        path = str(self.entry_file)
        loader = importlib.machinery.SourceFileLoader(self.module_name, path)
        spec = importlib.util.spec_from_file_location(self.module_name, path, loader=loader)
        if spec is None:
            raise ImportError(f"Cannot build a module spec for {path}")
        spec = self.tracker.track(spec)

        module = importlib.util.module_from_spec(spec)
        modules = self.registry.modules
        modules[self.module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            if modules.get(self.module_name) is module:
                del modules[self.module_name]
            raise
        return module

    async def _call_hook(self, name: str, hook: LifecycleHook) -> bool:
        """Run a lifecycle hook, awaiting it if it returns an awaitable.

        Returns:
            True if the hook completed without raising.
        """
        try:
            result = hook()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            error = HookError(name, e)
            logger.error(str(error), exc_info=e)
            await self.bus.emit(EventType.HOOK_FAILED, {"hook": name, "error": str(e)})
            return False
        return True

    async def start(self) -> bool:
        """Load the entry module and run its ``listeners.start`` hook.

        Returns:
            True if the module loaded; False if it crashed.
        """
        logger.log(self.progress_level, f"[{datetime.now().strftime('%X')}] starting {self.entry_file}")
        importlib.invalidate_caches()

        try:
            module = self._load()
        except (Exception, SystemExit) as e:
            error = LoadError(self.entry_file, e)
            self.state.crashed = True
            self.handle = EntryHandle()
            logger.error(str(error), exc_info=e)
            logger.warning("crashed, waiting for changes...")
            return False

        self.state.crashed = False
        self.registry.failed.clear()
        self.handle = EntryHandle.from_module(module)
        self.load_count += 1

        if self.handle.start is not None:
            await self._call_hook("listeners.start", self.handle.start)

        logger.log(self.progress_level, "done, waiting for changes...")
        return True

    async def restart(self) -> bool:
        """Tear down the current program and load the entry module again."""
        previous = self.handle
        if previous.on_before_restart is not None:
            await self._call_hook("on_before_restart", previous.on_before_restart)

        self.registry.remove(self.entry_file)
        return await self.start()
