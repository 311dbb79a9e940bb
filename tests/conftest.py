"""Pytest configuration and fixtures."""

import importlib
import os
import sys
import types
from dataclasses import dataclass
from pathlib import Path

import pytest

from hotreloader.events import EventBus
from hotreloader.reload.immutable import ImmutableNamespace
from hotreloader.reload.invalidator import CacheInvalidator
from hotreloader.reload.registry import ModuleRegistry
from hotreloader.reload.runner import EntryRunner
from hotreloader.reload.state import SessionState
from hotreloader.reload.tracker import ImportTracker

RECORDER_MODULE = "hotreload_test_recorder"

_LIBRARY = ImmutableNamespace()


@pytest.fixture(autouse=True)
def isolated_imports():
    """Restore sys.modules, sys.path and sys.meta_path after each test.

    Tests load real programs from tmp_path under plain names (``a``, ``b``),
    so every test has to start from a clean import system.
    """
    saved_modules = dict(sys.modules)
    saved_path = list(sys.path)
    saved_meta_path = list(sys.meta_path)

    yield

    sys.meta_path[:] = saved_meta_path
    sys.path[:] = saved_path

    # Lazily imported library modules stay; program modules go
    for name, module in list(sys.modules.items()):
        if name in saved_modules:
            continue
        origin = getattr(module, "__file__", None)
        if origin is None or not _LIBRARY.contains(Path(os.path.abspath(origin))):
            del sys.modules[name]
    for name, module in saved_modules.items():
        if sys.modules.get(name) is not module:
            sys.modules[name] = module
    importlib.invalidate_caches()


@pytest.fixture
def recorder() -> types.ModuleType:
    """A module the loaded programs can import to report what they did.

    It is registered before the tracker runs, so it never enters the
    registry and survives every invalidation.
    """
    module = types.ModuleType(RECORDER_MODULE)
    module.calls = []
    sys.modules[RECORDER_MODULE] = module
    return module


@pytest.fixture
def program(tmp_path: Path) -> Path:
    """Write a program where entry.py imports a.py, which imports b.py."""
    (tmp_path / "b.py").write_text("VALUE = 1\n")
    (tmp_path / "a.py").write_text("import b\n\nVALUE = b.VALUE\n")
    (tmp_path / "entry.py").write_text("import a\n\nVALUE = a.VALUE\n")
    (tmp_path / "unrelated.py").write_text("UNUSED = True\n")
    return tmp_path


@dataclass
class Engine:
    """Registry, tracker, runner and invalidator over one entry file."""

    entry_file: Path
    state: SessionState
    bus: EventBus
    registry: ModuleRegistry
    tracker: ImportTracker
    runner: EntryRunner
    invalidator: CacheInvalidator

    def program_modules(self) -> set[Path]:
        """Cached identities outside the immutable namespace."""
        return {identity for identity in self.registry if not self.registry.is_immutable(identity)}


@pytest.fixture
def make_engine():
    """Build an Engine for an entry file, with its directory on sys.path."""

    def factory(entry_file: Path) -> Engine:
        sys.path.insert(0, str(entry_file.parent))
        state = SessionState()
        bus = EventBus()
        registry = ModuleRegistry(ImmutableNamespace())
        tracker = ImportTracker(registry)
        tracker.install()
        runner = EntryRunner(entry_file, registry, tracker, state, bus)
        return Engine(
            entry_file=entry_file,
            state=state,
            bus=bus,
            registry=registry,
            tracker=tracker,
            runner=runner,
            invalidator=CacheInvalidator(registry),
        )

    return factory


@pytest.fixture
def engine(program: Path, make_engine) -> Engine:
    return make_engine(program / "entry.py")
