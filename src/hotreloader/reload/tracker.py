"""Import tracking for the module registry.

``ImportTracker`` sits at the front of ``sys.meta_path``. It delegates the
actual lookup to the remaining finders and wraps the resulting loader so
that executing a module records it in the registry, with the module that is
currently executing as its parent.
"""

import importlib.abc
import importlib.machinery
import logging
import os
import sys
import threading
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import CodeType, ModuleType
from typing import Any

from hotreloader.reload.registry import ModuleRegistry

logger = logging.getLogger(__name__)

_NON_FILE_ORIGINS = ("built-in", "frozen")


def spec_identity(spec: ModuleSpec) -> Path | None:
    """Absolute source path of a spec, or None for non-file modules."""
    if not spec.has_location or spec.origin is None or spec.origin in _NON_FILE_ORIGINS:
        return None
    return Path(os.path.abspath(spec.origin))


class _SourceOnlyLoader(importlib.machinery.SourceFileLoader):
    """Source loader that never reads or writes cached bytecode.

    The .pyc check compares source mtime (whole seconds) and size, so an
    edit of equal size saved within the same second would otherwise run
    the stale bytecode.
    """

    def get_code(self, fullname: str) -> CodeType:
        path = self.get_filename(fullname)
        return self.source_to_code(self.get_data(path), path)


class _TrackingLoader:
    """Loader proxy that records module execution in the registry."""

    def __init__(self, loader: Any, tracker: "ImportTracker", identity: Path):
        self._loader = loader
        self._tracker = tracker
        self._identity = identity

    def __getattr__(self, name: str) -> Any:
        return getattr(self._loader, name)

    def create_module(self, spec: ModuleSpec) -> ModuleType | None:
        return self._loader.create_module(spec)

    def exec_module(self, module: ModuleType) -> None:
        tracker = self._tracker
        tracker.registry.put(
            self._identity,
            module.__name__,
            parent=tracker.current,
            module=module,
        )
        tracker._stack.append(self._identity)
        try:
            self._exec_fresh(module)
        except BaseException:
            tracker.registry.mark_failed(self._identity)
            raise
        finally:
            tracker._stack.pop()

    def _exec_fresh(self, module: ModuleType) -> None:
        if isinstance(self._loader, importlib.machinery.SourceFileLoader):
            _SourceOnlyLoader(module.__name__, str(self._identity)).exec_module(module)
        else:
            self._loader.exec_module(module)


class ImportTracker(importlib.abc.MetaPathFinder):
    """Meta path finder that populates a ModuleRegistry."""

    def __init__(self, registry: ModuleRegistry):
        self.registry = registry
        self._local = threading.local()

    @property
    def _stack(self) -> list[Path]:
        """Modules executing on the calling thread, innermost last."""
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    @property
    def current(self) -> Path | None:
        """Identity of the module currently executing, if any."""
        return self._stack[-1] if self._stack else None

    @property
    def installed(self) -> bool:
        return self in sys.meta_path

    def install(self) -> None:
        """Put the tracker in front of the other finders."""
        if not self.installed:
            sys.meta_path.insert(0, self)
            logger.debug("Import tracker installed")

    def uninstall(self) -> None:
        """Remove the tracker from ``sys.meta_path``."""
        if self.installed:
            sys.meta_path.remove(self)
            logger.debug("Import tracker removed")

    def track(self, spec: ModuleSpec) -> ModuleSpec:
        """Wrap a spec's loader so that executing it is recorded.

        Specs without a file location, or whose loader cannot execute
        modules, are returned unchanged.
        """
        identity = spec_identity(spec)
        if identity is None or spec.loader is None:
            return spec
        if isinstance(spec.loader, _TrackingLoader) or not hasattr(spec.loader, "exec_module"):
            return spec
        spec.loader = _TrackingLoader(spec.loader, self, identity)
        return spec

    def find_spec(self, fullname: str, path: Any = None, target: ModuleType | None = None) -> ModuleSpec | None:
        for finder in sys.meta_path:
            if finder is self:
                continue
            find_spec = getattr(finder, "find_spec", None)
            if find_spec is None:
                continue
            spec = find_spec(fullname, path, target)
            if spec is not None:
                return self.track(spec)
        return None
