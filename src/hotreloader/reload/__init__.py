"""Live-reload engine.

- File watching (watchfiles)
- Module cache with reverse dependency edges
- Change classification and cache invalidation
- Single-flight restart orchestration
- Entry loading and lifecycle hooks
"""

from hotreloader.reload.classifier import ChangeClassifier, Decision
from hotreloader.reload.immutable import ImmutableConfig, ImmutableNamespace
from hotreloader.reload.invalidator import CacheInvalidator
from hotreloader.reload.orchestrator import CycleResult, RestartOrchestrator
from hotreloader.reload.registry import ModuleCacheEntry, ModuleRegistry
from hotreloader.reload.runner import EntryHandle, EntryRunner, HookError, LoadError
from hotreloader.reload.session import WatchSession, watch
from hotreloader.reload.state import CycleKind, ReloadState, SessionState
from hotreloader.reload.tracker import ImportTracker
from hotreloader.reload.watcher import ChangeEvent, ChangeKind, PathWatcher, WatcherError

__all__ = [
    "CacheInvalidator",
    "ChangeClassifier",
    "ChangeEvent",
    "ChangeKind",
    "CycleKind",
    "CycleResult",
    "Decision",
    "EntryHandle",
    "EntryRunner",
    "HookError",
    "ImmutableConfig",
    "ImmutableNamespace",
    "ImportTracker",
    "LoadError",
    "ModuleCacheEntry",
    "ModuleRegistry",
    "PathWatcher",
    "ReloadState",
    "RestartOrchestrator",
    "SessionState",
    "WatchSession",
    "WatcherError",
    "watch",
]
