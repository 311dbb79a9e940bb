"""In-memory module cache with reverse dependency edges.

Every module loaded on behalf of the watched program is recorded here,
keyed by the absolute path of its source file. Each record remembers the
module whose execution caused it to load first (its parent). Walking the
parent chain from a changed file yields every cached module that has to be
re-executed to pick up the change.
"""

import contextlib
import logging
import sys
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from types import ModuleType

from hotreloader.reload.immutable import ImmutableNamespace

logger = logging.getLogger(__name__)


@dataclass
class ModuleCacheEntry:
    """One loaded unit of code."""

    id: Path
    name: str
    parent: Path | None = None
    module: ModuleType | None = field(default=None, repr=False, compare=False)
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ModuleRegistry:
    """Identity -> ModuleCacheEntry map backed by ``sys.modules``.

    Removing an entry also evicts the module from the import system so the
    next import executes it again from disk.
    """

    def __init__(
        self,
        namespace: ImmutableNamespace | None = None,
        modules: MutableMapping[str, ModuleType] | None = None,
    ):
        self.namespace = namespace or ImmutableNamespace()
        self.modules = sys.modules if modules is None else modules
        self._entries: dict[Path, ModuleCacheEntry] = {}

        # Identities whose execution raised during the most recent load
        self.failed: set[Path] = set()

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._entries))

    def get(self, identity: Path) -> ModuleCacheEntry | None:
        """Get the cache entry for an identity, if loaded."""
        return self._entries.get(identity)

    def put(
        self,
        identity: Path,
        name: str,
        parent: Path | None = None,
        module: ModuleType | None = None,
    ) -> ModuleCacheEntry:
        """Record a module that is being loaded.

        Args:
            identity: Absolute path of the module's source file.
            name: Import name the module is registered under.
            parent: Identity of the module whose execution imported it.
            module: The module object.

        Returns:
            The new cache entry.
        """
        if parent == identity:
            parent = None
        entry = ModuleCacheEntry(id=identity, name=name, parent=parent, module=module)
        self._entries[identity] = entry
        self.failed.discard(identity)
        logger.debug(f"Cached {name} ({identity}) parent={parent}")
        return entry

    def mark_failed(self, identity: Path) -> None:
        """Drop the entry of a module whose execution raised."""
        self._entries.pop(identity, None)
        self.failed.add(identity)

    def is_immutable(self, identity: Path) -> bool:
        """Check if an identity belongs to the immutable namespace."""
        return self.namespace.contains(identity)

    def remove(self, identity: Path) -> bool:
        """Remove an entry and evict its module from the import system.

        Returns:
            True if an entry was removed.
        """
        entry = self._entries.pop(identity, None)
        if entry is None:
            return False

        module = self.modules.get(entry.name)
        if module is not None and (entry.module is None or module is entry.module):
            del self.modules[entry.name]
            self._detach_from_package(entry.name, module)

        logger.debug(f"Evicted {entry.name} ({identity})")
        return True

    def _detach_from_package(self, name: str, module: ModuleType) -> None:
        """Unbind a submodule from its parent package.

        ``from package import submodule`` returns the package attribute when
        present, so a stale binding would survive eviction.
        """
        package_name, _, child = name.rpartition(".")
        if not package_name:
            return
        package = self.modules.get(package_name)
        if package is not None and getattr(package, child, None) is module:
            with contextlib.suppress(AttributeError):
                delattr(package, child)

    def remove_chain_from(self, identity: Path) -> list[Path]:
        """Remove an entry and every transitive parent.

        The walk stops at an entry without a parent, at an identity that is
        not cached, or at one already visited. Immutable entries are walked
        but kept.

        Returns:
            Identities removed, in walk order.
        """
        removed: list[Path] = []
        visited: set[Path] = set()
        current: Path | None = identity

        while current is not None and current not in visited:
            visited.add(current)
            entry = self._entries.get(current)
            if entry is None:
                break
            if not self.is_immutable(current) and self.remove(current):
                removed.append(current)
            current = entry.parent

        return removed

    def remove_all(self) -> list[Path]:
        """Remove every entry outside the immutable namespace."""
        removed: list[Path] = []
        for identity in list(self._entries):
            if self.is_immutable(identity):
                continue
            if self.remove(identity):
                removed.append(identity)
        return removed

    def snapshot(self) -> dict[Path, Path | None]:
        """Identity -> parent identity for every cached module."""
        return {identity: entry.parent for identity, entry in self._entries.items()}
