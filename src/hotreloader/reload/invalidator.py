"""Cache invalidation for changed modules."""

import importlib
import logging
from collections.abc import Iterable
from pathlib import Path

from hotreloader.reload.registry import ModuleRegistry

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """Evicts stale modules from a ModuleRegistry.

    A partial invalidation removes the dependency closure of each changed
    file: the file itself and every module up its parent chain. A full
    invalidation removes everything outside the immutable namespace.
    """

    def __init__(self, registry: ModuleRegistry):
        self.registry = registry

    def invalidate(self, changed: Iterable[Path]) -> set[Path]:
        """Remove the parent-chain closure of each changed identity.

        Args:
            changed: Identities (absolute paths) reported as changed.

        Returns:
            Set of identities removed from the registry.
        """
        removed: set[Path] = set()
        for identity in changed:
            removed.update(self.registry.remove_chain_from(identity))

        importlib.invalidate_caches()
        logger.debug(f"Invalidated {len(removed)} cached modules")
        return removed

    def invalidate_all(self) -> set[Path]:
        """Remove every cached module except immutable dependencies."""
        removed = set(self.registry.remove_all())

        importlib.invalidate_caches()
        logger.debug(f"Full invalidation removed {len(removed)} cached modules")
        return removed
