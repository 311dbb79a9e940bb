"""Immutable-dependency namespace.

Modules that live in the standard library, in ``site-packages`` or in a
configured vendored directory are treated as third-party code: they are
walked during invalidation but never evicted from the module cache.
"""

import logging
import os
import sysconfig
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Installed-package directories, matched on any path component
DEFAULT_MARKERS = ("site-packages", "dist-packages")

_SYSCONFIG_KEYS = ("stdlib", "platstdlib", "purelib", "platlib")


def default_roots() -> list[Path]:
    """Interpreter library directories plus the hotreloader package itself."""
    paths = sysconfig.get_paths()
    candidates = [paths[key] for key in _SYSCONFIG_KEYS if key in paths]
    candidates.append(str(Path(__file__).parent.parent))

    roots: list[Path] = []
    for candidate in candidates:
        for variant in (os.path.abspath(candidate), os.path.realpath(candidate)):
            path = Path(variant)
            if path not in roots:
                roots.append(path)
    return roots


@dataclass
class ImmutableConfig:
    """Configuration for the immutable namespace."""

    # Extra vendored directories that must never be invalidated
    extra_roots: list[str | Path] = field(default_factory=list)

    # Path components that mark installed third-party code
    markers: tuple[str, ...] = DEFAULT_MARKERS

    # Include the standard library and site directories of this interpreter
    include_interpreter: bool = True


class ImmutableNamespace:
    """Answers whether a module identity belongs to immutable code."""

    def __init__(self, config: ImmutableConfig | None = None):
        self.config = config or ImmutableConfig()
        self.roots: list[Path] = default_roots() if self.config.include_interpreter else []
        for extra in self.config.extra_roots:
            path = Path(os.path.abspath(extra))
            if path not in self.roots:
                self.roots.append(path)

    def contains(self, identity: Path) -> bool:
        """Check if an identity is protected from invalidation.

        Args:
            identity: Absolute path of a loaded module.

        Returns:
            True if the module must never be evicted.
        """
        if any(marker in identity.parts for marker in self.config.markers):
            return True
        return any(identity.is_relative_to(root) for root in self.roots)

    def __contains__(self, identity: Path) -> bool:
        return self.contains(identity)
