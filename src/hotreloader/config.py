"""Session configuration and entry point resolution."""

import json
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when a watch session cannot start with the given parameters."""


def _as_path_string(value: Any) -> str | None:
    if isinstance(value, str | os.PathLike):
        return os.fspath(value)
    return None


class SessionConfig(BaseModel):
    """Parameters accepted by ``watch()``."""

    model_config = ConfigDict(extra="forbid")

    entry_file: str
    targets: list[str] | None = None
    cwd: str | None = None
    verbose: bool = True

    # Watcher tuning
    stability_threshold_ms: int = Field(default=10, ge=0)
    debounce_ms: int = Field(default=1600, ge=1)
    ignore_paths: list[str] = Field(default_factory=list)

    # Vendored directories that are never invalidated
    immutable_paths: list[str] = Field(default_factory=list)

    @field_validator("entry_file", mode="before")
    @classmethod
    def _check_entry_file(cls, value: Any) -> str:
        path = _as_path_string(value)
        if path is None:
            raise ValueError("type of parameter `entry_file` must be a path string")
        return path

    @field_validator("cwd", mode="before")
    @classmethod
    def _check_cwd(cls, value: Any) -> str | None:
        # Anything that is not a path falls back to the process cwd
        return _as_path_string(value)

    @field_validator("targets", "ignore_paths", "immutable_paths", mode="before")
    @classmethod
    def _check_path_list(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        single = _as_path_string(value)
        if single is not None:
            return [single]
        if isinstance(value, Sequence) and not isinstance(value, bytes):
            paths = [_as_path_string(item) for item in value]
            if all(p is not None for p in paths):
                return paths
        raise ValueError("must be a path, a list of paths, or empty")

    @classmethod
    def from_params(cls, **params: Any) -> "SessionConfig":
        """Validate keyword parameters, raising ConfigurationError."""
        try:
            return cls(**params)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def resolve(self) -> "ResolvedConfig":
        """Make every path absolute and resolve the entry file."""
        cwd = Path(os.path.abspath(self.cwd or os.getcwd()))
        targets = self.targets if self.targets is not None else [str(cwd)]

        return ResolvedConfig(
            entry_file=resolve_entry_file(self.entry_file, cwd),
            targets=[_absolute(t, cwd) for t in targets],
            cwd=cwd,
            verbose=self.verbose,
            stability_threshold_ms=self.stability_threshold_ms,
            debounce_ms=self.debounce_ms,
            ignore_paths=[_absolute(p, cwd) for p in self.ignore_paths],
            immutable_paths=[_absolute(p, cwd) for p in self.immutable_paths],
        )


@dataclass
class ResolvedConfig:
    """Session configuration with absolute paths."""

    entry_file: Path
    targets: list[Path]
    cwd: Path
    verbose: bool = True
    stability_threshold_ms: int = 10
    debounce_ms: int = 1600
    ignore_paths: list[Path] = field(default_factory=list)
    immutable_paths: list[Path] = field(default_factory=list)


def _absolute(path: str | Path, cwd: Path) -> Path:
    return Path(os.path.abspath(cwd / path))


def _manifest_main(directory: Path) -> str | None:
    """Read the declared main file from a manifest in a directory.

    Checks ``pyproject.toml`` (``[tool.hotreloader] main``) first, then
    ``package.json`` (``main``).
    """
    pyproject = directory / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomli.loads(pyproject.read_text())
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid {pyproject}: {e}") from e
        main = data.get("tool", {}).get("hotreloader", {}).get("main")
        if isinstance(main, str):
            return main

    package_json = directory / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid {package_json}: {e}") from e
        main = data.get("main") if isinstance(data, dict) else None
        if isinstance(main, str):
            return main

    return None


def resolve_entry_file(entry_file: str | Path, cwd: Path) -> Path:
    """Resolve the effective entry file.

    Args:
        entry_file: Entry path, relative to ``cwd`` or absolute.
        cwd: Base directory.

    Returns:
        Absolute path of the file to run.

    Raises:
        ConfigurationError: If the entry does not exist, or is a directory
            without a manifest declaring a main file.
    """
    path = _absolute(entry_file, cwd)
    if not path.exists():
        raise ConfigurationError(f"entry file not found: {path}")

    if path.is_dir():
        main = _manifest_main(path)
        if main is None:
            raise ConfigurationError(f"entry file not found: no main declared in a manifest in {path}")
        path = _absolute(main, path)
        if not path.is_file():
            raise ConfigurationError(f"entry file not found: {path}")

    logger.debug(f"Resolved entry file {path}")
    return path
