"""Session state shared by the reload components."""

from dataclasses import dataclass
from enum import Enum


class ReloadState(str, Enum):
    """States of the restart orchestrator."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    CRASHED = "crashed"
    RELOAD_PENDING = "reload_pending"


class CycleKind(str, Enum):
    """What a reload cycle invalidates before running the entry."""

    INITIAL = "initial"  # first load, nothing cached yet
    PARTIAL = "partial"
    FULL = "full"


@dataclass
class SessionState:
    """Flags that live for the duration of a watch session."""

    crashed: bool = False
    restarting: bool = False
    need_restart: bool = False
