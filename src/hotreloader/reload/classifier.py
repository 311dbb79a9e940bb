"""Decides what a filesystem change means for the loaded program."""

import logging
from enum import Enum
from pathlib import Path

from hotreloader.reload.orchestrator import RestartOrchestrator
from hotreloader.reload.registry import ModuleRegistry
from hotreloader.reload.state import SessionState
from hotreloader.reload.watcher import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

CHANGE_LABELS = {
    ChangeKind.ADD: "new file",
    ChangeKind.ADD_DIR: "new directory",
    ChangeKind.CHANGE: "changes",
    ChangeKind.UNLINK: "deleted file",
    ChangeKind.UNLINK_DIR: "deleted directory",
}


class Decision(str, Enum):
    """Outcome of classifying one change."""

    FULL_RELOAD = "full_reload"
    PARTIAL_RELOAD = "partial_reload"
    IGNORE = "ignore"


class ChangeClassifier:
    """Routes watcher events to the restart orchestrator.

    - The entry file itself -> full reload
    - A cached module -> partial reload of its dependency closure
    - Anything else -> ignored, unless the program crashed and the path
      was part of the failed attempt, in which case it is a retry signal
    """

    def __init__(
        self,
        entry_file: Path,
        registry: ModuleRegistry,
        orchestrator: RestartOrchestrator,
        state: SessionState | None = None,
        verbose: bool = True,
    ):
        self.entry_file = entry_file
        self.registry = registry
        self.orchestrator = orchestrator
        self.state = state or orchestrator.state
        self.progress_level = logging.INFO if verbose else logging.DEBUG

    def classify(self, path: Path) -> Decision:
        """Classify a changed path without side effects."""
        if path == self.entry_file:
            return Decision.FULL_RELOAD

        if path in self.registry:
            return Decision.PARTIAL_RELOAD

        if self.state.crashed and (self.orchestrator.was_recorded(path) or path in self.registry.failed):
            return Decision.PARTIAL_RELOAD

        return Decision.IGNORE

    def dispatch(self, event: ChangeEvent) -> Decision:
        """Classify an event and hand qualifying changes to the orchestrator."""
        logger.log(self.progress_level, f"{CHANGE_LABELS[event.kind]} on {event.path}")

        decision = self.classify(event.path)
        if decision is Decision.FULL_RELOAD:
            self.orchestrator.submit_full_reload()
        elif decision is Decision.PARTIAL_RELOAD:
            self.orchestrator.submit_change(event.path)
        else:
            logger.debug(f"Ignoring {event.path}: not used by the program")
        return decision
