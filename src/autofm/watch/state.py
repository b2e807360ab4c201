"""Watch session phases and the actions each notification triggers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


class WatchPhase(Enum):
    SCANNING = "scanning"
    READY = "ready"
    CLOSING = "closing"


class NotificationKind(Enum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    ADD_DIR = "add_dir"
    UNLINK_DIR = "unlink_dir"
    READY = "ready"
    ERROR = "error"


class WatchAction(Enum):
    INITIALIZE = "initialize"
    UPDATE = "update"
    RESYNC = "resync"
    STAMP_UPDATED = "stamp_updated"
    LOG = "log"
    CLOSE = "close"


@dataclass(frozen=True, slots=True)
class Notification:
    """A single event reported by the directory watcher.

    Attributes:
        kind: Event type.
        path: Affected path; ``None`` for ``ready``.
        error: Error message for ``error`` notifications.
    """

    kind: NotificationKind
    path: Optional[Path] = None
    error: Optional[str] = None


_STRUCTURAL = frozenset(
    {NotificationKind.UNLINK, NotificationKind.UNLINK_DIR, NotificationKind.ADD_DIR}
)


class WatchStateMachine:
    """Map watcher notifications to actions according to the session phase.

    During the initial scan every discovered file receives the session's
    initial action and content edits are ignored. Once the scan completes,
    one-shot sessions close and continuous sessions start reacting to
    additions, renames, and edits.
    """

    def __init__(self, *, one_shot: bool, initial_action: WatchAction) -> None:
        """Initialize the state machine.

        Args:
            one_shot: Whether the session ends after the initial scan.
            initial_action: Action applied to files found during the scan.
        """
        self._one_shot = one_shot
        self._initial_action = initial_action
        self._phase = WatchPhase.SCANNING

    @classmethod
    def for_session(cls, *, one_shot: bool, force: bool) -> "WatchStateMachine":
        """Build a machine whose scan action follows the session flags."""
        initial = WatchAction.UPDATE if one_shot or force else WatchAction.INITIALIZE
        return cls(one_shot=one_shot, initial_action=initial)

    @property
    def phase(self) -> WatchPhase:
        return self._phase

    @property
    def one_shot(self) -> bool:
        return self._one_shot

    @property
    def initial_action(self) -> WatchAction:
        return self._initial_action

    def handle(self, notification: Notification) -> tuple[WatchAction, ...]:
        """Advance the phase if needed and return the actions to perform."""
        kind = notification.kind

        if self._phase is WatchPhase.CLOSING:
            return ()

        if kind is NotificationKind.ERROR or kind in _STRUCTURAL:
            return (WatchAction.LOG,)

        if self._phase is WatchPhase.SCANNING:
            if kind is NotificationKind.ADD:
                return (self._initial_action,)
            if kind is NotificationKind.READY:
                if self._one_shot:
                    self._phase = WatchPhase.CLOSING
                    LOGGER.info("Initial scan complete; closing one-shot session")
                    return (WatchAction.CLOSE,)
                self._phase = WatchPhase.READY
                LOGGER.info("Initial scan complete; watching for changes")
            return ()

        if kind is NotificationKind.ADD:
            return (WatchAction.INITIALIZE, WatchAction.RESYNC)
        if kind is NotificationKind.CHANGE:
            return (WatchAction.STAMP_UPDATED,)
        return ()

    def permits(self, action: WatchAction) -> bool:
        """Return whether ``action`` may run in the current phase."""
        if self._phase is WatchPhase.SCANNING:
            return action in (self._initial_action, WatchAction.LOG, WatchAction.CLOSE)
        if self._phase is WatchPhase.READY:
            return action in (
                WatchAction.INITIALIZE,
                WatchAction.RESYNC,
                WatchAction.STAMP_UPDATED,
                WatchAction.LOG,
            )
        return False

    def close(self) -> None:
        """Force the machine into the closing phase."""
        self._phase = WatchPhase.CLOSING


__all__ = [
    "Notification",
    "NotificationKind",
    "WatchAction",
    "WatchPhase",
    "WatchStateMachine",
]
