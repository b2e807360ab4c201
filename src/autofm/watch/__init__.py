"""Directory watching for AutoFM."""

from .service import MarkdownScanner, ResultCallback, WatchContext, WatchService
from .state import Notification, NotificationKind, WatchAction, WatchPhase, WatchStateMachine

__all__ = [
    "MarkdownScanner",
    "Notification",
    "NotificationKind",
    "ResultCallback",
    "WatchAction",
    "WatchContext",
    "WatchPhase",
    "WatchService",
    "WatchStateMachine",
]
