"""Change detection for the watched root."""

from .debounce import QUIET_WINDOW_SECONDS, DebounceScheduler
from .events import ACCESS_KINDS, EventKind, FsEvent
from .router import EventRouter
from .service import WatchService
from .reload import SettingsReloader
from .suppression import SuppressionFlag
from .tracker import DELETION_GRACE_SECONDS, DeletionTracker

__all__ = [
    "ACCESS_KINDS",
    "DELETION_GRACE_SECONDS",
    "QUIET_WINDOW_SECONDS",
    "DebounceScheduler",
    "DeletionTracker",
    "EventKind",
    "EventRouter",
    "FsEvent",
    "SettingsReloader",
    "SuppressionFlag",
    "WatchService",
]
