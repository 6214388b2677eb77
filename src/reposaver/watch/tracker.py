"""Short-lived memory of recent deletions per subfolder."""

from __future__ import annotations

import threading
import time
from typing import Callable

DELETION_GRACE_SECONDS = 0.5


class DeletionTracker:
    """Remember when each subfolder last saw a deletion.

    Deleting a file also bumps the parent directory's metadata, which arrives
    as a separate modify event. Checking the tracker before scheduling a
    capture keeps that echo from producing a phantom backup. Entries are never
    swept; every check is relative to the grace window, so stale entries are
    harmless.
    """

    def __init__(
        self,
        grace_seconds: float = DELETION_GRACE_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._grace = grace_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._deleted_at: dict[str, float] = {}

    def record(self, subfolder: str) -> None:
        """Mark ``subfolder`` as having just seen a deletion."""
        now = self._clock()
        with self._lock:
            self._deleted_at[subfolder] = now

    def is_recently_suppressed(self, subfolder: str) -> bool:
        """Return ``True`` if a deletion was recorded less than the grace window ago."""
        with self._lock:
            deleted_at = self._deleted_at.get(subfolder)
        if deleted_at is None:
            return False
        return self._clock() - deleted_at < self._grace


__all__ = ["DELETION_GRACE_SECONDS", "DeletionTracker"]
