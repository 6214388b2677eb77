"""Loop-safe restore of a generation into the live watched root.

A restore writes under the watched root, which the watcher would otherwise
report back as fresh changes and turn into new captures. The coordinator
raises the suppression flag before touching the filesystem and keeps it
raised for a settle delay after the copy, letting in-flight notifications
for its own writes drain. The delay bounds notification latency in practice
rather than synchronizing with the OS.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from reposaver.snapshots import SnapshotError, SnapshotStore
from reposaver.watch.suppression import SuppressionFlag

LOGGER = logging.getLogger(__name__)

SETTLE_DELAY_SECONDS = 1.0


class RestorePhase(str, Enum):
    IDLE = "idle"
    RESTORING = "restoring"
    SETTLING = "settling"


class RestoreCoordinator:
    """Replace a live subfolder with one of its generations."""

    def __init__(
        self,
        store: SnapshotStore,
        suppression: SuppressionFlag,
        *,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        on_restored: Optional[Callable[[str, str], None]] = None,
        on_settled: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Snapshot store holding the generations.
            suppression: Flag consulted by the event router.
            settle_delay: Seconds to keep suppression after the copy.
            sleep: Blocking wait used for the settle delay.
            on_restored: Called with ``(subfolder, timestamp)`` after a successful copy.
            on_settled: Called once suppression is cleared.
        """
        self._store = store
        self._suppression = suppression
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._on_restored = on_restored
        self._on_settled = on_settled
        self._serial = threading.Lock()
        self._phase_lock = threading.Lock()
        self._phase = RestorePhase.IDLE

    @property
    def phase(self) -> RestorePhase:
        with self._phase_lock:
            return self._phase

    def restore(self, watched_root: Path, subfolder: str, timestamp: str) -> bool:
        """Restore ``subfolder`` under ``watched_root`` to generation ``timestamp``.

        Failures are logged; suppression is always released after the settle
        delay. There is no rollback of a partially written subfolder.

        Returns:
            bool: ``True`` when the copy completed.
        """
        with self._serial:
            self._suppression.set()
            self._set_phase(RestorePhase.RESTORING)
            restored = False
            try:
                self._store.restore_into(subfolder, timestamp, watched_root / subfolder)
                restored = True
                LOGGER.info("Restored %s to %s", subfolder, timestamp)
            except (SnapshotError, OSError) as exc:
                LOGGER.error("Restore of %s to %s failed: %s", subfolder, timestamp, exc)

            if restored and self._on_restored is not None:
                self._notify_restored(subfolder, timestamp)

            self._set_phase(RestorePhase.SETTLING)
            try:
                self._sleep(self._settle_delay)
            finally:
                self._suppression.clear()
                self._set_phase(RestorePhase.IDLE)

        if self._on_settled is not None:
            self._on_settled()
        return restored

    def _notify_restored(self, subfolder: str, timestamp: str) -> None:
        try:
            self._on_restored(subfolder, timestamp)  # type: ignore[misc]
        except Exception:
            LOGGER.exception("Restore notification for %s failed", subfolder)

    def _set_phase(self, phase: RestorePhase) -> None:
        with self._phase_lock:
            self._phase = phase


__all__ = ["RestoreCoordinator", "RestorePhase", "SETTLE_DELAY_SECONDS"]
