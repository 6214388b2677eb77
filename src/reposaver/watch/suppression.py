"""Switch that mutes the watcher while RepoSaver writes to the live root.

The flag is shared between processes through marker files. Raising it drops
``.restoring-<id>`` into the marker directory (the snapshot root), and every
flag pointed at the same directory reports itself active while any fresh
marker exists. A ``reposaver restore`` run therefore mutes a separate
``reposaver watch`` process for the whole restore and settle window.
"""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

MARKER_PREFIX = ".restoring-"
# Markers left behind by a crashed restore stop muting the watcher after this.
MARKER_STALE_SECONDS = 30 * 60


class SuppressionFlag:
    """Lock-guarded boolean consulted for every incoming filesystem event."""

    def __init__(
        self,
        marker_dir: Optional[Path] = None,
        *,
        stale_after: float = MARKER_STALE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the flag.

        Args:
            marker_dir: Directory shared with other processes; ``None`` keeps
                the flag local to this process.
            stale_after: Age in seconds after which a marker is ignored.
            clock: Wall-clock source compared with marker modification times.
        """
        self._lock = threading.Lock()
        self._active = False
        self._marker_dir = marker_dir
        self._marker_name = f"{MARKER_PREFIX}{os.getpid()}-{uuid.uuid4().hex[:8]}"
        self._stale_after = stale_after
        self._clock = clock

    @property
    def active(self) -> bool:
        with self._lock:
            if self._active:
                return True
            marker_dir = self._marker_dir
        return marker_dir is not None and self._fresh_marker_in(marker_dir)

    def use_marker_dir(self, marker_dir: Optional[Path]) -> None:
        """Share the flag through ``marker_dir`` from now on."""
        with self._lock:
            self._marker_dir = marker_dir

    def set(self) -> None:
        with self._lock:
            self._active = True
            marker_dir = self._marker_dir
        if marker_dir is None:
            return
        try:
            marker_dir.mkdir(parents=True, exist_ok=True)
            (marker_dir / self._marker_name).write_text(str(os.getpid()), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Restore marker unavailable in %s: %s", marker_dir, exc)

    def clear(self) -> None:
        with self._lock:
            self._active = False
            marker_dir = self._marker_dir
        if marker_dir is None:
            return
        try:
            (marker_dir / self._marker_name).unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("Unable to remove restore marker in %s: %s", marker_dir, exc)

    def _fresh_marker_in(self, marker_dir: Path) -> bool:
        cutoff = self._clock() - self._stale_after
        try:
            markers = list(marker_dir.glob(f"{MARKER_PREFIX}*"))
        except OSError:
            return False
        for marker in markers:
            try:
                if marker.stat().st_mtime >= cutoff:
                    return True
            except OSError:
                continue
        return False


__all__ = ["MARKER_PREFIX", "MARKER_STALE_SECONDS", "SuppressionFlag"]
