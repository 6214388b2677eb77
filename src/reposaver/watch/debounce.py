"""Per-subfolder quiet-window scheduling.

Every qualifying event stores a fresh token for its subfolder and starts a
timer carrying that token. When a timer fires it compares its token with the
one currently stored; only the timer of the most recent event still matches,
so a burst of any length yields exactly one capture once the subfolder has
been quiet for the whole window. Stale timers notice they are obsolete by
comparison and need no cancellation.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Optional, Protocol

LOGGER = logging.getLogger(__name__)

QUIET_WINDOW_SECONDS = 0.3


class TimerLike(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[..., Any], tuple[Any, ...]], TimerLike]


def _thread_timer(interval: float, function: Callable[..., Any], args: tuple[Any, ...]) -> TimerLike:
    return threading.Timer(interval, function, args=args)


class DebounceScheduler:
    """Collapse bursts of change events into a single action per subfolder."""

    def __init__(
        self,
        action: Callable[[str], Any],
        *,
        quiet_window: float = QUIET_WINDOW_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            action: Callable invoked with the subfolder name once it settles.
            quiet_window: Seconds without further events before ``action`` runs.
            timer_factory: Builds the deferred check; defaults to ``threading.Timer``.
        """
        self._action = action
        self._quiet_window = quiet_window
        self._timer_factory = timer_factory or _thread_timer
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()
        self._latest: dict[str, int] = {}
        self._timers: dict[int, TimerLike] = {}

    def schedule(self, subfolder: str) -> None:
        """Record a change for ``subfolder`` and arm its deferred check."""
        with self._lock:
            token = next(self._tokens)
            self._latest[subfolder] = token
            timer = self._timer_factory(self._quiet_window, self._fire, (subfolder, token))
            timer.daemon = True
            self._timers[token] = timer
        timer.start()

    def pending(self) -> int:
        """Return the number of armed timers that have not fired yet."""
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        """Disarm every pending check; used when the owning watcher stops."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._latest.clear()
        for timer in timers:
            timer.cancel()

    def _fire(self, subfolder: str, token: int) -> None:
        with self._lock:
            if self._timers.pop(token, None) is None:
                return
            if self._latest.get(subfolder) != token:
                return
            del self._latest[subfolder]

        try:
            self._action(subfolder)
        except Exception:
            LOGGER.exception("Deferred capture for %s failed", subfolder)


__all__ = ["QUIET_WINDOW_SECONDS", "DebounceScheduler", "TimerFactory", "TimerLike"]
