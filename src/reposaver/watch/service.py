"""Filesystem watch service feeding a single routing worker."""

from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import FsEvent

LOGGER = logging.getLogger(__name__)

_STOP = None


class WatchService:
    """Own one recursive watchdog subscription and the worker that drains it.

    The observer thread only converts and enqueues events. A single worker
    thread consumes the queue in arrival order and hands each event to the
    route callback, so routing never runs concurrently with itself.
    """

    def __init__(
        self,
        root: Path,
        route: Callable[[FsEvent], None],
        *,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        """Initialize the watch service.

        Args:
            root: Directory to monitor recursively.
            route: Callable invoked on the worker thread for every event.
            observer_factory: Builds the watchdog observer.
        """
        self._root = root
        self._route = route
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._queue: queue.Queue[Optional[FsEvent]] = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> bool:
        """Register the watch and start the routing worker.

        Returns:
            bool: ``False`` when registration failed; the service stays inactive.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")

        if not self._root.is_dir():
            LOGGER.error("Watched root does not exist: %s", self._root)
            return False

        observer = self._observer_factory()
        try:
            observer.schedule(_WatchEventHandler(self._queue), str(self._root), recursive=True)
            observer.start()
        except OSError as exc:
            LOGGER.error("Failed to watch %s: %s", self._root, exc)
            return False

        self._observer = observer
        self._worker = threading.Thread(
            target=self._run_loop, name="reposaver-router", daemon=True
        )
        self._worker.start()
        LOGGER.info("Watching %s", self._root)
        return True

    def stop(self) -> None:
        """Stop the observer and let the worker drain queued events before exiting."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        # Unblock the queue to allow the processing loop to exit cleanly.
        self._queue.put(_STOP)
        if self._worker is not None:
            self._worker.join(timeout=5)
            self._worker = None

    def submit(self, event: FsEvent) -> None:
        """Queue an event as if it came from the observer."""
        self._queue.put(event)

    def _run_loop(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                break
            try:
                self._route(event)
            except Exception:
                LOGGER.exception("Failed to route %s event for %s", event.kind.value, event.paths)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward watchdog events into the service queue."""

    def __init__(self, queue_handle: queue.Queue[Optional[FsEvent]]) -> None:
        self._queue = queue_handle

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Convert and enqueue every event watchdog reports."""
        converted = FsEvent.from_watchdog(event)
        if converted is not None:
            self._queue.put(converted)


__all__ = ["WatchService"]
