"""Classify filesystem events and route them to deletion tracking or debouncing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Protocol

from .events import ACCESS_KINDS, EventKind, FsEvent
from .suppression import SuppressionFlag
from .tracker import DeletionTracker

LOGGER = logging.getLogger(__name__)


class Scheduler(Protocol):
    def schedule(self, subfolder: str) -> None: ...


class EventRouter:
    """Turn raw change notifications into capture requests.

    Removals only mark the affected subfolders in the deletion tracker; a
    removed top-level folder additionally refreshes the published state.
    Changes to paths that still exist are handed to the scheduler unless the
    subfolder saw a deletion within the tracker's grace window. Everything is
    ignored while the suppression flag is set.
    """

    def __init__(
        self,
        root: Path,
        *,
        suppression: SuppressionFlag,
        tracker: DeletionTracker,
        scheduler: Scheduler,
        on_folder_removed: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            root: Watched root; subfolders are its immediate children.
            suppression: Flag raised while a restore writes to the live root.
            tracker: Deletion tracker owned by the current watch session.
            scheduler: Debounce scheduler receiving capture requests.
            on_folder_removed: Called when a top-level folder disappears.
        """
        self._root = root
        self._suppression = suppression
        self._tracker = tracker
        self._scheduler = scheduler
        self._on_folder_removed = on_folder_removed

    def route(self, event: FsEvent) -> None:
        """Process a single event."""
        if self._suppression.active:
            LOGGER.debug("Ignoring %s during restore: %s", event.kind.value, event.paths)
            return

        if event.kind in ACCESS_KINDS:
            return

        if event.kind is EventKind.DELETED:
            self._route_removal(event)
            return

        if not any(path.exists() for path in event.paths):
            LOGGER.debug("Ignoring %s for vanished paths %s", event.kind.value, event.paths)
            return

        for name in self.subfolders_for(event.paths):
            if not (self._root / name).is_dir():
                continue
            if self._tracker.is_recently_suppressed(name):
                LOGGER.info("Ignoring change in %s right after a deletion", name)
                continue
            self._scheduler.schedule(name)

    def subfolders_for(self, paths: Iterable[Path]) -> list[str]:
        """Return distinct subfolder names touched by ``paths``, in first-seen order."""
        names: list[str] = []
        for path in paths:
            try:
                relative = path.relative_to(self._root)
            except ValueError:
                continue
            if not relative.parts:
                continue
            name = relative.parts[0]
            if name not in names:
                names.append(name)
        return names

    def _route_removal(self, event: FsEvent) -> None:
        top_level = event.is_directory and any(
            path.parent == self._root for path in event.paths
        )
        if top_level:
            LOGGER.info("Subfolder removed: %s", event.paths[0].name)
            if self._on_folder_removed is not None:
                self._on_folder_removed()
        for name in self.subfolders_for(event.paths):
            self._tracker.record(name)


__all__ = ["EventRouter", "Scheduler"]
