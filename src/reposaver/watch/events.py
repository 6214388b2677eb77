"""Filesystem event records decoupled from the watchdog event classes."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEvent


class EventKind(str, Enum):
    """Kinds of change notification, named after watchdog's ``event_type`` values."""

    CREATED = "created"
    MODIFIED = "modified"
    MOVED = "moved"
    DELETED = "deleted"
    CLOSED = "closed"
    OPENED = "opened"
    CLOSED_NO_WRITE = "closed_no_write"


# Read-only access notifications; copying the live tree produces these.
ACCESS_KINDS = frozenset({EventKind.OPENED, EventKind.CLOSED_NO_WRITE})


@dataclass(frozen=True, slots=True)
class FsEvent:
    """A single change notification.

    Attributes:
        kind: What happened.
        paths: Affected paths; moves carry source and destination.
        is_directory: Whether the event concerns a directory.
    """

    kind: EventKind
    paths: tuple[Path, ...]
    is_directory: bool = False

    @classmethod
    def from_watchdog(cls, event: FileSystemEvent) -> FsEvent | None:
        """Convert a watchdog event, returning ``None`` for unknown kinds."""
        try:
            kind = EventKind(event.event_type)
        except ValueError:
            return None
        paths = [Path(os.fsdecode(event.src_path))]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(Path(os.fsdecode(dest)))
        return cls(kind=kind, paths=tuple(paths), is_directory=event.is_directory)


__all__ = ["ACCESS_KINDS", "EventKind", "FsEvent"]
