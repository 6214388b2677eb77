"""Reconcile snapshot history with the live watched root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from reposaver.snapshots import SnapshotStore

from .models import SubFolderState

LOGGER = logging.getLogger(__name__)

StateSink = Callable[[Sequence[SubFolderState]], None]


def reconcile_state(store: SnapshotStore, watched_root: Path) -> list[SubFolderState]:
    """Build the ordered per-subfolder view from what is on disk right now.

    Subfolders with history come from the snapshot store; live subfolders that
    were never backed up are added with no generations. Nothing is cached, so
    two calls with no filesystem change in between return equal results.

    Args:
        store: Snapshot store holding generations and memos.
        watched_root: Live directory whose subdirectories are protected.

    Returns:
        list[SubFolderState]: States sorted ascending by name.
    """
    results: dict[str, SubFolderState] = {}

    for name in _list_dirs(store.root):
        try:
            generations = store.list_generations(name)
        except OSError as exc:
            LOGGER.warning("Unable to list backups of %s: %s", name, exc)
            generations = []
        results[name] = SubFolderState(
            name=name,
            memo=store.read_memo(name),
            backups=list(reversed(generations)),
            source_exists=(watched_root / name).is_dir(),
        )

    for name in _list_dirs(watched_root):
        if name not in results:
            results[name] = SubFolderState(name=name, source_exists=True)

    return [results[name] for name in sorted(results)]


def _list_dirs(directory: Path) -> list[str]:
    try:
        return [entry.name for entry in directory.iterdir() if entry.is_dir()]
    except FileNotFoundError:
        return []
    except OSError as exc:
        LOGGER.warning("Unable to list %s: %s", directory, exc)
        return []


__all__ = ["SubFolderState", "StateSink", "reconcile_state"]
