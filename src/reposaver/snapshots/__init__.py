"""Snapshot storage for RepoSaver."""

from .errors import GenerationNotFoundError, InvalidNameError, SnapshotError
from .store import GENERATION_FORMAT, MEMO_FILENAME, SnapshotStore, copy_tree, format_generation

__all__ = [
    "GENERATION_FORMAT",
    "MEMO_FILENAME",
    "SnapshotStore",
    "SnapshotError",
    "InvalidNameError",
    "GenerationNotFoundError",
    "copy_tree",
    "format_generation",
]
