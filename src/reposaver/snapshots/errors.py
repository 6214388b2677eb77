"""Snapshot store errors."""


class SnapshotError(Exception):
    """Base exception for snapshot store operations."""


class InvalidNameError(SnapshotError):
    """Raised when a subfolder name or timestamp would escape the store layout."""


class GenerationNotFoundError(SnapshotError):
    """Raised when a requested generation does not exist."""
