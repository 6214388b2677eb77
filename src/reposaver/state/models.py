"""State data models describing watched subfolders."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class SubFolderState(BaseModel):
    """Reconciled view of one subfolder across the live root and the snapshot store.

    Attributes:
        name: Subfolder name, unique within the watched root.
        memo: Free-text note attached to the subfolder.
        backups: Generation timestamps, newest first.
        source_exists: Whether the live subfolder currently exists.
    """

    name: str
    memo: str = ""
    backups: List[str] = Field(default_factory=list)
    source_exists: bool = False

    @property
    def latest(self) -> str | None:
        """Return the newest generation timestamp, if any."""
        return self.backups[0] if self.backups else None


__all__ = ["SubFolderState"]
