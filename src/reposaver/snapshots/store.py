"""Timestamped generation storage for watched subfolders.

Layout::

    <snapshot_root>/
        <subfolder>/
            meta.json            memo sidecar, optional
            20240101_000000/     one full copy per generation
            20240101_000105/

Generation names use a fixed-width ``YYYYMMDD_HHMMSS`` format, so sorting the
names lexically sorts them chronologically. Retention and display both rely on
that property.
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

from .errors import GenerationNotFoundError, InvalidNameError, SnapshotError

LOGGER = logging.getLogger(__name__)

GENERATION_FORMAT = "%Y%m%d_%H%M%S"
MEMO_FILENAME = "meta.json"


def format_generation(moment: datetime) -> str:
    """Return the generation name for ``moment`` at second resolution."""
    return moment.strftime(GENERATION_FORMAT)


def copy_tree(source: Path, destination: Path) -> None:
    """Recursively copy ``source`` into ``destination``.

    Missing directories are created and existing files are overwritten. The
    copy is not transactional; a failure leaves whatever was already written.

    Raises:
        OSError: If any entry fails to copy (``shutil.Error`` aggregates them).
    """
    shutil.copytree(source, destination, dirs_exist_ok=True)


def _validate_component(value: str, *, label: str) -> str:
    if not value or value in {".", ".."} or "/" in value or "\\" in value:
        raise InvalidNameError(f"Invalid {label}: {value!r}")
    return value


class SnapshotStore:
    """Create, enumerate, prune, and remove subfolder generations."""

    def __init__(self, root: Path, *, clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize the store.

        Args:
            root: Directory that holds one folder of generations per subfolder.
            clock: Callable returning the local time used to name generations.
        """
        self._root = root
        self._clock = clock

    @property
    def root(self) -> Path:
        """Return the snapshot root directory."""
        return self._root

    def subfolder_dir(self, subfolder: str) -> Path:
        """Return the directory holding generations for ``subfolder``."""
        return self._root / _validate_component(subfolder, label="subfolder name")

    def generation_dir(self, subfolder: str, timestamp: str) -> Path:
        """Return the directory of one generation."""
        return self.subfolder_dir(subfolder) / _validate_component(timestamp, label="timestamp")

    def list_subfolders(self) -> list[str]:
        """Return names of subfolders that have a snapshot directory."""
        if not self._root.is_dir():
            return []
        return sorted(entry.name for entry in self._root.iterdir() if entry.is_dir())

    def list_generations(self, subfolder: str) -> list[str]:
        """Return generation names for ``subfolder``, oldest first."""
        directory = self.subfolder_dir(subfolder)
        if not directory.is_dir():
            return []
        return sorted(
            entry.name
            for entry in directory.iterdir()
            if entry.name != MEMO_FILENAME and entry.is_dir()
        )

    def capture(self, subfolder: str, source: Path, *, retention_limit: int) -> str:
        """Copy ``source`` into a new generation and apply retention.

        A capture within the same second as an existing generation writes into
        that generation's directory.

        Args:
            subfolder: Subfolder name.
            source: Live directory to copy.
            retention_limit: Maximum generations to keep afterwards.

        Returns:
            str: Name of the generation that was written.

        Raises:
            SnapshotError: If ``source`` is not a directory.
            OSError: If copying fails part-way.
        """
        if not source.is_dir():
            raise SnapshotError(f"Source folder does not exist: {source}")

        timestamp = format_generation(self._clock())
        destination = self.generation_dir(subfolder, timestamp)
        LOGGER.info("Capturing %s into %s", source, destination)
        copy_tree(source, destination)

        removed = self.prune(subfolder, retention_limit)
        if removed:
            LOGGER.info("Pruned %d old generation(s) of %s: %s", len(removed), subfolder, removed)
        return timestamp

    def prune(self, subfolder: str, limit: int) -> list[str]:
        """Delete the oldest generations beyond ``limit``.

        Returns:
            list[str]: Generation names that were removed, oldest first.
        """
        generations = self.list_generations(subfolder)
        excess = len(generations) - max(0, limit)
        if excess <= 0:
            return []

        removed = generations[:excess]
        for timestamp in removed:
            shutil.rmtree(self.generation_dir(subfolder, timestamp))
        return removed

    def delete_generation(self, subfolder: str, timestamp: str) -> bool:
        """Remove one generation, dropping the subfolder when none remain.

        The memo sidecar lives inside the subfolder directory, so removing the
        last generation discards the memo as well.

        Returns:
            bool: ``True`` when the generation existed and was removed.
        """
        target = self.generation_dir(subfolder, timestamp)
        existed = target.is_dir()
        if existed:
            shutil.rmtree(target)

        directory = self.subfolder_dir(subfolder)
        if directory.is_dir() and not self.list_generations(subfolder):
            shutil.rmtree(directory)
        return existed

    def delete_subfolder(self, subfolder: str) -> bool:
        """Remove every generation and the memo of ``subfolder``.

        Returns:
            bool: ``True`` when a snapshot directory existed.
        """
        directory = self.subfolder_dir(subfolder)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        return True

    def read_memo(self, subfolder: str) -> str:
        """Return the memo for ``subfolder``; missing or malformed sidecars yield ``""``."""
        path = self.subfolder_dir(subfolder) / MEMO_FILENAME
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return ""
        if not isinstance(data, dict):
            return ""
        memo = data.get("memo")
        return memo if isinstance(memo, str) else ""

    def write_memo(self, subfolder: str, text: str) -> None:
        """Persist ``text`` as the memo, creating the subfolder directory if needed."""
        directory = self.subfolder_dir(subfolder)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / MEMO_FILENAME).write_text(
            json.dumps({"memo": text}, ensure_ascii=False), encoding="utf-8"
        )

    def restore_into(self, subfolder: str, timestamp: str, destination: Path) -> Path:
        """Replace ``destination`` with the contents of a generation.

        Raises:
            GenerationNotFoundError: If the generation does not exist.
            OSError: If removal or copying fails part-way.
        """
        source = self.generation_dir(subfolder, timestamp)
        if not source.is_dir():
            raise GenerationNotFoundError(f"No generation {timestamp} for {subfolder}")

        if destination.exists():
            shutil.rmtree(destination)
        copy_tree(source, destination)
        return destination


__all__ = [
    "GENERATION_FORMAT",
    "MEMO_FILENAME",
    "SnapshotStore",
    "copy_tree",
    "format_generation",
]
