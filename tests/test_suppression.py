"""Restore suppression flag tests, including the marker shared between processes."""

from __future__ import annotations

import os
import time
from pathlib import Path

from reposaver.snapshots import SnapshotStore
from reposaver.state import reconcile_state
from reposaver.watch import SuppressionFlag
from reposaver.watch.suppression import MARKER_PREFIX, MARKER_STALE_SECONDS


def test_local_flag_toggles() -> None:
    flag = SuppressionFlag()

    assert flag.active is False
    flag.set()
    assert flag.active is True
    flag.clear()
    assert flag.active is False


def test_marker_is_visible_to_other_flags(tmp_path: Path) -> None:
    """A raised flag must mute every flag sharing its marker directory.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """

    restoring = SuppressionFlag(tmp_path / "backups")
    watching = SuppressionFlag(tmp_path / "backups")

    restoring.set()
    assert watching.active is True
    assert len(list((tmp_path / "backups").glob(f"{MARKER_PREFIX}*"))) == 1

    restoring.clear()
    assert watching.active is False
    assert list((tmp_path / "backups").glob(f"{MARKER_PREFIX}*")) == []


def test_overlapping_restores_keep_separate_markers(tmp_path: Path) -> None:
    first = SuppressionFlag(tmp_path)
    second = SuppressionFlag(tmp_path)
    watching = SuppressionFlag(tmp_path)

    first.set()
    second.set()
    first.clear()

    assert watching.active is True
    second.clear()
    assert watching.active is False


def test_stale_marker_is_ignored(tmp_path: Path) -> None:
    """Markers older than the stale window no longer mute the watcher.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """

    marker = tmp_path / f"{MARKER_PREFIX}4242-deadbeef"
    marker.write_text("4242", encoding="utf-8")
    old = time.time() - MARKER_STALE_SECONDS - 60
    os.utime(marker, (old, old))

    assert SuppressionFlag(tmp_path).active is False


def test_use_marker_dir_switches_directories(tmp_path: Path) -> None:
    flag = SuppressionFlag(tmp_path / "a")
    other = SuppressionFlag(tmp_path / "b")

    flag.use_marker_dir(tmp_path / "b")
    flag.set()

    assert other.active is True
    flag.clear()


def test_marker_is_not_reported_as_a_subfolder(tmp_path: Path) -> None:
    """The marker lives in the snapshot root but is never listed as history.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """

    live = tmp_path / "saves"
    live.mkdir()
    store = SnapshotStore(tmp_path / "backups")
    flag = SuppressionFlag(store.root)
    flag.set()

    assert store.list_subfolders() == []
    assert reconcile_state(store, live) == []
    flag.clear()
