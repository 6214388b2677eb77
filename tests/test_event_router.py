"""Event routing tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from reposaver.watch import DeletionTracker, EventKind, EventRouter, FsEvent, SuppressionFlag


class _RecordingScheduler:
    def __init__(self) -> None:
        self.scheduled: list[str] = []

    def schedule(self, subfolder: str) -> None:
        self.scheduled.append(subfolder)


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _Harness:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.clock = _FakeClock()
        self.suppression = SuppressionFlag()
        self.tracker = DeletionTracker(clock=self.clock)
        self.scheduler = _RecordingScheduler()
        self.removed = 0
        self.router = EventRouter(
            root,
            suppression=self.suppression,
            tracker=self.tracker,
            scheduler=self.scheduler,
            on_folder_removed=self._on_removed,
        )

    def _on_removed(self) -> None:
        self.removed += 1


@pytest.fixture()
def harness(tmp_path: Path) -> _Harness:
    root = tmp_path / "saves"
    (root / "SaveData1").mkdir(parents=True)
    (root / "SaveData1" / "save.dat").write_text("x", encoding="utf-8")
    (root / "SaveData2").mkdir()
    return _Harness(root)


def _event(kind: EventKind, *paths: Path, is_directory: bool = False) -> FsEvent:
    return FsEvent(kind=kind, paths=tuple(paths), is_directory=is_directory)


def test_modification_schedules_owning_subfolder(harness: _Harness) -> None:
    """A file change schedules the subfolder that contains it.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    path = harness.root / "SaveData1" / "save.dat"

    harness.router.route(_event(EventKind.MODIFIED, path))

    assert harness.scheduler.scheduled == ["SaveData1"]


def test_move_across_subfolders_schedules_both_once(harness: _Harness) -> None:
    """A move between subfolders schedules each side once.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    source = harness.root / "SaveData2" / "old.dat"
    dest = harness.root / "SaveData1" / "save.dat"

    harness.router.route(_event(EventKind.MOVED, source, dest))

    assert harness.scheduler.scheduled == ["SaveData2", "SaveData1"]


def test_suppression_drops_every_event(harness: _Harness) -> None:
    """Nothing is scheduled or tracked while suppression is raised.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    harness.suppression.set()

    harness.router.route(_event(EventKind.MODIFIED, harness.root / "SaveData1" / "save.dat"))
    harness.router.route(
        _event(EventKind.DELETED, harness.root / "SaveData2", is_directory=True)
    )

    assert harness.scheduler.scheduled == []
    assert harness.removed == 0
    assert harness.tracker.is_recently_suppressed("SaveData2") is False


@pytest.mark.parametrize("kind", [EventKind.OPENED, EventKind.CLOSED_NO_WRITE])
def test_access_events_are_ignored(harness: _Harness, kind: EventKind) -> None:
    """Read-only access events never schedule a backup.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
        kind: Read-only event kind under test.
    """

    harness.router.route(_event(kind, harness.root / "SaveData1" / "save.dat"))

    assert harness.scheduler.scheduled == []


def test_deletion_mutes_follow_up_changes_within_grace(harness: _Harness) -> None:
    """Changes right after a deletion are ignored until the grace ends.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    deleted = harness.root / "SaveData1" / "gone.dat"
    changed = harness.root / "SaveData1" / "save.dat"

    harness.router.route(_event(EventKind.DELETED, deleted))
    harness.clock.now += 0.2
    harness.router.route(_event(EventKind.MODIFIED, changed))

    assert harness.scheduler.scheduled == []

    harness.clock.now += 0.5
    harness.router.route(_event(EventKind.MODIFIED, changed))
    assert harness.scheduler.scheduled == ["SaveData1"]


def test_deletion_in_one_subfolder_does_not_mute_another(harness: _Harness) -> None:
    """Deletion tracking is scoped to a single subfolder.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    harness.router.route(_event(EventKind.DELETED, harness.root / "SaveData1" / "gone.dat"))
    harness.router.route(_event(EventKind.MODIFIED, harness.root / "SaveData2"))

    assert harness.scheduler.scheduled == ["SaveData2"]


def test_top_level_folder_removal_refreshes_state(harness: _Harness) -> None:
    """Removing a whole subfolder refreshes the published state.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    harness.router.route(
        _event(EventKind.DELETED, harness.root / "SaveData3", is_directory=True)
    )

    assert harness.removed == 1
    assert harness.scheduler.scheduled == []


def test_nested_removal_does_not_refresh_state(harness: _Harness) -> None:
    """Removing a nested directory does not refresh state.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    harness.router.route(
        _event(EventKind.DELETED, harness.root / "SaveData1" / "sub", is_directory=True)
    )

    assert harness.removed == 0


def test_vanished_paths_are_ignored(harness: _Harness) -> None:
    """Events for paths that no longer exist are dropped.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    harness.router.route(_event(EventKind.CREATED, harness.root / "SaveData1" / "temp.swp"))

    assert harness.scheduler.scheduled == []


def test_paths_outside_root_and_loose_files_are_ignored(
    harness: _Harness, tmp_path: Path
) -> None:
    """Only directories directly under the root count as subfolders.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
        tmp_path: Temporary directory provided by pytest.
    """

    outside = tmp_path / "elsewhere.txt"
    outside.write_text("x", encoding="utf-8")
    loose = harness.root / "loose.txt"
    loose.write_text("x", encoding="utf-8")

    harness.router.route(_event(EventKind.MODIFIED, outside))
    harness.router.route(_event(EventKind.MODIFIED, loose))
    harness.router.route(_event(EventKind.MODIFIED, harness.root, is_directory=True))

    assert harness.scheduler.scheduled == []


def test_subfolders_for_deduplicates(harness: _Harness) -> None:
    """Subfolder names are reported once each, in first-seen order.

    Args:
        harness: Router wired to a fake clock and a recording scheduler.
    """

    paths = [
        harness.root / "SaveData1" / "a",
        harness.root / "SaveData1" / "b",
        harness.root / "SaveData2",
    ]

    assert harness.router.subfolders_for(paths) == ["SaveData1", "SaveData2"]
