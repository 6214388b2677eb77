"""Tests for reloading settings into a running engine when the file changes."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from watchdog.events import FileModifiedEvent, FileOpenedEvent

from reposaver.cli import _settings_reloader
from reposaver.config import ConfigManager
from reposaver.engine import BackupEngine
from reposaver.watch import EventKind, FsEvent, SettingsReloader
from reposaver.watch.reload import _SettingsEventHandler


class _ManualTimer:
    def __init__(self, interval: float, function: Callable[..., Any], args: tuple[Any, ...]):
        self.function = function
        self.args = args
        self.daemon = False
        self.cancelled = False

    def start(self) -> None:
        return None

    def cancel(self) -> None:
        self.cancelled = True


class _TimerLog:
    def __init__(self) -> None:
        self.timers: list[_ManualTimer] = []

    def __call__(self, interval: float, function: Callable[..., Any], args: tuple[Any, ...]):
        timer = _ManualTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    def fire_all(self) -> None:
        timers, self.timers = self.timers, []
        for timer in timers:
            if not timer.cancelled:
                timer.function(*timer.args)


class _FakeObserver:
    def __init__(self) -> None:
        self.scheduled: list[tuple[Any, str, bool]] = []

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None

    def join(self, timeout: Optional[float] = None) -> None:
        return None


@pytest.fixture()
def roots(tmp_path: Path) -> tuple[Path, Path]:
    saves = tmp_path / "saves"
    (saves / "SaveData1").mkdir(parents=True)
    other = tmp_path / "other"
    (other / "Slot").mkdir(parents=True)
    return saves, other


def _manager(tmp_path: Path, root: Path) -> ConfigManager:
    manager = ConfigManager(tmp_path / "home" / ".reposaver" / "config.yaml", env={})
    manager.save(
        {
            "watch": {"root_path": str(root)},
            "storage": {"snapshot_root": str(tmp_path / "backups")},
        }
    )
    return manager


def test_config_change_moves_the_watched_root(
    tmp_path: Path, roots: tuple[Path, Path]
) -> None:
    """Changing ``watch.root_path`` on disk re-registers the running watcher.

    Args:
        tmp_path: Temporary directory provided by pytest.
        roots: The initial watched root and the root it moves to.
    """

    saves, other = roots
    manager = _manager(tmp_path, saves)
    engine = BackupEngine(manager.load(), observer_factory=_FakeObserver)
    assert engine.start() is True
    first_router = engine.router

    timers = _TimerLog()
    observer = _FakeObserver()
    reloader = SettingsReloader(
        manager.config_path,
        lambda: manager.load(ensure_file=False),
        engine.update_settings,
        timer_factory=timers,
        observer_factory=lambda: observer,
    )
    assert reloader.start() is True
    assert observer.scheduled[0][1:] == (str(manager.config_path.parent), False)

    manager.set_value("watch.root_path", str(other))
    reloader.notify(FsEvent(EventKind.MODIFIED, (manager.config_path,)))
    reloader.notify(FsEvent(EventKind.CLOSED, (manager.config_path,)))
    timers.fire_all()

    assert engine.watched_root() == other
    assert engine.router is not first_router
    assert engine.is_watching is True
    assert [state.name for state in engine.collect_state()] == ["Slot"]

    reloader.stop()
    engine.stop()
    assert reloader.is_running is False


def test_invalid_file_keeps_previous_settings(
    tmp_path: Path, roots: tuple[Path, Path], caplog: pytest.LogCaptureFixture
) -> None:
    """A settings file that fails validation is logged and not applied.

    Args:
        tmp_path: Temporary directory provided by pytest.
        roots: The initial watched root and an alternative root.
        caplog: Pytest log capture fixture.
    """

    saves, _ = roots
    manager = _manager(tmp_path, saves)
    applied: list[Any] = []
    reloader = SettingsReloader(
        manager.config_path,
        lambda: manager.load(ensure_file=False),
        applied.append,
        observer_factory=_FakeObserver,
    )

    manager.config_path.write_text("retention:\n  max_generations: lots\n", encoding="utf-8")

    assert reloader.reload() is False
    assert applied == []
    assert "Ignoring invalid settings" in caplog.text


def test_unrelated_and_read_only_events_do_not_reload(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    timers = _TimerLog()
    reloader = SettingsReloader(
        path,
        lambda: pytest.fail("settings should not be reloaded"),
        lambda config: None,
        timer_factory=timers,
        observer_factory=_FakeObserver,
    )

    reloader.notify(FsEvent(EventKind.OPENED, (path,)))
    reloader.notify(FsEvent(EventKind.CLOSED_NO_WRITE, (path,)))
    reloader.notify(FsEvent(EventKind.MODIFIED, (tmp_path / "reposaver.log",)))
    reloader.notify(FsEvent(EventKind.MODIFIED, (tmp_path,), is_directory=True))

    assert timers.timers == []


def test_editor_rename_onto_config_triggers_reload(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    timers = _TimerLog()
    reloader = SettingsReloader(
        path,
        lambda: pytest.fail("reload only runs when the timer fires"),
        lambda config: None,
        timer_factory=timers,
        observer_factory=_FakeObserver,
    )

    reloader.notify(FsEvent(EventKind.MOVED, (tmp_path / ".config.yaml.swp", path)))

    assert len(timers.timers) == 1


def test_handler_converts_watchdog_events(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    timers = _TimerLog()
    reloader = SettingsReloader(
        path,
        lambda: pytest.fail("reload only runs when the timer fires"),
        lambda config: None,
        timer_factory=timers,
        observer_factory=_FakeObserver,
    )
    handler = _SettingsEventHandler(reloader)

    handler.on_any_event(FileOpenedEvent(str(path)))
    assert timers.timers == []

    handler.on_any_event(FileModifiedEvent(str(path)))
    assert len(timers.timers) == 1


def test_cli_reloader_keeps_command_line_overrides(
    tmp_path: Path, roots: tuple[Path, Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    """The watch command's reloader re-applies its own overrides on every reload.

    Args:
        tmp_path: Temporary directory provided by pytest.
        roots: The initial watched root and the root it moves to.
        monkeypatch: Pytest fixture used to redirect HOME.
    """

    saves, other = roots
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in ("REPOSAVER__WATCH__ROOT_PATH", "REPOSAVER__RETENTION__MAX_GENERATIONS"):
        monkeypatch.delenv(name, raising=False)
    manager = _manager(tmp_path, saves)
    engine = BackupEngine(manager.load(), observer_factory=_FakeObserver)
    engine.start()

    reloader = _settings_reloader(engine, {"retention.max_generations": 2})
    manager.set_value("watch.root_path", str(other))

    assert reloader.reload() is True
    assert engine.watched_root() == other
    assert engine.settings().retention.max_generations == 2
    engine.stop()
