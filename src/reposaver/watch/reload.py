"""Reload settings whenever the configuration file changes on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from reposaver.config import ConfigError, ReposaverConfig

from .debounce import QUIET_WINDOW_SECONDS, DebounceScheduler, TimerFactory
from .events import ACCESS_KINDS, FsEvent

LOGGER = logging.getLogger(__name__)


class SettingsReloader:
    """Watch one settings file and hand every valid new version to ``apply``.

    Editors and ``reposaver config set`` produce several events per save, so
    reloads go through a debounce scheduler keyed on the file name. An invalid
    file is logged and the previous settings stay in effect.
    """

    def __init__(
        self,
        config_path: Path,
        load: Callable[[], ReposaverConfig],
        apply: Callable[[ReposaverConfig], None],
        *,
        quiet_window: float = QUIET_WINDOW_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        """Initialize the reloader.

        Args:
            config_path: Settings file to watch.
            load: Reads and validates the settings file.
            apply: Receives each successfully loaded configuration.
            quiet_window: Seconds a save must settle before it is reloaded.
            timer_factory: Optional debounce timer factory.
            observer_factory: Builds the watchdog observer.
        """
        self._path = config_path.expanduser().absolute()
        self._load = load
        self._apply = apply
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._scheduler = DebounceScheduler(
            lambda _name: self.reload(),
            quiet_window=quiet_window,
            timer_factory=timer_factory,
        )

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> bool:
        """Begin watching the directory that holds the settings file."""
        if self._observer is not None:
            return True
        observer = self._observer_factory()
        try:
            observer.schedule(_SettingsEventHandler(self), str(self._path.parent), recursive=False)
            observer.start()
        except OSError as exc:
            LOGGER.warning("Settings changes will not be picked up: %s", exc)
            return False
        self._observer = observer
        LOGGER.info("Reloading settings when %s changes", self._path)
        return True

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._scheduler.cancel_all()

    def notify(self, event: FsEvent) -> None:
        """Schedule a reload when ``event`` touched the settings file."""
        if event.kind in ACCESS_KINDS or event.is_directory:
            return
        if self._path in event.paths:
            self._scheduler.schedule(self._path.name)

    def reload(self) -> bool:
        """Load the settings file now and apply it when valid."""
        try:
            config = self._load()
        except ConfigError as exc:
            LOGGER.error("Ignoring invalid settings in %s: %s", self._path, exc)
            return False
        LOGGER.info("Settings reloaded from %s", self._path)
        self._apply(config)
        return True


class _SettingsEventHandler(FileSystemEventHandler):
    def __init__(self, reloader: SettingsReloader) -> None:
        self._reloader = reloader

    def on_any_event(self, event: FileSystemEvent) -> None:
        converted = FsEvent.from_watchdog(event)
        if converted is not None:
            self._reloader.notify(converted)


__all__ = ["SettingsReloader"]
