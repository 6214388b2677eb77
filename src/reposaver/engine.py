"""Backup engine tying the watcher, snapshot store, and restore coordinator together."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from watchdog.observers import Observer

from reposaver import notifications
from reposaver.config import ReposaverConfig
from reposaver.notifications import Notification, NotificationSink
from reposaver.restore import SETTLE_DELAY_SECONDS, RestoreCoordinator
from reposaver.snapshots import SnapshotError, SnapshotStore
from reposaver.state import StateSink, SubFolderState, reconcile_state
from reposaver.watch import (
    DELETION_GRACE_SECONDS,
    QUIET_WINDOW_SECONDS,
    DebounceScheduler,
    DeletionTracker,
    EventRouter,
    SuppressionFlag,
    WatchService,
)
from reposaver.watch.debounce import TimerFactory

LOGGER = logging.getLogger(__name__)


class BackupEngine:
    """Entry point for every backup operation, automatic or user-requested.

    The engine keeps a private copy of the configuration, owns the current
    watch session (service, router, deletion tracker, and debounce scheduler
    are rebuilt together whenever the watcher restarts), and publishes state
    and notifications to the sinks supplied by the host. Operation failures
    are logged and reported through return values; none of them raise.
    """

    def __init__(
        self,
        config: ReposaverConfig,
        *,
        state_sink: Optional[StateSink] = None,
        notification_sink: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = datetime.now,
        quiet_window: float = QUIET_WINDOW_SECONDS,
        deletion_grace: float = DELETION_GRACE_SECONDS,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        timer_factory: Optional[TimerFactory] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        """Initialize the engine without starting the watcher.

        Args:
            config: Loaded configuration; a deep copy is kept.
            state_sink: Receives the reconciled state after every mutation.
            notification_sink: Receives user-facing notifications.
            clock: Local-time source used to name generations.
            quiet_window: Debounce interval in seconds.
            deletion_grace: Window after a deletion during which changes are ignored.
            settle_delay: Seconds suppression stays raised after a restore.
            sleep: Blocking wait used for the settle delay.
            timer_factory: Optional debounce timer factory.
            observer_factory: Builds the watchdog observer.
        """
        self._config_lock = threading.Lock()
        self._config = config.model_copy(deep=True)
        self._state_sink = state_sink
        self._notification_sink = notification_sink
        self._clock = clock
        self._quiet_window = quiet_window
        self._deletion_grace = deletion_grace
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._timer_factory = timer_factory
        self._observer_factory = observer_factory

        self._suppression = SuppressionFlag(self._config.storage.resolved_root())
        self._store, self._restorer = self._build_storage(self._config)

        self._watch_lock = threading.Lock()
        self._started = False
        self._service: Optional[WatchService] = None
        self._router: Optional[EventRouter] = None
        self._scheduler: Optional[DebounceScheduler] = None

    # ------------------------------------------------------------------ #
    # Configuration and lifecycle                                        #
    # ------------------------------------------------------------------ #

    def settings(self) -> ReposaverConfig:
        """Return a private copy of the current configuration."""
        with self._config_lock:
            return self._config.model_copy(deep=True)

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def suppression(self) -> SuppressionFlag:
        return self._suppression

    @property
    def router(self) -> Optional[EventRouter]:
        """Return the router of the active watch session, if any."""
        return self._router

    @property
    def is_watching(self) -> bool:
        service = self._service
        return service is not None and service.is_running

    def watched_root(self) -> Path:
        return self.settings().watch.resolved_root()

    def start(self) -> bool:
        """Start watching and publish the initial state.

        Returns:
            bool: Whether the watcher registered successfully.
        """
        self._started = True
        watching = self.start_watcher()
        self.publish_state()
        return watching

    def start_watcher(self) -> bool:
        """(Re)register the watcher on the configured root with a fresh session."""
        root = self.watched_root()
        with self._watch_lock:
            self._stop_session()
            scheduler = DebounceScheduler(
                self.capture,
                quiet_window=self._quiet_window,
                timer_factory=self._timer_factory,
            )
            router = EventRouter(
                root,
                suppression=self._suppression,
                tracker=DeletionTracker(self._deletion_grace),
                scheduler=scheduler,
                on_folder_removed=self.publish_state,
            )
            service = WatchService(root, router.route, observer_factory=self._observer_factory)
            if not service.start():
                LOGGER.warning("Watcher inactive until the watched root changes: %s", root)
                return False
            self._service, self._router, self._scheduler = service, router, scheduler
            return True

    def stop(self) -> None:
        """Stop the watcher and discard pending debounce checks."""
        self._started = False
        with self._watch_lock:
            self._stop_session()

    def update_settings(self, config: ReposaverConfig) -> None:
        """Apply new settings.

        A running watcher is re-registered only when the watched root path changes.
        """
        with self._config_lock:
            previous = self._config
            self._config = config.model_copy(deep=True)
            storage_changed = previous.storage.snapshot_root != config.storage.snapshot_root
            if storage_changed:
                self._store, self._restorer = self._build_storage(self._config)
                self._suppression.use_marker_dir(self._config.storage.resolved_root())

        root_changed = previous.watch.root_path != config.watch.root_path
        if root_changed and self._started:
            self.start_watcher()
        self.publish_state()

    # ------------------------------------------------------------------ #
    # Operations                                                         #
    # ------------------------------------------------------------------ #

    def capture(self, subfolder: str) -> Optional[str]:
        """Snapshot ``subfolder`` now; used by the debouncer and manual triggers.

        Returns:
            Optional[str]: The new generation name, or ``None`` if nothing was captured.
        """
        if self._suppression.active:
            LOGGER.info("Skipping backup of %s while a restore is in progress", subfolder)
            return None

        config = self.settings()
        source = config.watch.resolved_root() / subfolder
        try:
            timestamp = self._store.capture(
                subfolder, source, retention_limit=config.retention.max_generations
            )
        except (SnapshotError, OSError) as exc:
            LOGGER.error("Backup of %s failed: %s", subfolder, exc)
            return None

        LOGGER.info("Backed up %s as %s", subfolder, timestamp)
        self.publish_state()
        self._notify(notifications.backup_created(subfolder, timestamp))
        return timestamp

    def restore(self, subfolder: str, timestamp: str) -> bool:
        """Restore ``subfolder`` to generation ``timestamp`` with the watcher muted."""
        return self._restorer.restore(self.watched_root(), subfolder, timestamp)

    def delete_generation(self, subfolder: str, timestamp: str) -> bool:
        """Delete one generation of ``subfolder``."""
        try:
            deleted = self._store.delete_generation(subfolder, timestamp)
        except (SnapshotError, OSError) as exc:
            LOGGER.error("Deleting %s/%s failed: %s", subfolder, timestamp, exc)
            return False
        if deleted:
            self._notify(notifications.generation_deleted(subfolder, timestamp))
        self.publish_state()
        return deleted

    def delete_subfolder(self, subfolder: str) -> bool:
        """Delete every generation and the memo of ``subfolder``."""
        try:
            deleted = self._store.delete_subfolder(subfolder)
        except (SnapshotError, OSError) as exc:
            LOGGER.error("Deleting backups of %s failed: %s", subfolder, exc)
            return False
        if deleted:
            self._notify(notifications.subfolder_deleted(subfolder))
        self.publish_state()
        return deleted

    def save_memo(self, subfolder: str, text: str) -> bool:
        """Attach ``text`` to ``subfolder`` regardless of its generation count."""
        try:
            self._store.write_memo(subfolder, text)
        except (SnapshotError, OSError) as exc:
            LOGGER.error("Saving memo for %s failed: %s", subfolder, exc)
            return False
        self.publish_state()
        return True

    def send_test_notification(self) -> None:
        """Push a ``success`` notification through the sink."""
        self._notify(notifications.sink_check())

    def collect_state(self) -> list[SubFolderState]:
        """Return the reconciled state without publishing it."""
        return reconcile_state(self._store, self.watched_root())

    def publish_state(self) -> list[SubFolderState]:
        """Reconcile state and push it to the state sink."""
        state = self.collect_state()
        if self._state_sink is not None:
            try:
                self._state_sink(state)
            except Exception:
                LOGGER.exception("State sink failed")
        return state

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _build_storage(self, config: ReposaverConfig) -> tuple[SnapshotStore, RestoreCoordinator]:
        store = SnapshotStore(config.storage.resolved_root(), clock=self._clock)
        restorer = RestoreCoordinator(
            store,
            self._suppression,
            settle_delay=self._settle_delay,
            sleep=self._sleep,
            on_restored=self._on_restored,
            on_settled=self.publish_state,
        )
        return store, restorer

    def _on_restored(self, subfolder: str, timestamp: str) -> None:
        self._notify(notifications.restore_completed(subfolder, timestamp))

    def _stop_session(self) -> None:
        if self._service is not None:
            self._service.stop()
        if self._scheduler is not None:
            self._scheduler.cancel_all()
        self._service = self._router = self._scheduler = None

    def _notify(self, notification: Notification) -> None:
        LOGGER.info("%s: %s", notification.title, notification.body)
        if self._notification_sink is None:
            return
        try:
            self._notification_sink(notification)
        except Exception:
            LOGGER.exception("Notification sink failed")


__all__ = ["BackupEngine"]
