"""User-facing notification payloads published by the backup engine."""

from __future__ import annotations

from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict

NotificationKind = Literal["backup", "restore", "delete", "success"]


class Notification(BaseModel):
    """One-way message broadcast to every presentation surface.

    Attributes:
        title: Short headline.
        body: Human-readable detail line.
        kind: Semantic category chosen by the operation that produced it.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    kind: NotificationKind


NotificationSink = Callable[[Notification], None]


def backup_created(subfolder: str, timestamp: str) -> Notification:
    return Notification(
        title="Backup created",
        body=f"Backed up {subfolder} ({timestamp}).",
        kind="backup",
    )


def restore_completed(subfolder: str, timestamp: str) -> Notification:
    return Notification(
        title="Restore complete",
        body=f"Restored {subfolder} to {timestamp}.",
        kind="restore",
    )


def generation_deleted(subfolder: str, timestamp: str) -> Notification:
    return Notification(
        title="Backup deleted",
        body=f"Deleted backup {timestamp} of {subfolder}.",
        kind="delete",
    )


def subfolder_deleted(subfolder: str) -> Notification:
    return Notification(
        title="All backups deleted",
        body=f"Deleted every backup of {subfolder}.",
        kind="delete",
    )


def sink_check() -> Notification:
    """Return a harmless notification used to check that a sink is wired up."""
    return Notification(
        title="Test notification",
        body="Notifications are working.",
        kind="success",
    )


__all__ = [
    "Notification",
    "NotificationKind",
    "NotificationSink",
    "backup_created",
    "restore_completed",
    "generation_deleted",
    "subfolder_deleted",
    "sink_check",
]
