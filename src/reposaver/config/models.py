"""Configuration models describing RepoSaver settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_GENERATIONS = 1
MAX_GENERATIONS = 100

DEFAULT_ROOT_PATH = str(Path("~") / "AppData" / "LocalLow" / "semiwork" / "Repo" / "saves")
DEFAULT_SNAPSHOT_ROOT = str(Path("~") / ".reposaver" / "backups")


class ReposaverBaseModel(BaseModel):
    """Shared configuration for RepoSaver Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class WatchSettings(ReposaverBaseModel):
    """Settings describing the watched root.

    Attributes:
        root_path: Directory whose immediate subdirectories are backed up.
    """

    root_path: str = DEFAULT_ROOT_PATH

    def resolved_root(self) -> Path:
        """Return the watched root with ``~`` expanded."""
        return Path(self.root_path).expanduser()


class RetentionSettings(ReposaverBaseModel):
    """Generation retention options.

    Attributes:
        max_generations: Number of generations kept per subfolder. Values
            outside 1-100 are clamped into range.
    """

    max_generations: int = 10

    @field_validator("max_generations")
    @classmethod
    def _clamp(cls, value: int) -> int:
        return max(MIN_GENERATIONS, min(MAX_GENERATIONS, value))


class StorageSettings(ReposaverBaseModel):
    """Snapshot storage location.

    Attributes:
        snapshot_root: Directory that holds one folder of generations per subfolder.
    """

    snapshot_root: str = DEFAULT_SNAPSHOT_ROOT

    def resolved_root(self) -> Path:
        """Return the snapshot root with ``~`` expanded."""
        return Path(self.snapshot_root).expanduser()


class LoggingSettings(ReposaverBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class ReposaverConfig(ReposaverBaseModel):
    """Top-level configuration struct for RepoSaver.

    Attributes:
        watch: Watched root settings.
        retention: Generation retention settings.
        storage: Snapshot storage settings.
        logging: Logging configuration.
    """

    watch: WatchSettings = Field(default_factory=WatchSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "MIN_GENERATIONS",
    "MAX_GENERATIONS",
    "ReposaverBaseModel",
    "WatchSettings",
    "RetentionSettings",
    "StorageSettings",
    "LoggingSettings",
    "ReposaverConfig",
]
