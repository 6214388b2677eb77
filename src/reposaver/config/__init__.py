"""Configuration management for RepoSaver."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    MAX_GENERATIONS,
    MIN_GENERATIONS,
    LoggingSettings,
    ReposaverConfig,
    RetentionSettings,
    StorageSettings,
    WatchSettings,
)
from .resolver import assign_nested, flatten_for_env, parse_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.reposaver/config.yaml")
_HEADER_LINES = (
    "# RepoSaver configuration file",
    "# watch.root_path: directory whose subfolders are backed up",
    f"# retention.max_generations: backups per subfolder ({MIN_GENERATIONS}-{MAX_GENERATIONS})",
    "# storage.snapshot_root: where backups are written",
    "# Edit with `reposaver config edit` or `reposaver config set KEY --value VALUE`.",
)


class ConfigManager:
    """Read, validate, and persist the YAML settings file.

    Sources merge as defaults < file < ``REPOSAVER__`` environment < CLI
    overrides. Every load validates from scratch and returns a new model.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ReposaverConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides with the highest precedence.
            include_env: Whether ``REPOSAVER__`` variables are applied.
            ensure_file: Create the file with defaults when it is missing.
            env_overrides: Environment mapping to use instead of ``os.environ``.

        Raises:
            ConfigError: If the file cannot be parsed or values are invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_source = env_overrides if env_overrides is not None else self._env
        env_data = parse_env(env_source) if include_env else None
        return resolve_with_precedence(
            defaults=ReposaverConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_data or None,
            cli_overrides=cli_overrides,
        )

    def save(self, config: ReposaverConfig | Mapping[str, Any]) -> None:
        """Persist a full model or a raw mapping of overrides."""
        if isinstance(config, ReposaverConfig):
            self._write_file(config.model_dump(mode="python"))
        else:
            self._write_file(dict(config))

    def set_value(self, key: str, value: Any) -> ReposaverConfig:
        """Write ``value`` at dotted ``key`` after validating the result.

        Returns:
            ReposaverConfig: The file-level configuration after the change.

        Raises:
            ConfigError: If the key is empty or the new value is invalid.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("Key must be a dotted path such as 'retention.max_generations'.")

        data = self._read_file()
        assign_nested(data, segments, value)
        validated = resolve_with_precedence(defaults=ReposaverConfig(), file_overrides=data)
        self._write_file(data)
        return validated

    def replace_text(self, text: str) -> ReposaverConfig:
        """Validate edited YAML and store it in place of the current file.

        Raises:
            ConfigError: If the text is not a YAML mapping of valid settings.
        """
        data = self._parse(text)
        validated = resolve_with_precedence(defaults=ReposaverConfig(), file_overrides=data)
        self._write_file(data)
        return validated

    def ensure_exists(self) -> Path:
        """Create the file with default settings if it does not exist yet."""
        if not self._config_path.exists():
            self._write_file(ReposaverConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current file contents, or ``""`` when there is no file."""
        try:
            return self._config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def _read_file(self) -> dict[str, Any]:
        return self._parse(self.read_text())

    @staticmethod
    def _parse(text: str) -> dict[str, Any]:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration is not valid YAML: {exc}") from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError("Configuration must be a mapping of sections.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        updated = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        lines = [*_HEADER_LINES, f"# Last updated: {updated}"]
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text("\n".join(lines) + "\n" + body, encoding="utf-8")


__all__ = [
    "ConfigManager",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "MAX_GENERATIONS",
    "MIN_GENERATIONS",
    "LoggingSettings",
    "ReposaverConfig",
    "RetentionSettings",
    "StorageSettings",
    "WatchSettings",
    "assign_nested",
    "flatten_for_env",
    "parse_env",
    "resolve_with_precedence",
]
