"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import ReposaverConfig

ENV_PREFIX = "REPOSAVER__"


def resolve_with_precedence(
    *,
    defaults: ReposaverConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ReposaverConfig:
    """Merge configuration sources, later sources winning.

    Order of precedence (lowest first): defaults, config file, environment,
    command-line overrides. Keys may be nested mappings or dotted paths such as
    ``retention.max_generations``.

    Raises:
        ConfigError: If a source is malformed or the merged values fail validation.
    """
    merged = defaults.model_dump(mode="python")
    sources = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for name, source in sources:
        if source is not None:
            merged = _deep_merge(merged, _normalize_mapping(source, source_name=name))

    try:
        return ReposaverConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: ReposaverConfig) -> Dict[str, str]:
    """Render the config as ``REPOSAVER__SECTION__KEY`` environment mappings."""
    flat: Dict[str, str] = {}

    def _walk(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk(prefix + [str(key)], child)
            return
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[env_key] = "null" if value is None else str(value)

    _walk([], config.model_dump(mode="python"))
    return flat


def parse_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Extract nested overrides from ``REPOSAVER__`` prefixed variables.

    Values are parsed as YAML scalars so ``"25"`` becomes an integer; anything
    that fails to parse is kept verbatim.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        assign_nested(overrides, path, value)
    return overrides


def assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` at ``path`` inside ``target``, creating mappings as needed.

    Raises:
        ConfigError: If a non-mapping value sits on the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(f"Cannot assign into '{segment}' because it is not a mapping.")
        node = existing
    node[path[-1]] = value


def _normalize_mapping(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Expand dotted keys into nested mappings, merging keys that share a prefix."""
    label = source_name.capitalize()
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _normalize_mapping(value, source_name=source_name)
        nested: Any = value
        for segment in reversed(key.split(".")):
            nested = {segment: nested}
        try:
            result = _deep_merge(result, nested, strict=True)
        except ConfigError as exc:
            raise ConfigError(f"{label} override for {key} conflicts with existing value.") from exc
    return result


def _deep_merge(
    base: Mapping[str, Any], overrides: Mapping[str, Any], *, strict: bool = False
) -> dict[str, Any]:
    """Return ``base`` updated recursively with ``overrides``.

    With ``strict`` set, replacing a mapping with a scalar (or the reverse)
    raises ``ConfigError`` instead of overwriting.
    """
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        both_mappings = isinstance(current, MappingABC) and isinstance(value, MappingABC)
        if both_mappings:
            merged[key] = _deep_merge(current, value, strict=strict)
        elif strict and key in merged and (
            isinstance(current, MappingABC) or isinstance(value, MappingABC)
        ):
            raise ConfigError(f"Conflicting value for '{key}'.")
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "flatten_for_env",
    "parse_env",
    "assign_nested",
]
