# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Layered configuration loading (defaults, TOML files, key/value properties)."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any, Final

from pydantic import ValidationError

from ..exceptions import ConfigError
from .models import Config

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PROJECT_CONFIG_FILENAME: Final[str] = ".lintwarden.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "lintwarden"
_PROPERTY_SEPARATOR: Final[str] = "="
_KEY_SEPARATOR: Final[str] = "."
_ENV_REFERENCE: Final[re.Pattern[str]] = re.compile(r"\$\{(\w+)\}")


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` recursively updated with ``override``."""

    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def _expand_env(value: Any, env: Mapping[str, str]) -> Any:
    """Expand ``${VAR}`` references inside string values of ``value``."""

    if isinstance(value, str):
        return _ENV_REFERENCE.sub(lambda match: env.get(match.group(1), match.group(0)), value)
    if isinstance(value, Mapping):
        return {key: _expand_env(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item, env) for item in value]
    return value


def _read_toml(path: Path) -> dict[str, Any]:
    """Return the TOML document stored at ``path``.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read configuration {path}: {exc}") from exc


def _normalise_keys(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``payload`` with dashed keys converted to snake case."""

    normalised: dict[str, Any] = {}
    for key, value in payload.items():
        name = str(key).replace("-", "_")
        normalised[name] = _normalise_keys(value) if isinstance(value, Mapping) else value
    return normalised


def parse_property(entry: str) -> tuple[str, str]:
    """Split a ``key=value`` override into its parts.

    Raises:
        ConfigError: If ``entry`` lacks a key or the ``=`` separator.
    """

    if _PROPERTY_SEPARATOR not in entry:
        raise ConfigError(f"invalid property '{entry}': expected key=value")
    key, value = entry.split(_PROPERTY_SEPARATOR, 1)
    key = key.strip()
    if not key:
        raise ConfigError(f"invalid property '{entry}': empty key")
    return key, value.strip()


def properties_to_payload(properties: Mapping[str, Any]) -> dict[str, Any]:
    """Convert dotted key/value properties into a nested configuration payload.

    Comma separated strings are split for list-valued fields so host platforms
    that only speak flat string properties can still set them.

    Args:
        properties: Mapping such as ``{"parsing.file_timeout": "5"}``.

    Returns:
        dict[str, Any]: Nested mapping suitable for :class:`Config` validation.

    Raises:
        ConfigError: If a key does not name a configuration field.
    """

    payload: dict[str, Any] = {}
    for raw_key, value in properties.items():
        parts = [part.replace("-", "_") for part in str(raw_key).split(_KEY_SEPARATOR) if part]
        if not parts:
            raise ConfigError(f"invalid property key '{raw_key}'")
        if isinstance(value, str) and _is_list_field(parts):
            value = [item.strip() for item in value.split(",") if item.strip()]
        cursor: MutableMapping[str, Any] = payload
        for part in parts[:-1]:
            nested = cursor.setdefault(part, {})
            if not isinstance(nested, MutableMapping):
                raise ConfigError(f"property '{raw_key}' conflicts with a scalar value")
            cursor = nested
        cursor[parts[-1]] = value
    return payload


def _is_list_field(parts: Sequence[str]) -> bool:
    """Return ``True`` when the dotted path names a list-valued field."""

    model: Any = Config
    for part in parts:
        fields = getattr(model, "model_fields", None)
        if fields is None or part not in fields:
            raise ConfigError(f"unknown configuration key '{'.'.join(parts)}'")
        annotation = fields[part].annotation
        model = annotation
    return getattr(model, "__origin__", None) is list


class ConfigLoader:
    """Merge configuration layers for a project root."""

    def __init__(
        self,
        root: Path,
        *,
        config_file: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._root = root
        self._config_file = config_file
        self._env = env if env is not None else os.environ

    @classmethod
    def for_root(cls, root: Path, *, config_file: Path | None = None) -> ConfigLoader:
        """Return a loader for ``root`` honouring an optional explicit file."""

        return cls(root.resolve(), config_file=config_file)

    def sources(self) -> list[Path]:
        """Return the configuration files consulted, lowest precedence first."""

        candidates = [self._root / PYPROJECT_FILENAME, self._root / PROJECT_CONFIG_FILENAME]
        if self._config_file is not None:
            candidates.append(self._config_file)
        return [path for path in candidates if path.is_file()]

    def load(self, properties: Mapping[str, Any] | None = None) -> Config:
        """Return the merged configuration.

        Args:
            properties: Highest-precedence dotted key/value overrides.

        Returns:
            Config: Validated configuration.

        Raises:
            ConfigError: If any layer is unreadable or the merged result is invalid.
        """

        payload: dict[str, Any] = {}
        for path in self.sources():
            payload = _deep_merge(payload, self._load_file(path))
        if properties:
            payload = _deep_merge(payload, properties_to_payload(properties))
        return build_config(_expand_env(payload, self._env))

    def _load_file(self, path: Path) -> dict[str, Any]:
        document = _read_toml(path)
        if path.name == PYPROJECT_FILENAME:
            tool_section = document.get(PYPROJECT_TOOL_KEY)
            if not isinstance(tool_section, Mapping):
                return {}
            section = tool_section.get(PYPROJECT_SECTION_KEY)
            if not isinstance(section, Mapping):
                return {}
            return _normalise_keys(section)
        return _normalise_keys(document)


def build_config(payload: Mapping[str, Any]) -> Config:
    """Validate ``payload`` into :class:`Config`.

    Raises:
        ConfigError: If validation fails.
    """

    try:
        return Config.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


__all__ = [
    "ConfigLoader",
    "PROJECT_CONFIG_FILENAME",
    "build_config",
    "parse_property",
    "properties_to_payload",
]
