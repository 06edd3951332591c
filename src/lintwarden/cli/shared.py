# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared utilities for CLI commands (logging, errors, configuration)."""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import typer

from ..config import Config, ConfigLoader, parse_property
from ..exceptions import LintwardenError
from ..logging import fail as core_fail
from ..logging import info as core_info
from ..logging import ok as core_ok
from ..logging import warn as core_warn

EXIT_CLEAN: Final[int] = 0
EXIT_ISSUES: Final[int] = 1
EXIT_FAILURE: Final[int] = 2


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = EXIT_FAILURE) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI presentation settings."""

    use_emoji: bool
    use_color: bool | None = None

    def fail(self, message: str) -> None:
        core_fail(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def warn(self, message: str) -> None:
        core_warn(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def ok(self, message: str) -> None:
        core_ok(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def info(self, message: str) -> None:
        core_info(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def echo(self, message: str) -> None:
        """Write ``message`` to stdout using Typer's echo helper."""

        typer.echo(message)


def build_cli_logger(*, emoji: bool, color: bool | None = None) -> CLILogger:
    """Return a :class:`CLILogger` configured for the presentation flags."""

    return CLILogger(use_emoji=emoji, use_color=color)


def collect_properties(entries: Sequence[str], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``--set key=value`` entries with explicit option overrides.

    Explicit options win over ``--set`` entries naming the same key; ``None``
    overrides are ignored.

    Raises:
        CLIError: If an entry is not of the form ``key=value``.
    """

    properties: dict[str, Any] = {}
    for entry in entries:
        try:
            key, value = parse_property(entry)
        except LintwardenError as exc:
            raise CLIError(str(exc)) from exc
        properties[key] = value
    properties.update({key: value for key, value in overrides.items() if value is not None})
    return properties


def split_command(command: str | None) -> list[str] | None:
    """Split a shell-style command string into an argument vector."""

    if command is None:
        return None
    return shlex.split(command)


def load_config(root: Path, config_file: Path | None, properties: Mapping[str, Any]) -> Config:
    """Load the effective configuration for ``root``.

    Raises:
        CLIError: If any configuration layer is invalid.
    """

    if config_file is not None and not config_file.is_file():
        raise CLIError(f"Configuration file {config_file} does not exist")
    try:
        return ConfigLoader.for_root(root, config_file=config_file).load(properties)
    except LintwardenError as exc:
        raise CLIError(str(exc)) from exc


__all__ = [
    "CLIError",
    "CLILogger",
    "EXIT_CLEAN",
    "EXIT_FAILURE",
    "EXIT_ISSUES",
    "build_cli_logger",
    "collect_properties",
    "load_config",
    "split_command",
]
