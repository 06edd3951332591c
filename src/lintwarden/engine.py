# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapter around the external lint engine executable."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from .config.models import EngineConfig
from .exceptions import EngineError, tail_lines
from .process import TIMEOUT_RETURNCODE, CommandOptions, run_command

LOGGER = logging.getLogger(__name__)

REPORT_ROOT_MARKER: Final[str] = "<issues"


@runtime_checkable
class LintEngine(Protocol):
    """Engine capable of linting a set of files into an XML issue report."""

    def scan(self, paths: Sequence[str], *, timeout: float | None = None) -> str:
        """Return the engine's XML report for ``paths``.

        Raises:
            EngineError: If the engine cannot produce a report.
        """
        ...


class CommandLintEngine:
    """Run the engine as a subprocess and capture its XML report from stdout."""

    def __init__(self, config: EngineConfig, *, cwd: Path | None = None) -> None:
        self._config = config
        self._cwd = cwd

    def build_command(self, paths: Sequence[str]) -> list[str]:
        """Return the argument vector used to lint ``paths``."""

        config = self._config
        command = [*config.command, *config.arguments]
        if config.config_file is not None:
            command.extend([config.config_flag, str(config.config_file)])
        if config.file_flag is None:
            command.extend(paths)
        elif config.file_separator:
            command.extend([config.file_flag, config.file_separator.join(paths)])
        else:
            for path in paths:
                command.extend([config.file_flag, path])
        return command

    def scan(self, paths: Sequence[str], *, timeout: float | None = None) -> str:
        """Lint ``paths`` and return the raw XML document.

        Args:
            paths: Absolute file paths to analyse.
            timeout: Subprocess deadline; falls back to the configured engine timeout.

        Returns:
            str: XML report emitted by the engine.

        Raises:
            EngineError: If the executable is missing, times out, or exits
                without producing a report.
        """

        effective_timeout = timeout if timeout is not None else self._config.timeout
        command = self.build_command(paths)
        LOGGER.debug("Running lint engine on %d file(s): %s", len(paths), " ".join(command[:4]))
        try:
            completed = run_command(command, options=CommandOptions(cwd=self._cwd, timeout=effective_timeout))
        except FileNotFoundError as exc:
            raise EngineError(f"Engine executable not found: {exc}") from exc
        stderr = tail_lines(completed.stderr)
        if completed.returncode == TIMEOUT_RETURNCODE and effective_timeout is not None:
            raise EngineError(
                f"Engine timed out after {effective_timeout:g}s",
                returncode=completed.returncode,
                stderr=stderr,
            )
        report = completed.stdout or ""
        if REPORT_ROOT_MARKER not in report:
            detail = stderr or "no report on stdout"
            raise EngineError(
                f"Engine exited with status {completed.returncode}: {detail}",
                returncode=completed.returncode,
                stderr=stderr,
            )
        if completed.returncode != 0:
            LOGGER.debug("Engine exited with status %d but produced a report", completed.returncode)
        return report


__all__ = ["CommandLintEngine", "LintEngine", "REPORT_ROOT_MARKER"]
