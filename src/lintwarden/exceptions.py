# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the analysis pipeline."""

from __future__ import annotations

from collections.abc import Sequence


class LintwardenError(Exception):
    """Base class for every error raised by lintwarden."""


class ConfigError(LintwardenError):
    """Raised when configuration input is invalid."""


class EngineError(LintwardenError):
    """Raised when the external lint engine fails to produce a report."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str | None = None) -> None:
        """Initialise the error with process metadata.

        Args:
            message: Human-readable description of the failure.
            returncode: Exit status reported by the engine process, if any.
            stderr: Trailing standard error output captured from the engine.
        """

        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AnalysisTimeoutError(LintwardenError):
    """Raised when an isolated file analysis exceeds its deadline."""

    def __init__(self, path: str, timeout: float) -> None:
        super().__init__(f"Analysis timed out after {timeout:g}s")
        self.path = path
        self.timeout = timeout


class CircuitBreakerTrippedError(LintwardenError):
    """Synthetic error recorded when consecutive timeouts reach the threshold."""

    def __init__(self, consecutive: int, threshold: int) -> None:
        super().__init__(
            f"Circuit breaker triggered: {consecutive} consecutive timeouts reached the threshold of {threshold}. "
            "Consider raising the analysis timeout or reviewing the remaining sources."
        )
        self.consecutive = consecutive
        self.threshold = threshold


class StrictModeFailure(LintwardenError):
    """Raised when batch analysis fails while running in strict mode."""


class WorkerPoolSaturatedError(LintwardenError):
    """Raised when a call waited out its deadline without ever starting.

    Every worker was still busy with an abandoned call, so the unit of work
    was cancelled while queued instead of being analysed.
    """

    def __init__(self, path: str, timeout: float, busy: int) -> None:
        super().__init__(f"Worker pool saturated: no worker became free within {timeout:g}s ({busy} still busy)")
        self.path = path
        self.timeout = timeout
        self.busy = busy


class ResultTooLargeError(LintwardenError):
    """Raised when an engine result artifact exceeds a hard import ceiling."""

    def __init__(self, message: str, *, observed: int, limit: int) -> None:
        super().__init__(message)
        self.observed = observed
        self.limit = limit


def describe_exception(exc: BaseException) -> str:
    """Return the message carried by ``exc`` or its type name when blank.

    Args:
        exc: Exception to describe.

    Returns:
        str: Non-empty description of the failure.
    """

    message = str(exc).strip()
    return message or type(exc).__name__


def tail_lines(payload: str | None, *, limit: int = 5) -> str | None:
    """Return the last ``limit`` non-empty lines of ``payload``."""

    if not payload:
        return None
    lines: Sequence[str] = [line for line in payload.splitlines() if line.strip()]
    if not lines:
        return None
    return "\n".join(lines[-limit:])


__all__ = [
    "AnalysisTimeoutError",
    "CircuitBreakerTrippedError",
    "ConfigError",
    "EngineError",
    "LintwardenError",
    "ResultTooLargeError",
    "StrictModeFailure",
    "WorkerPoolSaturatedError",
    "describe_exception",
    "tail_lines",
]
