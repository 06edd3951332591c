# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-run counters and the immutable report derived from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..collector import ErrorCategory, ParseError, ParsingErrorCollector
from ..config.models import ParsingConfig, ParsingMode


@dataclass(slots=True)
class RunState:
    """Mutable counters owned by a single orchestrator run."""

    total_files: int
    attempted_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    timed_out_files: int = 0
    consecutive_timeouts: int = 0
    fallback_issues: int = 0
    batch_attempted: bool = False
    batch_succeeded: bool = False
    circuit_breaker_tripped: bool = False
    stopped_on_failure: bool = False

    def record_success(self) -> None:
        """Count a successful file and reset the consecutive-timeout streak."""

        self.successful_files += 1
        self.consecutive_timeouts = 0

    def record_timeout(self) -> int:
        """Count a timed-out file and return the updated streak."""

        self.failed_files += 1
        self.timed_out_files += 1
        self.consecutive_timeouts += 1
        return self.consecutive_timeouts

    def record_failure(self) -> None:
        """Count a non-timeout failure; the timeout streak is left unchanged."""

        self.failed_files += 1

    def to_report(self, collector: ParsingErrorCollector, *, mode: ParsingMode, artifact: Path) -> RunReport:
        """Freeze the counters together with the collector's findings."""

        return RunReport(
            mode=mode,
            artifact=artifact,
            total_files=self.total_files,
            attempted_files=self.attempted_files,
            successful_files=self.successful_files,
            failed_files=self.failed_files,
            timed_out_files=self.timed_out_files,
            consecutive_timeouts=self.consecutive_timeouts,
            fallback_issues=self.fallback_issues,
            batch_attempted=self.batch_attempted,
            batch_succeeded=self.batch_succeeded,
            circuit_breaker_tripped=self.circuit_breaker_tripped,
            stopped_on_failure=self.stopped_on_failure,
            success_rate=collector.success_rate(self.total_files),
            errors=collector.errors(),
            category_counts=collector.category_counts(),
        )


@dataclass(frozen=True, slots=True)
class RunReport:
    """Outcome of one orchestrator run."""

    mode: ParsingMode
    artifact: Path
    total_files: int
    attempted_files: int
    successful_files: int
    failed_files: int
    timed_out_files: int
    consecutive_timeouts: int
    fallback_issues: int
    batch_attempted: bool
    batch_succeeded: bool
    circuit_breaker_tripped: bool
    stopped_on_failure: bool
    success_rate: float
    errors: tuple[ParseError, ...] = ()
    category_counts: dict[ErrorCategory, int] = field(default_factory=dict)

    @property
    def failure_rate(self) -> float:
        return 100.0 - self.success_rate

    @property
    def stopped_early(self) -> bool:
        return self.circuit_breaker_tripped or self.stopped_on_failure

    @property
    def skipped_files(self) -> int:
        """Return files never attempted because the run stopped early."""

        return self.total_files - self.attempted_files if not self.batch_succeeded else 0


class ThresholdStatus(str, Enum):
    """Health of a run's failure rate relative to configured limits."""

    WITHIN = "within"
    ABOVE_RECOMMENDED = "above_recommended"
    EXCEEDED = "exceeded"


def evaluate_failure_rate(success_rate: float, config: ParsingConfig) -> ThresholdStatus:
    """Compare a run's failure rate with the configured and recommended limits.

    Args:
        success_rate: Percentage of files analysed without failure.
        config: Parsing configuration carrying the threshold and mode.

    Returns:
        ThresholdStatus: ``EXCEEDED`` above ``error_threshold``,
        ``ABOVE_RECOMMENDED`` above the mode's recommended limit, otherwise ``WITHIN``.
    """

    failure_rate = 100.0 - success_rate
    if failure_rate > config.error_threshold:
        return ThresholdStatus.EXCEEDED
    if failure_rate > config.mode.recommended_error_threshold:
        return ThresholdStatus.ABOVE_RECOMMENDED
    return ThresholdStatus.WITHIN


__all__ = ["RunReport", "RunState", "ThresholdStatus", "evaluate_failure_rate"]
