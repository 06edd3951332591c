# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run the lint engine over a file set with batch and isolated strategies."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import CancelledError
from functools import partial
from pathlib import Path
from typing import Final

from ..artifact import (
    ANALYSIS_TIMEOUT,
    CIRCUIT_BREAKER_TRIGGERED,
    ResultArtifactWriter,
    extract_issue_fragment,
    rewrite_paths,
    write_report,
)
from ..collector import ErrorCategory, ParsingErrorCollector
from ..config.models import ErrorReportingLevel, ParsingConfig, ParsingMode
from ..engine import LintEngine
from ..exceptions import (
    AnalysisTimeoutError,
    CircuitBreakerTrippedError,
    LintwardenError,
    StrictModeFailure,
    WorkerPoolSaturatedError,
    describe_exception,
)
from ..models import SourceFile
from ..strategies import FallbackAnalyzer, Preprocessor, write_temporary_artifact
from .state import RunReport, RunState, ThresholdStatus, evaluate_failure_rate
from .worker import IsolatedExecutor

LOGGER = logging.getLogger(__name__)

BATCH_ERROR_KEY: Final[str] = "BATCH_ANALYSIS"
DEFAULT_PROGRESS_INTERVAL: Final[int] = 100
DEFAULT_ENGINE_GRACE: Final[float] = 5.0


class AnalysisOrchestrator:
    """Drive the engine over a file set and assemble the result artifact.

    A run first tries a single batch invocation when the parsing mode allows
    it and otherwise (or after a recoverable batch failure) analyses files one
    at a time on an isolated worker with a per-file deadline. Consecutive
    timeouts trip a circuit breaker that ends the run early while keeping
    every result gathered so far. With ``skip_malformed_files`` disabled the
    first non-timeout failure ends the run the same way.
    """

    def __init__(
        self,
        engine: LintEngine,
        config: ParsingConfig,
        *,
        artifact_path: Path,
        collector: ParsingErrorCollector | None = None,
        preprocessor: Preprocessor | None = None,
        fallback: FallbackAnalyzer | None = None,
        encoding: str = "utf-8",
        engine_grace: float = DEFAULT_ENGINE_GRACE,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        """Initialise the orchestrator.

        Args:
            engine: Engine used for batch and per-file analysis.
            config: Failure-tolerance settings.
            artifact_path: Location of the intermediate result artifact.
            collector: Collector receiving categorised failures; a fresh one is created when omitted.
            preprocessor: Optional content rewriter applied before isolated analysis.
            fallback: Optional degraded analyzer consulted after a failure.
            encoding: Encoding used for source reads and the artifact.
            engine_grace: Seconds added to the file timeout for the engine's own deadline.
            progress_interval: Number of files between progress log lines.
        """

        self._engine = engine
        self._config = config
        self._artifact_path = artifact_path
        self.collector = collector if collector is not None else ParsingErrorCollector()
        self._preprocessor = preprocessor
        self._fallback = fallback
        self._encoding = encoding
        self._engine_grace = engine_grace
        self._progress_interval = max(1, progress_interval)

    @property
    def artifact_path(self) -> Path:
        return self._artifact_path

    def run(self, files: Sequence[SourceFile]) -> RunReport:
        """Analyse ``files`` and return the run report.

        Args:
            files: Source files to analyse, in processing order.

        Returns:
            RunReport: Counters, categorised errors and the artifact location.

        Raises:
            StrictModeFailure: If batch analysis fails in strict mode.
        """

        mode = self._config.mode
        state = RunState(total_files=len(files))
        LOGGER.info("Starting analysis of %d files with %s mode", state.total_files, mode.value)

        if not files:
            with ResultArtifactWriter(self._artifact_path, encoding=self._encoding):
                pass
            return self._finish(state)

        if mode.attempts_batch:
            state.batch_attempted = True
            state.batch_succeeded = self._attempt_batch(files, state)

        if not state.batch_succeeded:
            if not mode.continues_on_error:
                raise StrictModeFailure(f"Batch analysis failed in {mode.value} mode; no error recovery attempted")
            if state.batch_attempted:
                LOGGER.warning("Batch analysis failed, falling back to isolated per-file analysis")
            self._attempt_isolated(files, state)

        return self._finish(state)

    def _attempt_batch(self, files: Sequence[SourceFile], state: RunState) -> bool:
        paths = [str(file.path) for file in files]
        LOGGER.info("Attempting batch analysis of %d files", len(paths))
        try:
            document = self._engine.scan(paths)
            write_report(self._artifact_path, document, encoding=self._encoding)
        except Exception as exc:
            LOGGER.warning("Batch analysis failed: %s", describe_exception(exc))
            LOGGER.debug("Batch analysis failure details", exc_info=exc)
            self.collector.add_error(BATCH_ERROR_KEY, exc)
            return False
        state.attempted_files = state.total_files
        state.successful_files = state.total_files
        LOGGER.info("Batch analysis completed successfully for all %d files", state.total_files)
        return True

    def _attempt_isolated(self, files: Sequence[SourceFile], state: RunState) -> None:
        workers = self._config.max_consecutive_timeouts + 1
        with (
            IsolatedExecutor(max_workers=workers) as executor,
            ResultArtifactWriter(self._artifact_path, encoding=self._encoding) as writer,
        ):
            for index, file in enumerate(files, start=1):
                state.attempted_files = index
                self._analyze_file(file, state, executor, writer)
                if state.circuit_breaker_tripped:
                    LOGGER.error(
                        "Circuit breaker triggered - stopping analysis with %d of %d files processed",
                        index,
                        state.total_files,
                    )
                    break
                if state.stopped_on_failure:
                    LOGGER.error(
                        "Stopping analysis after a failure on %s with %d of %d files processed "
                        "(skipping malformed files is disabled)",
                        file.key,
                        index,
                        state.total_files,
                    )
                    break
                if index % self._progress_interval == 0:
                    LOGGER.info(
                        "Progress: %d/%d files analyzed (%.1f%%) - %d successful, %d failed, %d timeouts",
                        index,
                        state.total_files,
                        index * 100.0 / state.total_files,
                        state.successful_files,
                        state.failed_files,
                        state.timed_out_files,
                    )

    def _analyze_file(
        self,
        file: SourceFile,
        state: RunState,
        executor: IsolatedExecutor,
        writer: ResultArtifactWriter,
    ) -> None:
        key = file.key
        timeout = self._config.file_timeout
        temporary: Path | None = None
        LOGGER.debug("Analyzing %s with %gs timeout", key, timeout)
        try:
            temporary = self._prepare(file.path)
            target = str(temporary) if temporary is not None else key
            scan = partial(self._engine.scan, [target], timeout=timeout + self._engine_grace)
            document = executor.run(scan, timeout=timeout, label=key)
            fragment = extract_issue_fragment(document)
            if temporary is not None:
                fragment = rewrite_paths(fragment, temporary, key)
            writer.write_fragment(fragment)
            state.record_success()
            LOGGER.debug("Successfully analyzed %s", key)
        except AnalysisTimeoutError as exc:
            streak = state.record_timeout()
            LOGGER.warning(
                "Analysis of %s timed out after %gs (consecutive timeouts: %d)", key, timeout, streak
            )
            if streak >= self._config.max_consecutive_timeouts:
                breaker = CircuitBreakerTrippedError(streak, self._config.max_consecutive_timeouts)
                LOGGER.error("%s", breaker)
                self.collector.add_error(key, breaker)
                writer.timeout(key, CIRCUIT_BREAKER_TRIGGERED, timeout, streak)
                state.circuit_breaker_tripped = True
                return
            self.collector.add_error(key, exc)
            writer.timeout(key, ANALYSIS_TIMEOUT, timeout, streak)
            self._write_fallback(file, state, writer)
        except CancelledError as exc:
            state.record_failure()
            LOGGER.warning("Analysis of %s was cancelled", key)
            record = self.collector.add_error(key, exc)
            self._write_fallback(file, state, writer)
            writer.parsing_error(key, record.message, record.category.name)
        except WorkerPoolSaturatedError as exc:
            state.record_failure()
            record = self.collector.add_error(key, exc)
            self._write_fallback(file, state, writer)
            writer.parsing_error(key, record.message, record.category.name)
        except Exception as exc:
            state.record_failure()
            record = self.collector.add_error(key, exc)
            LOGGER.warning("Failed to analyze %s: %s", key, record.message)
            LOGGER.debug("Failure details for %s", key, exc_info=exc)
            self._write_fallback(file, state, writer)
            writer.parsing_error(key, record.message, record.category.name)
            if not self._config.skip_malformed_files:
                state.stopped_on_failure = True
        finally:
            if temporary is not None:
                self._discard(temporary)

    def _prepare(self, path: Path) -> Path | None:
        """Return a preprocessed temporary copy of ``path`` or ``None`` to use the original."""

        if self._preprocessor is None:
            return None
        try:
            content = self._preprocessor.transform(path)
            if content == path.read_text(encoding=self._encoding, errors="replace"):
                return None
            temporary = write_temporary_artifact(path, content, encoding=self._encoding)
        except (LintwardenError, OSError) as exc:
            LOGGER.warning("Preprocessing failed for %s: %s - using original file", path, describe_exception(exc))
            return None
        LOGGER.debug("Using preprocessed file for analysis: %s -> %s", path, temporary)
        return temporary

    @staticmethod
    def _discard(temporary: Path) -> None:
        try:
            temporary.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.debug("Failed to remove temporary file %s: %s", temporary, exc)

    def _write_fallback(self, file: SourceFile, state: RunState, writer: ResultArtifactWriter) -> None:
        if self._fallback is None:
            return
        try:
            issues = self._fallback.analyze(file.path)
        except Exception as exc:
            LOGGER.warning("Fallback analysis failed for %s: %s", file.key, describe_exception(exc))
            return
        if not issues:
            return
        written = writer.write_fallback(issues)
        state.fallback_issues += written
        LOGGER.info("Fallback analysis found %d issues in %s", written, file.key)

    def _finish(self, state: RunState) -> RunReport:
        report = state.to_report(self.collector, mode=self._config.mode, artifact=self._artifact_path)
        self._log_results(report)
        return report

    def _log_results(self, report: RunReport) -> None:
        if report.failed_files == 0 and not report.errors:
            LOGGER.info(
                "Analysis completed successfully: %d/%d files analyzed (100%%)",
                report.successful_files,
                report.total_files,
            )
        else:
            LOGGER.warning(
                "Analysis completed with partial success: %d/%d files analyzed (%.1f%%), %d files failed",
                report.successful_files,
                report.total_files,
                report.success_rate,
                report.failed_files,
            )
            self._log_error_report(report)

        status = evaluate_failure_rate(report.success_rate, self._config)
        if status is ThresholdStatus.EXCEEDED:
            message = (
                f"Analysis failure rate ({report.failure_rate:.1f}%) exceeds the configured threshold "
                f"({self._config.error_threshold}%)"
            )
            if report.mode is ParsingMode.STRICT:
                LOGGER.error(message)
            else:
                LOGGER.warning(message)
        elif status is ThresholdStatus.ABOVE_RECOMMENDED:
            LOGGER.warning(
                "Analysis failure rate (%.1f%%) is above the recommended limit for %s mode (%d%%)",
                report.failure_rate,
                report.mode.value,
                report.mode.recommended_error_threshold,
            )

        counts = report.category_counts
        LOGGER.info(
            "ANALYSIS_METRICS: totalFiles=%d, successfulFiles=%d, failedFiles=%d, timedOutFiles=%d, "
            "successRate=%.1f%%, parsingMode=%s, errorThreshold=%d%%, circuitBreakerTripped=%s, "
            "fallbackIssues=%d, parserNullSafetyErrors=%d, structuralParserErrors=%d, documentStructureErrors=%d",
            report.total_files,
            report.successful_files,
            report.failed_files,
            report.timed_out_files,
            report.success_rate,
            report.mode.value,
            self._config.error_threshold,
            str(report.circuit_breaker_tripped).lower(),
            report.fallback_issues,
            counts.get(ErrorCategory.PARSER_NULL_SAFETY, 0),
            counts.get(ErrorCategory.STRUCTURAL_PARSER, 0),
            counts.get(ErrorCategory.DOCUMENT_STRUCTURE_MISSING, 0),
        )

    def _log_error_report(self, report: RunReport) -> None:
        level = self._config.error_reporting
        if level is ErrorReportingLevel.NONE or not report.errors:
            return
        if level is ErrorReportingLevel.DETAILED:
            LOGGER.info("Detailed parsing error analysis:\n%s", self.collector.report())
            return
        summary = ", ".join(f"{category.description}: {count}" for category, count in report.category_counts.items())
        LOGGER.warning("Parsing errors by category: %s", summary)


__all__ = ["AnalysisOrchestrator", "BATCH_ERROR_KEY"]
