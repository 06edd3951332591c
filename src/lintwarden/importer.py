# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Stream the result artifact into located issues with volume safeguards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from xml.etree.ElementTree import Element, ParseError

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import iterparse

from .config.models import ImportConfig
from .exceptions import LintwardenError, ResultTooLargeError
from .filesystem import ProjectFileSystem
from .includes import IncludeResolver
from .models import RuleKey, SourceFile
from .severity import severity_from_engine
from .sink import IssueSink

LOGGER = logging.getLogger(__name__)

ISSUE_TAG: Final[str] = "issue"
LOCATION_TAG: Final[str] = "location"
DEFAULT_MESSAGE: Final[str] = "Lint issue"
MEBIBYTE: Final[int] = 1024 * 1024


@dataclass(slots=True)
class ImportStats:
    """Counters describing one import pass."""

    counted_issues: int | None = None
    processed_issues: int = 0
    created_issues: int = 0
    resolved_issues: int = 0
    unresolved_issues: int = 0
    throttled_issues: int = 0
    discarded_locations: int = 0
    missing_files: int = 0
    invalid_issues: int = 0
    virtual_lines_seen: int = 0

    @property
    def dropped_issues(self) -> int:
        """Return issues that could not be reported at a real location."""

        return self.unresolved_issues + self.throttled_issues + self.missing_files + self.invalid_issues


def _parse_line(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value >= 1 else None


class ResultImporter:
    """Convert ``<issue>`` elements of an artifact into sink issues.

    Only the first ``<location>`` of each issue is reported; the engine emits
    one location per include expansion of the same violation. Locations past
    the end of their file are virtual lines and are translated through the
    include resolver, subject to a warm-up window followed by sampling at a
    fixed stride.
    """

    def __init__(
        self,
        fs: ProjectFileSystem,
        resolver: IncludeResolver,
        config: ImportConfig,
        *,
        repository: str,
    ) -> None:
        self._fs = fs
        self._resolver = resolver
        self._config = config
        self._repository = repository

    def import_file(self, artifact: Path, sink: IssueSink) -> ImportStats:
        """Import every issue of ``artifact`` into ``sink``.

        Args:
            artifact: Result artifact written by the orchestrator or the engine.
            sink: Destination receiving located issues.

        Returns:
            ImportStats: Counters for the pass.

        Raises:
            ResultTooLargeError: If the artifact exceeds the byte or issue ceiling.
            LintwardenError: If the artifact is not well-formed XML.
            OSError: If the artifact cannot be read.
        """

        stats = ImportStats()
        size = artifact.stat().st_size
        limit = self._config.max_result_bytes
        if size > limit:
            raise ResultTooLargeError(
                f"Result artifact is {size / MEBIBYTE:.1f} MiB, above the {limit / MEBIBYTE:.1f} MiB limit; "
                "this usually means recursive include expansion multiplied the reported issues",
                observed=size,
                limit=limit,
            )
        LOGGER.info("Importing result artifact %s (%.1f MiB)", artifact, size / MEBIBYTE)
        if self._config.count_issues_first:
            stats.counted_issues = self.count_issues(artifact)
            if stats.counted_issues > self._config.max_issues:
                raise ResultTooLargeError(
                    f"Result artifact contains {stats.counted_issues} issues, above the limit of "
                    f"{self._config.max_issues}",
                    observed=stats.counted_issues,
                    limit=self._config.max_issues,
                )
            LOGGER.info("Result artifact contains %d issues", stats.counted_issues)

        root: Element | None = None
        try:
            for event, element in iterparse(str(artifact), events=("start", "end"), forbid_dtd=True):
                if event == "start":
                    if root is None:
                        root = element
                    continue
                if element.tag != ISSUE_TAG:
                    continue
                stats.processed_issues += 1
                if stats.counted_issues is None and stats.processed_issues > self._config.max_issues:
                    raise ResultTooLargeError(
                        f"Result artifact exceeded the limit of {self._config.max_issues} issues while importing",
                        observed=stats.processed_issues,
                        limit=self._config.max_issues,
                    )
                self._handle_issue(element, sink, stats)
                element.clear()
                if root is not None:
                    root.clear()
                if stats.processed_issues % self._config.progress_interval == 0:
                    LOGGER.info(
                        "Processed %d issues (%d created, %d resolved, %d dropped)",
                        stats.processed_issues,
                        stats.created_issues,
                        stats.resolved_issues,
                        stats.dropped_issues,
                    )
        except (ParseError, DefusedXmlException) as exc:
            raise LintwardenError(f"Malformed result artifact {artifact}: {exc}") from exc

        LOGGER.info(
            "Import complete: %d issues processed, %d created (%d via include resolution), %d dropped",
            stats.processed_issues,
            stats.created_issues,
            stats.resolved_issues,
            stats.dropped_issues,
        )
        if stats.throttled_issues:
            LOGGER.warning("Skipped resolution of %d virtual line locations", stats.throttled_issues)
        return stats

    def count_issues(self, artifact: Path) -> int:
        """Return the number of ``<issue>`` elements in ``artifact`` with a streaming pass.

        Raises:
            ResultTooLargeError: As soon as the count passes the issue ceiling.
            LintwardenError: If the artifact is not well-formed XML.
        """

        count = 0
        try:
            for _event, element in iterparse(str(artifact), events=("end",), forbid_dtd=True):
                if element.tag == ISSUE_TAG:
                    count += 1
                    element.clear()
                    if count > self._config.max_issues:
                        return count
        except (ParseError, DefusedXmlException) as exc:
            raise LintwardenError(f"Malformed result artifact {artifact}: {exc}") from exc
        return count

    def _handle_issue(self, element: Element, sink: IssueSink, stats: ImportStats) -> None:
        rule_id = (element.get("id") or "").strip()
        locations = element.findall(LOCATION_TAG)
        if not rule_id or not locations:
            stats.invalid_issues += 1
            LOGGER.debug("Skipping issue without rule id or location")
            return
        stats.discarded_locations += len(locations) - 1
        location = locations[0]
        file = self._fs.input_file(location.get("file") or "")
        if file is None:
            stats.missing_files += 1
            LOGGER.debug("Skipping issue %s for unknown file %s", rule_id, location.get("file"))
            return
        line = _parse_line(location.get("line"))
        if line is None:
            stats.invalid_issues += 1
            LOGGER.debug("Skipping issue %s in %s without a valid line", rule_id, file.display_name)
            return
        message = location.get("message") or element.get("message") or DEFAULT_MESSAGE
        severity = element.get("severity")

        if line <= file.line_count:
            self._save(sink, file, line, message, rule_id, severity)
            stats.created_issues += 1
            return

        stats.virtual_lines_seen += 1
        seen = stats.virtual_lines_seen
        if seen > self._config.resolution_warmup and seen % self._config.resolution_stride != 0:
            stats.throttled_issues += 1
            return
        LOGGER.debug("Virtual line %d detected in %s (%d lines)", line, file.display_name, file.line_count)
        resolved = self._resolver.resolve(file, line)
        if resolved is None:
            stats.unresolved_issues += 1
            LOGGER.debug(
                "Could not place issue %s: line %d exceeds the %d lines of %s",
                rule_id,
                line,
                file.line_count,
                file.display_name,
            )
            return
        if resolved.was_included:
            message = f"{message} (from included file: {resolved.directive})"
        self._save(sink, resolved.file, resolved.line, message, rule_id, severity)
        stats.created_issues += 1
        stats.resolved_issues += 1

    def _save(
        self,
        sink: IssueSink,
        file: SourceFile,
        line: int,
        message: str,
        rule_id: str,
        severity: str | None,
    ) -> None:
        builder = sink.new_issue().on(file).at(line).message(message).for_rule(RuleKey(self._repository, rule_id))
        if severity:
            builder = builder.override_severity(severity_from_engine(severity))
        builder.save()


__all__ = ["ImportStats", "ResultImporter"]
