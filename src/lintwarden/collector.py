# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Categorise analysis failures and summarise them for reporting."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Final

from .exceptions import describe_exception

LOGGER = logging.getLogger(__name__)

DEFAULT_REPORT_EXAMPLES: Final[int] = 10


class ErrorCategory(str, Enum):
    """Failure buckets, declared in classification priority order."""

    PARSER_NULL_SAFETY = "parser_null_safety"
    STRUCTURAL_PARSER = "structural_parser"
    DOCUMENT_STRUCTURE_MISSING = "document_structure_missing"
    MALFORMED_TAG = "malformed_tag"
    SYNTAX_ERROR = "syntax_error"
    FILE_ACCESS = "file_access"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        """Return the human-readable label for the category."""

        return _CATEGORY_DESCRIPTIONS[self]


_CATEGORY_DESCRIPTIONS: Final[dict[ErrorCategory, str]] = {
    ErrorCategory.PARSER_NULL_SAFETY: "Parser Null Safety Issues",
    ErrorCategory.STRUCTURAL_PARSER: "Structural Markup Parser Failures",
    ErrorCategory.DOCUMENT_STRUCTURE_MISSING: "Missing HTML Document Structure",
    ErrorCategory.MALFORMED_TAG: "Malformed HTML/CFML Tags",
    ErrorCategory.SYNTAX_ERROR: "CFML Syntax Errors",
    ErrorCategory.FILE_ACCESS: "File Access/IO Errors",
    ErrorCategory.UNKNOWN: "Unknown/Uncategorized Errors",
}


def _is_null_safety(lowered: str, cause: BaseException | None) -> bool:
    return (
        isinstance(cause, AttributeError)
        or "nullpointerexception" in lowered
        or "nonetype" in lowered
        or "parsertag" in lowered
        or "tag.getelement" in lowered
    )


def _is_structural_parser(lowered: str, cause: BaseException | None) -> bool:
    return "jericho" in lowered or "html parser" in lowered or "malformed html" in lowered


def _is_structure_missing(lowered: str, cause: BaseException | None) -> bool:
    return "missing" in lowered and any(marker in lowered for marker in ("doctype", "<html>", "<head>", "<body>"))


def _is_malformed_tag(lowered: str, cause: BaseException | None) -> bool:
    return "tag" in lowered and any(marker in lowered for marker in ("malformed", "unclosed", "invalid"))


def _is_syntax(lowered: str, cause: BaseException | None) -> bool:
    return "cfml" in lowered or "coldfusion" in lowered or "cflint" in lowered


def _is_file_access(lowered: str, cause: BaseException | None) -> bool:
    return (
        isinstance(cause, OSError) and not isinstance(cause, TimeoutError)
    ) or any(marker in lowered for marker in ("file", "access", "permission"))


_CATEGORY_RULES: Final[tuple[tuple[ErrorCategory, Callable[[str, BaseException | None], bool]], ...]] = (
    (ErrorCategory.PARSER_NULL_SAFETY, _is_null_safety),
    (ErrorCategory.STRUCTURAL_PARSER, _is_structural_parser),
    (ErrorCategory.DOCUMENT_STRUCTURE_MISSING, _is_structure_missing),
    (ErrorCategory.MALFORMED_TAG, _is_malformed_tag),
    (ErrorCategory.SYNTAX_ERROR, _is_syntax),
    (ErrorCategory.FILE_ACCESS, _is_file_access),
)


def categorize_error(message: str | None, cause: BaseException | None = None) -> ErrorCategory:
    """Classify a failure; the first matching rule in priority order wins.

    Args:
        message: Failure message; compared case-insensitively.
        cause: Originating exception used for type checks.

    Returns:
        ErrorCategory: Bucket the failure belongs to.
    """

    lowered = (message or "").lower()
    for category, predicate in _CATEGORY_RULES:
        if predicate(lowered, cause):
            return category
    return ErrorCategory.UNKNOWN


@dataclass(frozen=True, slots=True)
class ParseError:
    """Final categorised failure recorded for one file during a run."""

    file_path: str
    message: str
    category: ErrorCategory
    cause: BaseException | None
    timestamp: float = field(default_factory=time.time)


_RECOMMENDATIONS: Final[tuple[tuple[frozenset[ErrorCategory], tuple[str, ...]], ...]] = (
    (
        frozenset({ErrorCategory.DOCUMENT_STRUCTURE_MISSING}),
        ("Add proper HTML document structure (DOCTYPE, <html>, <head>, <body>) to template fragments",),
    ),
    (
        frozenset({ErrorCategory.MALFORMED_TAG}),
        (
            "Review HTML/CFML tag structure - ensure proper opening/closing tags",
            "Move <script> and <style> elements inside <head> tags",
        ),
    ),
    (
        frozenset({ErrorCategory.PARSER_NULL_SAFETY, ErrorCategory.STRUCTURAL_PARSER}),
        (
            "Consider using lenient or fragment parsing mode for legacy templates",
            "These files may be template fragments - consider enabling preprocessing",
        ),
    ),
    (
        frozenset({ErrorCategory.SYNTAX_ERROR}),
        ("Review CFML syntax - check for invalid tag usage or malformed expressions",),
    ),
    (
        frozenset({ErrorCategory.FILE_ACCESS}),
        ("Check file permissions and encodings for the listed files",),
    ),
)


class ParsingErrorCollector:
    """Accumulate one categorised failure per file and report on them.

    Failures accumulate monotonically within a run: recording a second failure
    for the same key replaces the record (the last categorised failure wins)
    without double counting the file.
    """

    def __init__(self) -> None:
        self._errors: dict[str, ParseError] = {}
        self._lock = Lock()

    def add_error(self, key: str, cause: BaseException) -> ParseError:
        """Record a failure for ``key`` with automatic categorisation.

        Args:
            key: File path, or a synthetic key such as ``BATCH_ANALYSIS``.
            cause: Exception describing the failure.

        Returns:
            ParseError: The stored record.
        """

        message = describe_exception(cause)
        record = ParseError(
            file_path=key,
            message=message,
            category=categorize_error(message, cause),
            cause=cause,
        )
        with self._lock:
            self._errors[key] = record
        LOGGER.debug("Categorized parsing error for %s: %s - %s", key, record.category.name, message)
        return record

    def error_count(self) -> int:
        """Return the number of distinct keys with a recorded failure."""

        with self._lock:
            return len(self._errors)

    def count_by_category(self, category: ErrorCategory) -> int:
        """Return how many recorded failures fall into ``category``."""

        with self._lock:
            return sum(1 for error in self._errors.values() if error.category is category)

    def category_counts(self) -> dict[ErrorCategory, int]:
        """Return non-zero counts keyed by category, in priority order."""

        counts = {category: self.count_by_category(category) for category in ErrorCategory}
        return {category: count for category, count in counts.items() if count}

    def errors(self) -> tuple[ParseError, ...]:
        """Return recorded failures in insertion order."""

        with self._lock:
            return tuple(self._errors.values())

    def success_rate(self, total_attempted: int) -> float:
        """Return the percentage of attempted files that did not fail.

        Args:
            total_attempted: Number of files the run attempted.

        Returns:
            float: ``100.0`` when nothing was attempted, otherwise
            ``(total - failed) / total * 100``.
        """

        if total_attempted <= 0:
            return 100.0
        return (total_attempted - self.error_count()) / total_attempted * 100.0

    def clear(self) -> None:
        """Forget every recorded failure."""

        with self._lock:
            self._errors.clear()

    def report(self, *, max_examples: int = DEFAULT_REPORT_EXAMPLES) -> str:
        """Render a plain-text report of category counts, hints and examples.

        Args:
            max_examples: Maximum number of failing files listed.

        Returns:
            str: Multi-line report.
        """

        errors = self.errors()
        if not errors:
            return "No parsing errors detected."
        total = len(errors)
        counts = self.category_counts()
        lines = ["=== Parsing Error Report ===", f"Total files with errors: {total}", "", "Error Categories:"]
        for category, count in counts.items():
            lines.append(f"  {category.description}: {count} ({count / total * 100:.1f}%)")
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"  • {hint}" for hint in self.recommendations(counts))
        lines.append("")
        lines.append(f"Failed Files (showing first {max_examples}):")
        for error in errors[:max_examples]:
            lines.append(f"  {error.file_path}: [{error.category.name}] {error.message}")
        if total > max_examples:
            lines.append(f"  ... and {total - max_examples} more files")
        return "\n".join(lines)

    @staticmethod
    def recommendations(counts: dict[ErrorCategory, int]) -> list[str]:
        """Return remediation hints for the categories present in ``counts``."""

        present = {category for category, count in counts.items() if count}
        hints: list[str] = []
        for categories, messages in _RECOMMENDATIONS:
            if present & categories:
                hints.extend(messages)
        hints.append("Enable verbose logging for detailed error information")
        return hints


__all__ = [
    "DEFAULT_REPORT_EXAMPLES",
    "ErrorCategory",
    "ParseError",
    "ParsingErrorCollector",
    "categorize_error",
]
