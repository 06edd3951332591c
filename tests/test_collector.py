# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for failure categorisation and the error collector."""

from __future__ import annotations

import pytest

from lintwarden.collector import ErrorCategory, ParsingErrorCollector, categorize_error
from lintwarden.exceptions import AnalysisTimeoutError, CircuitBreakerTrippedError


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("NullPointerException at ParserTag.getElement", ErrorCategory.PARSER_NULL_SAFETY),
        ("Jericho reported malformed HTML", ErrorCategory.STRUCTURAL_PARSER),
        ("Missing DOCTYPE declaration", ErrorCategory.DOCUMENT_STRUCTURE_MISSING),
        ("Unclosed tag <cfif> near line 4", ErrorCategory.MALFORMED_TAG),
        ("CFML expression could not be parsed", ErrorCategory.SYNTAX_ERROR),
        ("Permission denied", ErrorCategory.FILE_ACCESS),
        ("something odd happened", ErrorCategory.UNKNOWN),
        ("", ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error_by_message(message: str, expected: ErrorCategory) -> None:
    assert categorize_error(message) is expected


def test_categorize_error_prefers_higher_priority_rules() -> None:
    # matches null safety and file access; null safety is checked first
    assert categorize_error("NullPointerException while reading file") is ErrorCategory.PARSER_NULL_SAFETY
    assert categorize_error("malformed html tag in cfml file") is ErrorCategory.STRUCTURAL_PARSER


def test_categorize_error_uses_exception_types() -> None:
    assert categorize_error("boom", AttributeError("boom")) is ErrorCategory.PARSER_NULL_SAFETY
    assert categorize_error("boom", PermissionError("boom")) is ErrorCategory.FILE_ACCESS
    assert categorize_error("boom", TimeoutError("boom")) is ErrorCategory.UNKNOWN


def test_timeout_and_breaker_messages_are_uncategorised() -> None:
    timeout = AnalysisTimeoutError("a.cfm", 5)
    breaker = CircuitBreakerTrippedError(3, 3)

    assert categorize_error(str(timeout), timeout) is ErrorCategory.UNKNOWN
    assert categorize_error(str(breaker), breaker) is ErrorCategory.UNKNOWN


def test_collector_keeps_one_record_per_key() -> None:
    collector = ParsingErrorCollector()

    collector.add_error("a.cfm", RuntimeError("Unclosed tag <cfif>"))
    collector.add_error("a.cfm", RuntimeError("CFML syntax problem"))
    collector.add_error("b.cfm", RuntimeError(""))

    assert collector.error_count() == 2
    errors = collector.errors()
    assert [error.file_path for error in errors] == ["a.cfm", "b.cfm"]
    assert errors[0].category is ErrorCategory.SYNTAX_ERROR
    assert errors[1].message == "RuntimeError"
    assert collector.count_by_category(ErrorCategory.MALFORMED_TAG) == 0
    assert collector.category_counts() == {ErrorCategory.SYNTAX_ERROR: 1, ErrorCategory.UNKNOWN: 1}


def test_success_rate() -> None:
    collector = ParsingErrorCollector()
    assert collector.success_rate(0) == 100.0

    collector.add_error("a.cfm", RuntimeError("x"))

    assert collector.success_rate(4) == pytest.approx(75.0)
    collector.clear()
    assert collector.success_rate(4) == 100.0


def test_report_lists_categories_recommendations_and_examples() -> None:
    collector = ParsingErrorCollector()
    assert collector.report() == "No parsing errors detected."

    for index in range(3):
        collector.add_error(f"page{index}.cfm", RuntimeError("Missing <body> element"))
    collector.add_error("broken.cfm", RuntimeError("Unclosed tag <cfloop>"))

    report = collector.report(max_examples=2)

    assert "Total files with errors: 4" in report
    assert "Missing HTML Document Structure: 3 (75.0%)" in report
    assert "Malformed HTML/CFML Tags: 1 (25.0%)" in report
    assert "Move <script> and <style> elements inside <head> tags" in report
    assert "page0.cfm: [DOCUMENT_STRUCTURE_MISSING]" in report
    assert "broken.cfm" not in report
    assert "... and 2 more files" in report
    assert report.rstrip().splitlines()[-1] == "  ... and 2 more files"


def test_recommendations_always_suggest_verbose_logging() -> None:
    hints = ParsingErrorCollector.recommendations({ErrorCategory.UNKNOWN: 2})

    assert hints == ["Enable verbose logging for detailed error information"]
