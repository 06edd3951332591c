# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render analysis outcomes as Rich tables or JSON payloads."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .collector import ParseError
from .filesystem import ProjectFileSystem
from .models import ReportedIssue
from .pipeline import AnalysisOutcome
from .severity import Severity

_SEVERITY_STYLES = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.NOTICE: "cyan",
    Severity.NOTE: "dim",
}


@dataclass(frozen=True, slots=True)
class OutputOptions:
    """Presentation preferences for console rendering."""

    color: bool = True
    emoji: bool = True
    max_errors: int = 10


def _styled(value: str, style: str | None) -> Text:
    return Text(value, style=style) if style else Text(value)


def create_issue_table(issues: Sequence[ReportedIssue], fs: ProjectFileSystem, options: OutputOptions) -> Table:
    """Return a table listing ``issues`` in report order."""

    table = Table(box=box.SIMPLE_HEAVY if options.color else box.SIMPLE)
    table.add_column("Location", overflow="fold")
    table.add_column("Severity", no_wrap=True)
    table.add_column("Rule", no_wrap=True)
    table.add_column("Message", overflow="fold")
    for issue in issues:
        severity = issue.severity.value if issue.severity is not None else "-"
        style = _SEVERITY_STYLES.get(issue.severity) if options.color and issue.severity is not None else None
        table.add_row(
            f"{fs.relative_display(issue.file)}:{issue.line}",
            _styled(severity, style),
            issue.rule.rule,
            issue.message,
        )
    return table


def create_stats_panel(outcome: AnalysisOutcome, issue_count: int, options: OutputOptions) -> Panel:
    """Return a panel summarising run counters and import statistics."""

    report = outcome.report
    imported = outcome.imported
    table = Table(show_header=False, box=box.SIMPLE, pad_edge=False, expand=False)
    label_style = "yellow" if options.color else None
    value_style = "orange1" if options.color else None
    table.add_column(style=label_style, justify="left", no_wrap=True)
    table.add_column(style=value_style, justify="right", no_wrap=True)

    rows = [
        ("Mode", report.mode.value),
        ("Files", str(report.total_files)),
        ("- analyzed", str(report.successful_files)),
        ("- failed", str(report.failed_files)),
        ("- timed out", str(report.timed_out_files)),
        ("- skipped", str(report.skipped_files)),
        ("Success rate", f"{report.success_rate:.1f}%"),
        ("Fallback issues", str(report.fallback_issues)),
        ("Issues reported", str(issue_count)),
        ("- via include resolution", str(imported.resolved_issues)),
        ("- dropped", str(imported.dropped_issues)),
    ]
    if report.circuit_breaker_tripped:
        rows.append(("Circuit breaker", "tripped"))
    if report.stopped_on_failure:
        rows.append(("Stopped on failure", "yes"))
    for label, value in rows:
        table.add_row(_styled(label, label_style), _styled(value, value_style))

    title = "📊 analysis" if options.emoji else "analysis"
    panel = Panel.fit(table, title=f"[yellow]{title}[/yellow]" if options.color else title, padding=(0, 1))
    if options.color:
        panel.border_style = "yellow"
    return panel


def create_error_table(errors: Sequence[ParseError], options: OutputOptions) -> Table:
    """Return a table of categorised failures, truncated to ``options.max_errors``."""

    table = Table(box=box.SIMPLE_HEAVY if options.color else box.SIMPLE, title="Files that could not be analyzed")
    table.add_column("File", overflow="fold")
    table.add_column("Category", no_wrap=True)
    table.add_column("Error", overflow="fold")
    for error in errors[: options.max_errors]:
        table.add_row(error.file_path, error.category.description, error.message)
    if len(errors) > options.max_errors:
        table.caption = f"... and {len(errors) - options.max_errors} more files"
    return table


def render_outcome(
    console: Console,
    outcome: AnalysisOutcome,
    issues: Sequence[ReportedIssue],
    fs: ProjectFileSystem,
    options: OutputOptions,
) -> None:
    """Print issues, failures and the statistics panel to ``console``."""

    if issues:
        console.print(create_issue_table(issues, fs, options))
    if outcome.report.errors:
        console.print(create_error_table(outcome.report.errors, options))
    console.print(create_stats_panel(outcome, len(issues), options))


def outcome_to_payload(
    outcome: AnalysisOutcome,
    issues: Sequence[ReportedIssue],
    fs: ProjectFileSystem,
) -> dict[str, Any]:
    """Return a JSON-compatible description of the run."""

    report = outcome.report
    imported = outcome.imported
    return {
        "run": {
            "mode": report.mode.value,
            "artifact": str(report.artifact),
            "total_files": report.total_files,
            "attempted_files": report.attempted_files,
            "successful_files": report.successful_files,
            "failed_files": report.failed_files,
            "timed_out_files": report.timed_out_files,
            "skipped_files": report.skipped_files,
            "fallback_issues": report.fallback_issues,
            "batch_attempted": report.batch_attempted,
            "batch_succeeded": report.batch_succeeded,
            "circuit_breaker_tripped": report.circuit_breaker_tripped,
            "stopped_on_failure": report.stopped_on_failure,
            "stopped_early": report.stopped_early,
            "success_rate": round(report.success_rate, 2),
            "categories": {category.value: count for category, count in report.category_counts.items()},
        },
        "errors": [
            {"file": error.file_path, "category": error.category.value, "message": error.message}
            for error in report.errors
        ],
        "import": {
            "counted_issues": imported.counted_issues,
            "processed_issues": imported.processed_issues,
            "created_issues": imported.created_issues,
            "resolved_issues": imported.resolved_issues,
            "unresolved_issues": imported.unresolved_issues,
            "throttled_issues": imported.throttled_issues,
            "discarded_locations": imported.discarded_locations,
            "missing_files": imported.missing_files,
            "invalid_issues": imported.invalid_issues,
        },
        "issues": [
            {
                "file": fs.relative_display(issue.file),
                "line": issue.line,
                "rule": str(issue.rule),
                "severity": issue.severity.value if issue.severity is not None else None,
                "message": issue.message,
            }
            for issue in issues
        ],
    }


__all__ = [
    "OutputOptions",
    "create_error_table",
    "create_issue_table",
    "create_stats_panel",
    "outcome_to_payload",
    "render_outcome",
]
