# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Issue sink contract consumed by the result importer."""

from __future__ import annotations

from collections.abc import Iterator
from threading import Lock
from typing import Protocol, runtime_checkable

from .models import ReportedIssue, RuleKey, SourceFile
from .severity import Severity


@runtime_checkable
class IssueBuilder(Protocol):
    """Fluent builder returned by :meth:`IssueSink.new_issue`."""

    def on(self, file: SourceFile) -> IssueBuilder:
        """Attach the issue to ``file``."""
        ...

    def at(self, line: int) -> IssueBuilder:
        """Attach the issue to 1-based ``line``."""
        ...

    def message(self, text: str) -> IssueBuilder:
        """Set the human-readable message."""
        ...

    def for_rule(self, rule: RuleKey) -> IssueBuilder:
        """Set the fully qualified rule key."""
        ...

    def override_severity(self, severity: Severity) -> IssueBuilder:
        """Replace the rule's default severity."""
        ...

    def save(self) -> None:
        """Hand the issue to the sink."""
        ...


@runtime_checkable
class IssueSink(Protocol):
    """Write-only destination for located issues."""

    def new_issue(self) -> IssueBuilder:
        """Return a builder for a new issue."""
        ...


class _CollectingIssueBuilder:
    """Builder accumulating fields until :meth:`save` is called."""

    def __init__(self, sink: CollectingSink) -> None:
        self._sink = sink
        self._file: SourceFile | None = None
        self._line: int | None = None
        self._message = ""
        self._rule: RuleKey | None = None
        self._severity: Severity | None = None

    def on(self, file: SourceFile) -> _CollectingIssueBuilder:
        self._file = file
        return self

    def at(self, line: int) -> _CollectingIssueBuilder:
        if line < 1:
            raise ValueError(f"line must be positive, got {line}")
        self._line = line
        return self

    def message(self, text: str) -> _CollectingIssueBuilder:
        self._message = text
        return self

    def for_rule(self, rule: RuleKey) -> _CollectingIssueBuilder:
        self._rule = rule
        return self

    def override_severity(self, severity: Severity) -> _CollectingIssueBuilder:
        self._severity = severity
        return self

    def save(self) -> None:
        if self._file is None or self._line is None or self._rule is None:
            raise ValueError("issue requires a file, a line and a rule before saving")
        self._sink.record(
            ReportedIssue(
                file=self._file,
                line=self._line,
                message=self._message,
                rule=self._rule,
                severity=self._severity,
            )
        )


class CollectingSink:
    """In-memory sink storing saved issues in the order they were reported."""

    def __init__(self) -> None:
        self._issues: list[ReportedIssue] = []
        self._lock = Lock()

    def new_issue(self) -> _CollectingIssueBuilder:
        return _CollectingIssueBuilder(self)

    def record(self, issue: ReportedIssue) -> None:
        """Append a fully built issue."""

        with self._lock:
            self._issues.append(issue)

    @property
    def issues(self) -> tuple[ReportedIssue, ...]:
        """Return every saved issue."""

        with self._lock:
            return tuple(self._issues)

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)

    def __iter__(self) -> Iterator[ReportedIssue]:
        return iter(self.issues)


__all__ = ["CollectingSink", "IssueBuilder", "IssueSink"]
