# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data structures shared across the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

from .severity import Severity


@dataclass(slots=True, eq=False)
class SourceFile:
    """Read-only handle to a source unit on disk.

    Content is read once on first access and then shared by every caller;
    nothing in the pipeline mutates the underlying file.
    """

    path: Path
    encoding: str = "utf-8"
    _text: str | None = field(default=None, init=False, repr=False)
    _lines: tuple[str, ...] | None = field(default=None, init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    @property
    def key(self) -> str:
        """Return the identity used for caching and cycle detection."""

        return str(self.path)

    @property
    def display_name(self) -> str:
        """Return the file name shown in logs and reports."""

        return self.path.name

    def contents(self) -> str:
        """Return the textual content of the file.

        Returns:
            str: Decoded file content; undecodable bytes are replaced.

        Raises:
            OSError: If the file cannot be read.
        """

        with self._lock:
            if self._text is None:
                self._text = self.path.read_text(encoding=self.encoding, errors="replace")
            return self._text

    def lines(self) -> tuple[str, ...]:
        """Return the physical lines of the file without terminators."""

        with self._lock:
            cached = self._lines
        if cached is not None:
            return cached
        split = tuple(self.contents().splitlines())
        with self._lock:
            self._lines = split
        return split

    @property
    def line_count(self) -> int:
        """Return the number of physical lines in the file."""

        return len(self.lines())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceFile):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)


@dataclass(frozen=True, slots=True)
class IncludeMapping:
    """Contiguous range of virtual lines backed by a slice of an included file."""

    virtual_start: int
    virtual_end: int
    target: SourceFile
    target_start_line: int
    directive: str

    def __post_init__(self) -> None:
        if self.virtual_start > self.virtual_end:
            raise ValueError(f"virtual range [{self.virtual_start}, {self.virtual_end}] is inverted")

    @property
    def length(self) -> int:
        """Return the number of virtual lines covered by the mapping."""

        return self.virtual_end - self.virtual_start + 1

    def contains(self, virtual_line: int) -> bool:
        """Return ``True`` when ``virtual_line`` falls inside the mapping."""

        return self.virtual_start <= virtual_line <= self.virtual_end

    def actual_line(self, virtual_line: int) -> int:
        """Translate ``virtual_line`` into a line of :attr:`target`.

        Args:
            virtual_line: Line number reported against the concatenated file.

        Returns:
            int: Corresponding 1-based line number inside the target file.

        Raises:
            ValueError: If ``virtual_line`` is outside the mapping.
        """

        if not self.contains(virtual_line):
            raise ValueError(
                f"Virtual line {virtual_line} is not within range [{self.virtual_start}, {self.virtual_end}]"
            )
        return self.target_start_line + (virtual_line - self.virtual_start)


@dataclass(frozen=True, slots=True)
class IncludeLayout:
    """Expanded shape of a root file: included segments plus its own directive lines."""

    mappings: tuple[IncludeMapping, ...] = ()
    root_directive_lines: tuple[int, ...] = ()
    total_lines: int = 0

    def root_line(self, ordinal: int) -> int:
        """Return the physical root line holding the ``ordinal``-th root-owned virtual line.

        Resolved directive lines are replaced by included content, so every
        one at or before the running position shifts the answer down by one.
        """

        line = ordinal
        for directive_line in self.root_directive_lines:
            if directive_line > line:
                break
            line += 1
        return line


@dataclass(frozen=True, slots=True)
class ResolvedLocation:
    """Real file and line a virtual line corresponds to."""

    file: SourceFile
    line: int
    was_included: bool
    directive: str | None = None


@dataclass(frozen=True, slots=True)
class IssueLocation:
    """Single location reported for an issue."""

    file: str
    line: int
    column: int = 0
    message: str = ""
    expression: str = ""


@dataclass(frozen=True, slots=True)
class Issue:
    """Rule violation produced by the engine or a fallback strategy."""

    rule_id: str
    severity: str
    message: str
    locations: tuple[IssueLocation, ...]
    category: str = ""

    @property
    def primary_location(self) -> IssueLocation | None:
        """Return the first location attached to the issue."""

        return self.locations[0] if self.locations else None


@dataclass(frozen=True, slots=True)
class RuleKey:
    """Fully qualified rule identifier (repository plus rule)."""

    repository: str
    rule: str

    def __str__(self) -> str:
        return f"{self.repository}:{self.rule}"


@dataclass(frozen=True, slots=True)
class ReportedIssue:
    """Issue recorded by an issue sink."""

    file: SourceFile
    line: int
    message: str
    rule: RuleKey
    severity: Severity | None = None


__all__ = [
    "IncludeLayout",
    "IncludeMapping",
    "Issue",
    "IssueLocation",
    "ReportedIssue",
    "ResolvedLocation",
    "RuleKey",
    "SourceFile",
]
