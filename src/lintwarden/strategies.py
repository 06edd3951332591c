# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Pluggable preprocessing and fallback-analysis strategies."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from .exceptions import LintwardenError, tail_lines
from .models import Issue, IssueLocation
from .process import CommandOptions, run_command

LOGGER = logging.getLogger(__name__)

TEMPORARY_PREFIX: Final[str] = "lintwarden_preprocessed_"
FALLBACK_CATEGORY: Final[str] = "FALLBACK_ANALYSIS"
MAX_EVIDENCE_LENGTH: Final[int] = 100
_EVIDENCE_ELLIPSIS: Final[str] = "..."


@runtime_checkable
class Preprocessor(Protocol):
    """Rewrite a source file into content the engine parses more reliably."""

    def transform(self, path: Path) -> str:
        """Return the content to analyse in place of ``path``."""
        ...


@runtime_checkable
class FallbackAnalyzer(Protocol):
    """Produce degraded results for a file the engine could not analyse."""

    def analyze(self, path: Path) -> list[Issue] | None:
        """Return issues for ``path`` or ``None`` when no analysis was possible."""
        ...


class NullPreprocessor:
    """Disabled preprocessing: the file content is returned unchanged."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def transform(self, path: Path) -> str:
        return path.read_text(encoding=self._encoding, errors="replace")


class CommandPreprocessor:
    """Delegate preprocessing to an external command printing the result on stdout."""

    def __init__(self, command: Sequence[str], *, timeout: float | None = None) -> None:
        if not command:
            raise ValueError("preprocess command must not be empty")
        self._command = list(command)
        self._timeout = timeout

    def transform(self, path: Path) -> str:
        completed = run_command([*self._command, str(path)], options=CommandOptions(timeout=self._timeout))
        if completed.returncode != 0:
            detail = tail_lines(completed.stderr) or f"exit status {completed.returncode}"
            raise LintwardenError(f"Preprocessor failed for {path.name}: {detail}")
        return completed.stdout


class NullFallbackAnalyzer:
    """Disabled fallback analysis."""

    def analyze(self, path: Path) -> list[Issue] | None:
        return None


@dataclass(frozen=True, slots=True)
class FallbackRule:
    """Pattern-based rule evaluated against the raw text of a file."""

    rule_id: str
    name: str
    severity: str
    pattern: re.Pattern[str]
    message: str


def _rule(rule_id: str, name: str, severity: str, regex: str, message: str, *, spans_lines: bool) -> FallbackRule:
    flags = re.IGNORECASE | (re.DOTALL | re.MULTILINE if spans_lines else 0)
    return FallbackRule(rule_id, name, severity, re.compile(regex, flags), message)


DEFAULT_FALLBACK_RULES: Final[tuple[FallbackRule, ...]] = (
    _rule(
        "CF_SQL_INJECTION_RISK",
        "SQL Injection Risk",
        "CRITICAL",
        r"<cfquery[^>]*>.*?#(?:url|form|cgi)\.[^#]*#.*?</cfquery>",
        "Potential SQL injection vulnerability: direct use of URL/Form/CGI variables in query",
        spans_lines=True,
    ),
    _rule(
        "CF_XSS_OUTPUT_RISK",
        "Cross-Site Scripting Risk",
        "HIGH",
        r"#(?:url|form|cgi)\.[^#]*#",
        "Potential XSS vulnerability: unescaped output of user input",
        spans_lines=False,
    ),
    _rule(
        "CF_QUERY_IN_LOOP",
        "Query Inside Loop",
        "MEDIUM",
        r"<cfloop[^>]*>.*?<cfquery[^>]*>.*?</cfquery>.*?</cfloop>",
        "Performance issue: database query inside loop can cause N+1 query problems",
        spans_lines=True,
    ),
    _rule(
        "CF_HARDCODED_PASSWORD",
        "Hardcoded Password",
        "HIGH",
        r"(?:password|pwd)\s*=\s*[\"'][^\"']{3,}[\"']",
        "Security risk: hardcoded password found in source code",
        spans_lines=False,
    ),
    _rule(
        "CF_HARDCODED_DATASOURCE",
        "Hardcoded Database Connection",
        "MEDIUM",
        r"<cfquery[^>]*datasource\s*=\s*[\"'][^\"']+[\"'][^>]*>",
        "Configuration issue: hardcoded datasource should use application settings",
        spans_lines=False,
    ),
    _rule(
        "CF_MISSING_QUERYPARAM",
        "Missing cfqueryparam",
        "MEDIUM",
        r"<cfquery[^>]*>(?:(?!<cfqueryparam|</cfquery>).)*#[^#]*#(?:(?!<cfqueryparam|</cfquery>).)*</cfquery>",
        "Security/Performance: use cfqueryparam for all dynamic SQL values",
        spans_lines=True,
    ),
    _rule(
        "CF_DEPRECATED_TAGS",
        "Deprecated CFML Tags",
        "LOW",
        r"<(cfinsert|cfupdate|cfgridupdate|cfgrid)\b[^>]*>",
        "Code quality: deprecated tag usage should be updated to modern alternatives",
        spans_lines=False,
    ),
    _rule(
        "CF_DEBUG_OUTPUT",
        "Debug Output",
        "MEDIUM",
        r"<(cfdump|cfabort|cftrace)\b[^>]*>",
        "Code quality: debug/development tags should not be in production code",
        spans_lines=False,
    ),
    _rule(
        "CF_COMPLEX_EXPRESSION",
        "Complex Expression",
        "LOW",
        r"#[^#]{80,}#",
        "Code quality: complex expressions should be broken into simpler components",
        spans_lines=False,
    ),
    _rule(
        "CF_MISSING_ERROR_HANDLING",
        "Missing Error Handling",
        "MEDIUM",
        r"<cfquery[^>]*>(?:(?!<cftry|</cfquery>).)*</cfquery>",
        "Reliability: database queries should include error handling",
        spans_lines=True,
    ),
)


def _truncate_evidence(text: str) -> str:
    evidence = text.strip()
    if len(evidence) > MAX_EVIDENCE_LENGTH:
        return evidence[: MAX_EVIDENCE_LENGTH - len(_EVIDENCE_ELLIPSIS)] + _EVIDENCE_ELLIPSIS
    return evidence


def position_of(content: str, offset: int) -> tuple[int, int]:
    """Return the 1-based ``(line, column)`` of character ``offset`` in ``content``."""

    line = content.count("\n", 0, offset) + 1
    line_start = content.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


class RegexFallbackAnalyzer:
    """Detect high-confidence problems with regular expressions.

    Rules run in table order and matching stops once ``max_issues`` issues
    have been collected for the file.
    """

    def __init__(
        self,
        *,
        max_issues: int = 50,
        rules: Sequence[FallbackRule] = DEFAULT_FALLBACK_RULES,
        encoding: str = "utf-8",
    ) -> None:
        self._max_issues = max_issues
        self._rules = tuple(rules)
        self._encoding = encoding

    @property
    def rule_count(self) -> int:
        return len(self._rules)

    def analyze(self, path: Path) -> list[Issue] | None:
        try:
            content = path.read_text(encoding=self._encoding, errors="replace")
        except OSError as exc:
            LOGGER.warning("Failed to read file for fallback analysis %s: %s", path, exc)
            return None
        issues: list[Issue] = []
        for rule in self._rules:
            for match in rule.pattern.finditer(content):
                if len(issues) >= self._max_issues:
                    LOGGER.debug("Reached maximum fallback issues (%d) for %s", self._max_issues, path)
                    return issues
                line, column = position_of(content, match.start())
                issues.append(
                    Issue(
                        rule_id=rule.rule_id,
                        severity=rule.severity,
                        message=rule.message,
                        locations=(
                            IssueLocation(
                                file=str(path),
                                line=line,
                                column=column,
                                message=rule.message,
                                expression=_truncate_evidence(match.group()),
                            ),
                        ),
                        category=FALLBACK_CATEGORY,
                    )
                )
        LOGGER.debug("Fallback analysis found %d issues in %s", len(issues), path)
        return issues


def write_temporary_artifact(original: Path, content: str, *, encoding: str = "utf-8") -> Path:
    """Write ``content`` to a fresh temporary file carrying ``original``'s suffix.

    Returns:
        Path: Location of the temporary file; the caller owns its deletion.
    """

    descriptor, name = tempfile.mkstemp(prefix=TEMPORARY_PREFIX, suffix=original.suffix)
    with os.fdopen(descriptor, "w", encoding=encoding) as handle:
        handle.write(content)
    return Path(name)


__all__ = [
    "CommandPreprocessor",
    "DEFAULT_FALLBACK_RULES",
    "FALLBACK_CATEGORY",
    "FallbackAnalyzer",
    "FallbackRule",
    "NullFallbackAnalyzer",
    "NullPreprocessor",
    "Preprocessor",
    "RegexFallbackAnalyzer",
    "TEMPORARY_PREFIX",
    "position_of",
    "write_temporary_artifact",
]
