# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for preprocessing and regex fallback strategies."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from lintwarden import strategies
from lintwarden.exceptions import LintwardenError
from lintwarden.strategies import (
    DEFAULT_FALLBACK_RULES,
    FALLBACK_CATEGORY,
    MAX_EVIDENCE_LENGTH,
    TEMPORARY_PREFIX,
    CommandPreprocessor,
    FallbackAnalyzer,
    NullFallbackAnalyzer,
    NullPreprocessor,
    Preprocessor,
    RegexFallbackAnalyzer,
    position_of,
    write_temporary_artifact,
)

SAMPLE = """<cfquery name="q" datasource="main">
SELECT * FROM users WHERE id = #url.id#
</cfquery>
<cfoutput>#form.name#</cfoutput>
<cfdump var="#q#">
"""


def test_default_rule_table() -> None:
    assert len(DEFAULT_FALLBACK_RULES) == 10
    assert len({rule.rule_id for rule in DEFAULT_FALLBACK_RULES}) == 10
    assert RegexFallbackAnalyzer().rule_count == 10


def test_regex_fallback_reports_positions(tmp_path: Path) -> None:
    source = tmp_path / "page.cfm"
    source.write_text(SAMPLE, encoding="utf-8")

    issues = RegexFallbackAnalyzer().analyze(source)

    assert issues is not None
    assert [issue.rule_id for issue in issues] == [
        "CF_SQL_INJECTION_RISK",
        "CF_XSS_OUTPUT_RISK",
        "CF_XSS_OUTPUT_RISK",
        "CF_HARDCODED_DATASOURCE",
        "CF_MISSING_QUERYPARAM",
        "CF_DEBUG_OUTPUT",
        "CF_MISSING_ERROR_HANDLING",
    ]
    assert all(issue.category == FALLBACK_CATEGORY for issue in issues)
    xss = issues[1].locations[0]
    assert (xss.file, xss.line, xss.column, xss.expression) == (str(source), 2, 32, "#url.id#")
    assert issues[5].locations[0].line == 5
    assert issues[0].severity == "CRITICAL"


def test_regex_fallback_caps_issue_count(tmp_path: Path) -> None:
    source = tmp_path / "page.cfm"
    source.write_text(SAMPLE, encoding="utf-8")

    issues = RegexFallbackAnalyzer(max_issues=2).analyze(source)

    assert issues is not None
    assert [issue.rule_id for issue in issues] == ["CF_SQL_INJECTION_RISK", "CF_XSS_OUTPUT_RISK"]
    assert RegexFallbackAnalyzer(max_issues=0).analyze(source) == []


def test_regex_fallback_truncates_evidence(tmp_path: Path) -> None:
    source = tmp_path / "long.cfm"
    source.write_text("<cfset x = #" + "a" * 150 + "#>\n", encoding="utf-8")

    issues = RegexFallbackAnalyzer().analyze(source)

    assert issues is not None
    [issue] = issues
    evidence = issue.locations[0].expression
    assert issue.rule_id == "CF_COMPLEX_EXPRESSION"
    assert len(evidence) == MAX_EVIDENCE_LENGTH
    assert evidence.endswith("...")


def test_regex_fallback_returns_none_for_unreadable_file(tmp_path: Path) -> None:
    assert RegexFallbackAnalyzer().analyze(tmp_path / "missing.cfm") is None
    assert NullFallbackAnalyzer().analyze(tmp_path / "missing.cfm") is None


def test_position_of() -> None:
    assert position_of("ab\ncd", 0) == (1, 1)
    assert position_of("ab\ncd", 4) == (2, 2)


def test_strategies_satisfy_protocols() -> None:
    assert isinstance(NullPreprocessor(), Preprocessor)
    assert isinstance(CommandPreprocessor(["tidy"]), Preprocessor)
    assert isinstance(RegexFallbackAnalyzer(), FallbackAnalyzer)
    assert isinstance(NullFallbackAnalyzer(), FallbackAnalyzer)


def test_null_preprocessor_returns_content(tmp_path: Path) -> None:
    source = tmp_path / "a.cfm"
    source.write_text("<cfset x = 1>\n", encoding="utf-8")

    assert NullPreprocessor().transform(source) == "<cfset x = 1>\n"


def test_command_preprocessor(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: list[list[str]] = []

    def fake_run(args, *, options=None):
        seen.append(list(args))
        if args[-1].endswith("bad.cfm"):
            return subprocess.CompletedProcess(args, 3, stdout="", stderr="warn\nparse failure\n")
        return subprocess.CompletedProcess(args, 0, stdout="<html>fixed</html>", stderr="")

    monkeypatch.setattr(strategies, "run_command", fake_run)
    preprocessor = CommandPreprocessor(["tidy", "-q"], timeout=4)

    assert preprocessor.transform(tmp_path / "good.cfm") == "<html>fixed</html>"
    with pytest.raises(LintwardenError, match="Preprocessor failed for bad.cfm: warn\nparse failure"):
        preprocessor.transform(tmp_path / "bad.cfm")
    assert seen[0] == ["tidy", "-q", str(tmp_path / "good.cfm")]
    with pytest.raises(ValueError):
        CommandPreprocessor([])


def test_write_temporary_artifact_keeps_suffix(tmp_path: Path) -> None:
    temporary = write_temporary_artifact(tmp_path / "page.cfc", "component {}\n")
    try:
        assert temporary.name.startswith(TEMPORARY_PREFIX)
        assert temporary.suffix == ".cfc"
        assert temporary.read_text(encoding="utf-8") == "component {}\n"
    finally:
        temporary.unlink()
