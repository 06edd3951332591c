# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the Typer command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lintwarden import pipeline
from lintwarden.cli.app import app
from lintwarden.cli.shared import EXIT_CLEAN, EXIT_FAILURE, EXIT_ISSUES, collect_properties, split_command

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, write_lines) -> Path:
    write_lines(tmp_path / "inc.cfm", 5, prefix="inc")
    (tmp_path / "page.cfm").write_text('top\n<cfinclude template="inc.cfm">\nbottom\n', encoding="utf-8")
    return tmp_path


@pytest.fixture
def install_engine(monkeypatch: pytest.MonkeyPatch, engine_factory):
    def install(*args, **kwargs):
        engine = engine_factory(*args, **kwargs)
        monkeypatch.setattr(pipeline, "CommandLintEngine", lambda config, cwd=None: engine)
        return engine

    return install


def test_analyze_json_output(project: Path, install_engine) -> None:
    install_engine({"inc.cfm": "empty"})

    result = runner.invoke(app, ["analyze", str(project), "--format", "json", "--quiet", "--no-emoji"])

    assert result.exit_code == EXIT_ISSUES
    payload = json.loads(result.stdout)
    assert payload["run"]["mode"] == "lenient"
    assert payload["run"]["successful_files"] == 2
    assert payload["run"]["stopped_early"] is False
    assert payload["issues"] == [
        {"file": "page.cfm", "line": 1, "rule": "cflint:R1", "severity": "warning", "message": "issue in page.cfm"}
    ]
    assert payload["import"]["created_issues"] == 1


def test_analyze_table_output_clean_run(project: Path, install_engine) -> None:
    engine = install_engine(default="empty")

    result = runner.invoke(app, ["analyze", str(project), "--no-emoji", "--no-color", "--mode", "strict"])

    assert result.exit_code == EXIT_CLEAN
    assert len(engine.calls) == 1
    assert "No issues reported" in result.stdout
    assert "Success rate" in result.stdout


def test_analyze_reports_stop_after_failure(project: Path, install_engine) -> None:
    engine = install_engine({"inc.cfm": RuntimeError("boom")})

    result = runner.invoke(
        app,
        ["analyze", str(project), "--no-emoji", "--no-color", "--set", "parsing.skip_malformed_files=false"],
    )

    assert result.exit_code == EXIT_CLEAN
    assert engine.scanned_names == ["inc.cfm"]
    assert "Stopped on failure" in result.stdout
    assert "Stopped after the first failing file" in result.stdout


def test_analyze_rejects_invalid_mode(project: Path, install_engine) -> None:
    engine = install_engine()

    result = runner.invoke(app, ["analyze", str(project), "--mode", "chaotic", "--no-emoji"])

    assert result.exit_code == EXIT_FAILURE
    assert engine.calls == []


def test_analyze_rejects_missing_config_file(project: Path, install_engine) -> None:
    install_engine()

    result = runner.invoke(app, ["analyze", str(project), "--config", str(project / "absent.toml")])

    assert result.exit_code == EXIT_FAILURE
    assert "does not exist" in result.stdout


def test_analyze_reports_strict_failure(project: Path, install_engine) -> None:
    install_engine(batch=RuntimeError("batch exploded"))

    result = runner.invoke(app, ["analyze", str(project), "--mode", "strict", "--no-emoji", "--quiet"])

    assert result.exit_code == EXIT_FAILURE
    assert "Analysis failed" in result.stdout


def test_resolve_included_line(project: Path) -> None:
    result = runner.invoke(app, ["resolve", str(project / "page.cfm"), "5", "--root", str(project), "--no-emoji"])

    assert result.exit_code == EXIT_CLEAN
    assert result.stdout.strip() == "inc.cfm:4 (from included file: inc.cfm)"


def test_resolve_with_map_and_unresolvable_line(project: Path) -> None:
    result = runner.invoke(
        app,
        ["resolve", str(project / "page.cfm"), "99", "--root", str(project), "--show-map", "--no-emoji"],
    )

    assert result.exit_code == EXIT_ISSUES
    assert "2-6" in result.stdout
    assert "could not be resolved" in result.stdout


def test_resolve_missing_file(project: Path) -> None:
    result = runner.invoke(app, ["resolve", str(project / "nope.cfm"), "1", "--root", str(project), "--no-emoji"])

    assert result.exit_code == EXIT_FAILURE


def test_config_command_prints_effective_configuration(project: Path) -> None:
    (project / ".lintwarden.toml").write_text("[parsing]\nfile_timeout = 7\n", encoding="utf-8")

    result = runner.invoke(app, ["config", "--root", str(project), "--set", "parsing.mode=fragment"])

    assert result.exit_code == EXIT_CLEAN
    payload = json.loads(result.stdout)
    assert payload["parsing"]["mode"] == "fragment"
    assert payload["parsing"]["file_timeout"] == 7.0


def test_config_command_rejects_bad_property(project: Path) -> None:
    result = runner.invoke(app, ["config", "--root", str(project), "--set", "parsing.unknown=1"])

    assert result.exit_code == EXIT_FAILURE


def test_collect_properties_prefers_explicit_options() -> None:
    properties = collect_properties(["parsing.mode=strict", "parsing.file_timeout=3"], {"parsing.mode": "fragment"})

    assert properties == {"parsing.mode": "fragment", "parsing.file_timeout": "3"}
    assert split_command("java -jar 'cf lint.jar'") == ["java", "-jar", "cf lint.jar"]
    assert split_command(None) is None
