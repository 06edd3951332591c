# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the subprocess-backed lint engine adapter."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from lintwarden import engine as engine_module
from lintwarden.config import EngineConfig
from lintwarden.engine import CommandLintEngine, LintEngine
from lintwarden.exceptions import EngineError
from lintwarden.process import TIMEOUT_RETURNCODE


def test_build_command_joins_files_with_separator() -> None:
    engine = CommandLintEngine(EngineConfig(config_file=Path("rules.json")))

    command = engine.build_command(["/p/a.cfm", "/p/b.cfm"])

    assert command == ["cflint", "-q", "-xml", "-stdout", "-configfile", "rules.json", "-file", "/p/a.cfm,/p/b.cfm"]


def test_build_command_repeats_flag_without_separator() -> None:
    engine = CommandLintEngine(EngineConfig(command=["lint"], arguments=[], file_flag="--file", file_separator=None))

    assert engine.build_command(["a", "b"]) == ["lint", "--file", "a", "--file", "b"]


def test_build_command_positional_files() -> None:
    engine = CommandLintEngine(EngineConfig(command=["lint"], arguments=["--xml"], file_flag=None))

    assert engine.build_command(["a", "b"]) == ["lint", "--xml", "a", "b"]


def test_engine_satisfies_protocol() -> None:
    assert isinstance(CommandLintEngine(EngineConfig()), LintEngine)


def _patch_run(monkeypatch: pytest.MonkeyPatch, returncode: int, stdout: str, stderr: str = "") -> list[object]:
    seen: list[object] = []

    def fake_run(args, *, options=None):
        seen.append((list(args), options))
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)

    monkeypatch.setattr(engine_module, "run_command", fake_run)
    return seen


def test_scan_returns_report(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, report_builder) -> None:
    report = report_builder([("/p/a.cfm", 1, "R1", "one")])
    seen = _patch_run(monkeypatch, 1, report)
    engine = CommandLintEngine(EngineConfig(timeout=9), cwd=tmp_path)

    assert engine.scan(["/p/a.cfm"], timeout=3) == report
    _args, options = seen[0]
    assert options.timeout == 3
    assert options.cwd == tmp_path

    engine.scan(["/p/a.cfm"])
    assert seen[1][1].timeout == 9


def test_scan_without_report_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_run(monkeypatch, 2, "", "line one\nUnclosed tag <cfif>\n")

    with pytest.raises(EngineError, match="Unclosed tag") as excinfo:
        CommandLintEngine(EngineConfig()).scan(["/p/a.cfm"])

    assert excinfo.value.returncode == 2
    assert excinfo.value.stderr == "line one\nUnclosed tag <cfif>"


def test_scan_timeout_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_run(monkeypatch, TIMEOUT_RETURNCODE, "", "Command timed out after 2.0s")

    with pytest.raises(EngineError, match="Engine timed out after 2s"):
        CommandLintEngine(EngineConfig()).scan(["/p/a.cfm"], timeout=2)


def test_scan_missing_executable(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(args, *, options=None):
        raise FileNotFoundError("Executable 'cflint' was not found on PATH")

    monkeypatch.setattr(engine_module, "run_command", missing)

    with pytest.raises(EngineError, match="Engine executable not found"):
        CommandLintEngine(EngineConfig()).scan(["/p/a.cfm"])
