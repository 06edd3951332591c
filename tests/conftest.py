# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from html import escape
from pathlib import Path

import pytest

HANG = "hang"
OK = "ok"
EMPTY = "empty"

Behaviour = str | BaseException


def build_report(entries: Sequence[tuple[str, int, str, str]]) -> str:
    """Return an engine-style XML report for ``(file, line, rule, message)`` entries."""

    body = "".join(
        f'<issue severity="WARNING" id="{rule}" message="{escape(message)}" category="CFLINT" abbrev="{rule}">\n'
        f'<location file="{escape(file)}" fileName="{escape(Path(file).name)}" function="" column="1" '
        f'line="{line}" message="{escape(message)}" variable=""><Expression><![CDATA[x]]></Expression></location>\n'
        "</issue>\n"
        for file, line, rule, message in entries
    )
    return f'<?xml version="1.0" encoding="UTF-8" ?>\n<issues version="1.0">\n{body}</issues>\n'


class ScriptedEngine:
    """Lint engine double whose behaviour is scripted per file name.

    Behaviours: ``"ok"`` reports one ``R1`` issue on line 1, ``"empty"``
    reports nothing, ``"hang"`` blocks until released, an exception
    instance is raised, and any other string is returned verbatim.
    """

    def __init__(
        self,
        behaviours: Mapping[str, Behaviour] | None = None,
        *,
        batch: Behaviour | None = None,
        default: Behaviour = OK,
    ) -> None:
        self.behaviours = dict(behaviours or {})
        self.batch = batch
        self.default = default
        self.calls: list[list[str]] = []
        self.release = threading.Event()
        self._lock = threading.Lock()

    def scan(self, paths: Sequence[str], *, timeout: float | None = None) -> str:
        with self._lock:
            self.calls.append(list(paths))
        if len(paths) > 1 and self.batch is not None:
            if isinstance(self.batch, BaseException):
                raise self.batch
            if isinstance(self.batch, str):
                return self.batch
        entries: list[tuple[str, int, str, str]] = []
        for path in paths:
            behaviour = self.behaviours.get(Path(path).name, self.default)
            if isinstance(behaviour, BaseException):
                raise behaviour
            if behaviour == HANG:
                self.release.wait(5)
                raise RuntimeError("released after hang")
            if behaviour == OK:
                entries.append((path, 1, "R1", f"issue in {Path(path).name}"))
            elif behaviour != EMPTY:
                return behaviour
        return build_report(entries)

    @property
    def scanned_names(self) -> list[str]:
        return [Path(path).name for call in self.calls for path in call]


@pytest.fixture
def engine_factory() -> Iterator[Callable[..., ScriptedEngine]]:
    """Yield a factory for scripted engines; hung calls are released on teardown."""

    created: list[ScriptedEngine] = []

    def factory(*args: object, **kwargs: object) -> ScriptedEngine:
        engine = ScriptedEngine(*args, **kwargs)  # type: ignore[arg-type]
        created.append(engine)
        return engine

    yield factory
    for engine in created:
        engine.release.set()


@pytest.fixture
def report_builder() -> Callable[[Sequence[tuple[str, int, str, str]]], str]:
    return build_report


@pytest.fixture
def write_lines() -> Callable[[Path, int, str], Path]:
    """Return a helper writing ``count`` numbered lines to ``path``."""

    def writer(path: Path, count: int, prefix: str = "line") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{prefix} {index}\n" for index in range(1, count + 1)), encoding="utf-8")
        return path

    return writer
