# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Read and write the intermediate XML result artifact."""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType
from typing import Final, TextIO

from .models import Issue

ROOT_TAG: Final[str] = "issues"
ARTIFACT_VERSION: Final[str] = "1.0"
FALLBACK_MARKER: Final[str] = "FALLBACK_ANALYSIS_RESULTS"
ANALYSIS_TIMEOUT: Final[str] = "ANALYSIS_TIMEOUT"
CIRCUIT_BREAKER_TRIGGERED: Final[str] = "CIRCUIT_BREAKER_TRIGGERED"
_ISSUE_START: Final[re.Pattern[str]] = re.compile(r"<issue[\s>/]")
_ISSUE_END: Final[str] = "</issue>"
_NON_XML_CHARS: Final[re.Pattern[str]] = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def xml_declaration(encoding: str = "utf-8") -> str:
    """Return the XML declaration written at the top of every artifact."""

    return f'<?xml version="1.0" encoding="{encoding}" ?>\n'


def xml_safe(text: str, replacement: str = "?") -> str:
    """Return ``text`` with every character XML 1.0 forbids replaced.

    Engine diagnostics often carry terminal escapes or other control
    characters; a single one would make the whole artifact unparseable.
    """

    return _NON_XML_CHARS.sub(replacement, text)


def comment_safe(text: str) -> str:
    """Return ``text`` made safe for use inside an XML comment."""

    safe = xml_safe(text)
    while "--" in safe:
        safe = safe.replace("--", "- -")
    return safe.rstrip("-")


def _attr(value: object) -> str:
    return html.escape(xml_safe(str(value)), quote=True)


def _cdata(text: str) -> str:
    return "<![CDATA[" + xml_safe(text).replace("]]>", "]]]]><![CDATA[>") + "]]>"


def render_issues(issues: Iterable[Issue]) -> str:
    """Render ``issues`` as ``<issue>`` elements in the engine's report schema."""

    parts: list[str] = []
    for issue in issues:
        parts.append(
            f'<issue severity="{_attr(issue.severity)}" id="{_attr(issue.rule_id)}" '
            f'message="{_attr(issue.message)}" category="{_attr(issue.category)}" abbrev="{_attr(issue.rule_id)}">\n'
        )
        for location in issue.locations:
            parts.append(
                f'  <location file="{_attr(location.file)}" fileName="{_attr(Path(location.file).name)}" '
                f'function="" column="{location.column}" line="{location.line}" '
                f'message="{_attr(location.message)}" variable="">\n'
                f"    <Expression>{_cdata(location.expression)}</Expression>\n"
                "  </location>\n"
            )
        parts.append("</issue>\n")
    return "".join(parts)


def extract_issue_fragment(document: str) -> str:
    """Return the span from the first ``<issue>`` to the last ``</issue>`` of ``document``.

    The XML declaration and the wrapping root element are dropped so the
    fragment can be embedded in a combined artifact. An empty string is
    returned when the document contains no issues.
    """

    match = _ISSUE_START.search(document)
    end = document.rfind(_ISSUE_END)
    if match is None or end < match.start():
        return ""
    return document[match.start() : end + len(_ISSUE_END)]


def rewrite_paths(fragment: str, temporary: Path | str, original: Path | str) -> str:
    """Replace every reference to ``temporary`` in ``fragment`` with ``original``."""

    temp_text, original_text = str(temporary), str(original)
    rewritten = fragment.replace(temp_text, original_text)
    escaped_temp = html.escape(temp_text, quote=True)
    if escaped_temp != temp_text:
        rewritten = rewritten.replace(escaped_temp, html.escape(original_text, quote=True))
    return rewritten


def write_report(path: Path, document: str, *, encoding: str = "utf-8") -> None:
    """Store an engine-produced report verbatim at ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document, encoding=encoding)


class ResultArtifactWriter:
    """Incrementally assemble a combined artifact from per-file results.

    Use as a context manager; the root element is closed on exit even when
    the body raises, so a partially written run still yields a well-formed
    document.
    """

    def __init__(self, path: Path, *, encoding: str = "utf-8") -> None:
        self.path = path
        self._encoding = encoding
        self._handle: TextIO | None = None

    def __enter__(self) -> ResultArtifactWriter:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        """Create the artifact and write the declaration plus the opening root tag."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("w", encoding=self._encoding)
        self._handle.write(xml_declaration(self._encoding))
        self._handle.write(f'<{ROOT_TAG} version="{ARTIFACT_VERSION}">\n')

    def close(self) -> None:
        """Close the root element and the underlying file."""

        if self._handle is None:
            return
        try:
            self._handle.write(f"</{ROOT_TAG}>\n")
        finally:
            self._handle.close()
            self._handle = None

    def _write(self, text: str) -> None:
        if self._handle is None:
            raise RuntimeError("artifact writer is not open")
        self._handle.write(text)

    def write_fragment(self, fragment: str) -> None:
        """Append issue elements extracted from an engine report."""

        if fragment.strip():
            fragment = xml_safe(fragment)
            self._write(fragment if fragment.endswith("\n") else fragment + "\n")

    def write_fallback(self, issues: Iterable[Issue]) -> int:
        """Append degraded results preceded by the fallback marker.

        Returns:
            int: Number of issues written.
        """

        materialised = list(issues)
        if materialised:
            self._write(f"<!-- {FALLBACK_MARKER} -->\n")
            self._write(render_issues(materialised))
        return len(materialised)

    def parsing_error(self, file: str, message: str, error_type: str) -> None:
        """Record that ``file`` could not be analysed."""

        self._write(
            f"<!-- PARSING_ERROR: File={comment_safe(file)}, Error={comment_safe(message)}, "
            f"Type={comment_safe(error_type)} -->\n"
        )

    def timeout(self, file: str, kind: str, timeout: float, consecutive: int) -> None:
        """Record that the analysis of ``file`` exceeded its deadline."""

        self._write(
            f"<!-- TIMEOUT: File={comment_safe(file)}, Type={kind}, Timeout={timeout:g}s, "
            f"ConsecutiveTimeouts={consecutive} -->\n"
        )


__all__ = [
    "ANALYSIS_TIMEOUT",
    "ARTIFACT_VERSION",
    "CIRCUIT_BREAKER_TRIGGERED",
    "FALLBACK_MARKER",
    "ROOT_TAG",
    "ResultArtifactWriter",
    "comment_safe",
    "extract_issue_fragment",
    "render_issues",
    "rewrite_paths",
    "write_report",
    "xml_declaration",
    "xml_safe",
]
