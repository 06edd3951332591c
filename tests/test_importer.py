# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for streaming import of the result artifact."""

from __future__ import annotations

from pathlib import Path

import pytest

from lintwarden.config import ImportConfig
from lintwarden.exceptions import LintwardenError, ResultTooLargeError
from lintwarden.filesystem import ProjectFileSystem
from lintwarden.importer import ResultImporter
from lintwarden.includes import IncludeMapper, IncludeResolver
from lintwarden.severity import Severity
from lintwarden.sink import CollectingSink


def _importer(root: Path, **settings) -> tuple[ResultImporter, IncludeResolver]:
    fs = ProjectFileSystem(root)
    resolver = IncludeResolver(IncludeMapper(fs))
    return ResultImporter(fs, resolver, ImportConfig(**settings), repository="cflint"), resolver


def _artifact(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _include_project(root: Path, write_lines) -> Path:
    """Write a 3-line page including a 5-line file from its second line."""

    write_lines(root / "inc.cfm", 5, prefix="inc")
    page = root / "page.cfm"
    page.write_text('top\n<cfinclude template="inc.cfm">\nbottom\n', encoding="utf-8")
    return page


def test_direct_lines_are_reported_as_is(tmp_path: Path, write_lines, report_builder) -> None:
    page = write_lines(tmp_path / "page.cfm", 4)
    artifact = _artifact(tmp_path / "result.xml", report_builder([(str(page), 3, "AVOID_CFDUMP", "remove <cfdump>")]))
    importer, resolver = _importer(tmp_path)
    sink = CollectingSink()

    stats = importer.import_file(artifact, sink)

    [issue] = sink.issues
    assert (issue.file.path, issue.line, issue.message) == (page.resolve(), 3, "remove <cfdump>")
    assert str(issue.rule) == "cflint:AVOID_CFDUMP"
    assert issue.severity is Severity.WARNING
    assert (stats.counted_issues, stats.processed_issues, stats.created_issues) == (1, 1, 1)
    assert stats.resolved_issues == 0
    assert resolver.cache_size == 0


def test_virtual_lines_resolve_through_includes(tmp_path: Path, write_lines, report_builder) -> None:
    page = str(_include_project(tmp_path, write_lines))
    artifact = _artifact(
        tmp_path / "result.xml",
        report_builder([(page, 5, "R1", "in include"), (page, 7, "R2", "after include"), (page, 8, "R3", "beyond")]),
    )
    importer, _resolver = _importer(tmp_path)
    sink = CollectingSink()

    stats = importer.import_file(artifact, sink)

    located = [(issue.file.display_name, issue.line, issue.message) for issue in sink.issues]
    assert located == [
        ("inc.cfm", 4, "in include (from included file: inc.cfm)"),
        ("page.cfm", 3, "after include"),
    ]
    assert (stats.resolved_issues, stats.unresolved_issues, stats.dropped_issues) == (2, 1, 1)
    assert stats.virtual_lines_seen == 3


def test_only_first_location_is_reported(tmp_path: Path, write_lines) -> None:
    page = write_lines(tmp_path / "page.cfm", 5)
    artifact = _artifact(
        tmp_path / "result.xml",
        f"""<?xml version="1.0" encoding="utf-8" ?>
<issues version="1.0">
<!-- PARSING_ERROR: File=x.cfm, Error=boom, Type=UNKNOWN -->
<issue severity="CRITICAL" id="QUERYPARAM_REQ" message="use cfqueryparam">
  <location file="{page}" line="2" message=""/>
  <location file="{page}" line="4" message=""/>
  <location file="{page}" line="5" message=""/>
</issue>
</issues>
""",
    )
    importer, _resolver = _importer(tmp_path)
    sink = CollectingSink()

    stats = importer.import_file(artifact, sink)

    [issue] = sink.issues
    assert (issue.line, issue.message, issue.severity) == (2, "use cfqueryparam", Severity.ERROR)
    assert stats.discarded_locations == 2


def test_unusable_issues_are_counted_not_reported(tmp_path: Path, write_lines) -> None:
    page = write_lines(tmp_path / "page.cfm", 5)
    artifact = _artifact(
        tmp_path / "result.xml",
        f"""<?xml version="1.0" encoding="utf-8" ?>
<issues>
<issue id="R1"><location file="{tmp_path / 'gone.cfm'}" line="1"/></issue>
<issue id=""><location file="{page}" line="1"/></issue>
<issue id="R2"/>
<issue id="R3"><location file="{page}" line="0"/></issue>
<issue id="R4"><location file="{page}" line="two"/></issue>
<issue id="R5"><location file="page.cfm" line="1"/></issue>
</issues>
""",
    )
    importer, _resolver = _importer(tmp_path)
    sink = CollectingSink()

    stats = importer.import_file(artifact, sink)

    assert [(issue.rule.rule, issue.message) for issue in sink.issues] == [("R5", "Lint issue")]
    assert sink.issues[0].severity is None
    assert (stats.missing_files, stats.invalid_issues, stats.created_issues) == (1, 4, 1)


def test_byte_ceiling_rejects_before_parsing(tmp_path: Path) -> None:
    artifact = _artifact(tmp_path / "result.xml", "<issues>" + " " * 64 + "</issues")
    importer, _resolver = _importer(tmp_path, max_result_bytes=32)
    sink = CollectingSink()

    with pytest.raises(ResultTooLargeError, match="recursive include expansion") as excinfo:
        importer.import_file(artifact, sink)

    assert excinfo.value.limit == 32
    assert excinfo.value.observed == artifact.stat().st_size
    assert len(sink) == 0


def test_issue_ceiling_is_checked_before_import(tmp_path: Path, write_lines, report_builder) -> None:
    page = str(write_lines(tmp_path / "page.cfm", 3))
    artifact = _artifact(tmp_path / "result.xml", report_builder([(page, 1, "R1", "a"), (page, 2, "R2", "b")]))
    importer, _resolver = _importer(tmp_path, max_issues=1)
    sink = CollectingSink()

    with pytest.raises(ResultTooLargeError, match="contains 2 issues") as excinfo:
        importer.import_file(artifact, sink)

    assert excinfo.value.observed == 2
    assert len(sink) == 0


def test_issue_ceiling_without_counting_pass(tmp_path: Path, write_lines, report_builder) -> None:
    page = str(write_lines(tmp_path / "page.cfm", 3))
    artifact = _artifact(
        tmp_path / "result.xml",
        report_builder([(page, 1, "R1", "a"), (page, 2, "R2", "b"), (page, 3, "R3", "c")]),
    )
    importer, _resolver = _importer(tmp_path, max_issues=2, count_issues_first=False)
    sink = CollectingSink()

    with pytest.raises(ResultTooLargeError, match="while importing"):
        importer.import_file(artifact, sink)

    assert [issue.rule.rule for issue in sink.issues] == ["R1", "R2"]


def test_virtual_line_resolution_is_throttled(tmp_path: Path, write_lines, report_builder) -> None:
    page = str(_include_project(tmp_path, write_lines))
    entries = [(page, 4, f"R{index}", f"m{index}") for index in range(1, 6)]
    artifact = _artifact(tmp_path / "result.xml", report_builder(entries))
    importer, _resolver = _importer(tmp_path, resolution_warmup=1, resolution_stride=2)
    sink = CollectingSink()

    stats = importer.import_file(artifact, sink)

    assert [issue.rule.rule for issue in sink.issues] == ["R1", "R2", "R4"]
    assert (stats.throttled_issues, stats.resolved_issues) == (2, 3)


def test_malformed_artifact_raises(tmp_path: Path) -> None:
    artifact = _artifact(tmp_path / "result.xml", "<issues><issue id='R1'>")
    importer, _resolver = _importer(tmp_path, count_issues_first=False)

    with pytest.raises(LintwardenError, match="Malformed result artifact"):
        importer.import_file(artifact, CollectingSink())


def test_document_type_declarations_are_refused(tmp_path: Path) -> None:
    artifact = _artifact(
        tmp_path / "result.xml",
        '<?xml version="1.0"?>\n<!DOCTYPE issues [<!ENTITY x "boom">]>\n<issues>&x;</issues>\n',
    )
    importer, _resolver = _importer(tmp_path)

    with pytest.raises(LintwardenError, match="Malformed result artifact"):
        importer.import_file(artifact, CollectingSink())


def test_count_issues(tmp_path: Path, report_builder) -> None:
    artifact = _artifact(tmp_path / "result.xml", report_builder([("/x/a.cfm", 1, "R1", "a")] * 3))
    importer, _resolver = _importer(tmp_path)

    assert importer.count_issues(artifact) == 3
