# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build virtual-line maps for files that textually include other files.

The engine inlines every included file in place of its directive and reports
line numbers against the resulting concatenation. The mapper replays that
expansion: each ordinary line consumes one virtual line, while a directive
that resolves to a file is replaced by that file's content and consumes no
virtual line of its own. Directives that cannot be resolved stay ordinary
lines. Included content is recorded as contiguous, non-overlapping segments;
a nested include splits its parent into a segment before and a segment after
the nested content.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..filesystem import ProjectFileSystem
from ..models import IncludeLayout, IncludeMapping, SourceFile

LOGGER = logging.getLogger(__name__)

DEFAULT_DIRECTIVE_TAG: Final[str] = "cfinclude"
DEFAULT_INCLUDE_EXTENSIONS: Final[tuple[str, ...]] = (".cfm", ".cfc", ".cfml")
_DYNAMIC_TEMPLATE_MARKER: Final[str] = "#"


def build_directive_pattern(tag: str = DEFAULT_DIRECTIVE_TAG) -> re.Pattern[str]:
    """Return the case-insensitive pattern matching ``<tag template="path">``.

    Args:
        tag: Directive tag name.

    Returns:
        re.Pattern[str]: Compiled pattern capturing the template path in group 1.
    """

    return re.compile(
        rf"<{re.escape(tag)}\s+template\s*=\s*[\"']([^\"']+)[\"'][^>]*>",
        re.IGNORECASE,
    )


@dataclass(slots=True)
class _Expansion:
    """Mutable state threaded through one map construction."""

    mappings: list[IncludeMapping] = field(default_factory=list)
    root_directive_lines: list[int] = field(default_factory=list)
    cursor: int = 0


class IncludeMapper:
    """Walk include directives recursively and emit :class:`IncludeMapping` segments."""

    def __init__(
        self,
        fs: ProjectFileSystem,
        *,
        directive_tag: str = DEFAULT_DIRECTIVE_TAG,
        extensions: Sequence[str] = DEFAULT_INCLUDE_EXTENSIONS,
    ) -> None:
        self._fs = fs
        self._pattern = build_directive_pattern(directive_tag)
        self._extensions = tuple(extensions)

    def build_layout(self, root: SourceFile) -> IncludeLayout:
        """Return the expanded layout of ``root``.

        Args:
            root: File whose include directives should be expanded.

        Returns:
            IncludeLayout: Included segments in discovery order, the root's
            resolved directive lines and the expanded length. Empty when the
            file cannot be read.
        """

        try:
            lines = root.lines()
        except OSError as exc:
            LOGGER.error("Failed to build include map for %s: %s", root.display_name, exc)
            return IncludeLayout()
        expansion = _Expansion()
        self._walk(root, lines, expansion, stack=(root.key,), directive=None)
        return IncludeLayout(
            mappings=tuple(expansion.mappings),
            root_directive_lines=tuple(expansion.root_directive_lines),
            total_lines=expansion.cursor,
        )

    def build_map(self, root: SourceFile) -> list[IncludeMapping]:
        """Return the include mappings for ``root`` in discovery order."""

        return list(self.build_layout(root).mappings)

    def has_directives(self, file: SourceFile) -> bool:
        """Return ``True`` when ``file`` contains at least one include directive."""

        try:
            return self._pattern.search(file.contents()) is not None
        except OSError:
            return False

    def total_virtual_lines(self, root: SourceFile) -> int:
        """Return the length of the fully expanded virtual file for ``root``."""

        return self.build_layout(root).total_lines

    def resolve_template(self, including: SourceFile, template: str) -> SourceFile | None:
        """Resolve ``template`` as written in ``including`` to a real file.

        Absolute templates resolve against the project root, relative ones
        against the including file's directory. When the literal path does
        not exist, each known source extension is tried in turn.

        Args:
            including: File containing the directive.
            template: Template path captured from the directive.

        Returns:
            SourceFile | None: Included file, or ``None`` when it cannot be found.
        """

        if template.startswith("/"):
            base = self._fs.root / template.lstrip("/")
        else:
            base = including.path.parent / template
        resolved = self._fs.input_file(base)
        if resolved is not None:
            return resolved
        for extension in self._extensions:
            if template.lower().endswith(extension):
                continue
            resolved = self._fs.input_file(Path(f"{base}{extension}"))
            if resolved is not None:
                return resolved
        return None

    def _walk(
        self,
        file: SourceFile,
        lines: Sequence[str],
        expansion: _Expansion,
        *,
        stack: tuple[str, ...],
        directive: str | None,
    ) -> None:
        """Expand ``file`` into ``expansion`` starting at the current cursor.

        Args:
            file: File being expanded.
            lines: Physical lines of ``file``.
            expansion: Shared state receiving mappings and the advancing cursor.
            stack: Identities of files currently being expanded.
            directive: Template text that pulled ``file`` in; ``None`` for the root.
        """

        segment_start_virtual = expansion.cursor + 1
        segment_start_line = 1
        for index, line in enumerate(lines, start=1):
            included = self._included(file, index, line, stack)
            if included is None:
                expansion.cursor += 1
                continue
            child, template, child_lines = included
            if directive is None:
                expansion.root_directive_lines.append(index)
            else:
                self._close_segment(file, expansion, segment_start_virtual, segment_start_line, directive)
            self._walk(child, child_lines, expansion, stack=(*stack, child.key), directive=template)
            segment_start_virtual = expansion.cursor + 1
            segment_start_line = index + 1
        if directive is not None:
            self._close_segment(file, expansion, segment_start_virtual, segment_start_line, directive)

    def _included(
        self, file: SourceFile, index: int, line: str, stack: tuple[str, ...]
    ) -> tuple[SourceFile, str, Sequence[str]] | None:
        """Return the file pulled in by a directive on ``line``, or ``None`` for an ordinary line."""

        match = self._pattern.search(line)
        if match is None:
            return None
        template = match.group(1).strip()
        if not template or _DYNAMIC_TEMPLATE_MARKER in template:
            return None
        child = self.resolve_template(file, template)
        if child is None:
            LOGGER.debug("Could not resolve include template '%s' in %s", template, file.display_name)
            return None
        if child.key in stack:
            LOGGER.debug("Circular include detected: %s -> %s", " -> ".join(stack), child.key)
            return None
        try:
            child_lines = child.lines()
        except OSError as exc:
            LOGGER.warning("Failed to read included file %s: %s", child.display_name, exc)
            return None
        LOGGER.debug("Found include at line %d in %s: template=%s", index, file.display_name, template)
        return child, template, child_lines

    @staticmethod
    def _close_segment(
        file: SourceFile,
        expansion: _Expansion,
        start_virtual: int,
        start_line: int,
        directive: str,
    ) -> None:
        """Record the segment of ``file`` ending at the current cursor, if non-empty."""

        if expansion.cursor < start_virtual:
            return
        expansion.mappings.append(
            IncludeMapping(
                virtual_start=start_virtual,
                virtual_end=expansion.cursor,
                target=file,
                target_start_line=start_line,
                directive=directive,
            )
        )


__all__ = [
    "DEFAULT_DIRECTIVE_TAG",
    "DEFAULT_INCLUDE_EXTENSIONS",
    "IncludeMapper",
    "build_directive_pattern",
]
