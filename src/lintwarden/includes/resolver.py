# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate virtual line numbers back to real files and lines."""

from __future__ import annotations

import logging
from threading import Lock

from ..models import IncludeLayout, IncludeMapping, ResolvedLocation, SourceFile
from .mapper import IncludeMapper

LOGGER = logging.getLogger(__name__)


class IncludeResolver:
    """Resolve virtual lines using lazily built, per-file include maps.

    Maps are constructed at most once per file identity, even when queried
    from several threads, and live until :meth:`clear_cache` is called.
    """

    def __init__(self, mapper: IncludeMapper) -> None:
        self._mapper = mapper
        self._cache: dict[str, IncludeLayout] = {}
        self._key_locks: dict[str, Lock] = {}
        self._lock = Lock()

    def layout(self, root: SourceFile) -> IncludeLayout:
        """Return the cached expanded layout of ``root``, building it on first use."""

        key = root.key
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            key_lock = self._key_locks.setdefault(key, Lock())
        with key_lock:
            with self._lock:
                cached = self._cache.get(key)
            if cached is not None:
                return cached
            LOGGER.debug("Building include mappings for %s", root.display_name)
            layout = self._mapper.build_layout(root)
            if layout.mappings:
                LOGGER.debug("Built %d include mappings for %s", len(layout.mappings), root.display_name)
            with self._lock:
                self._cache[key] = layout
                self._key_locks.pop(key, None)
            return layout

    def include_map(self, root: SourceFile) -> tuple[IncludeMapping, ...]:
        """Return the cached include map for ``root``, building it on first use.

        Args:
            root: File whose include map is requested.

        Returns:
            tuple[IncludeMapping, ...]: Include segments in virtual-line order.
        """

        return self.layout(root).mappings

    def resolve(self, root: SourceFile, virtual_line: int) -> ResolvedLocation | None:
        """Return the real location of ``virtual_line`` reported against ``root``.

        Lines inside an included segment resolve to the included file. Lines
        between or after included segments belong to ``root`` itself: they are
        shifted back by the amount of included content preceding them and
        forward past the directive lines that content replaced.

        Args:
            root: File the engine reported the issue against.
            virtual_line: 1-based line number in the expanded virtual file.

        Returns:
            ResolvedLocation | None: Real location, or ``None`` when the line is
            outside the expanded file.
        """

        if virtual_line < 1:
            return None
        if virtual_line <= root.line_count and not self._mapper.has_directives(root):
            return ResolvedLocation(root, virtual_line, was_included=False)
        layout = self.layout(root)
        if virtual_line > layout.total_lines:
            return self._not_found(root, virtual_line, layout.mappings)

        preceding = 0
        for mapping in layout.mappings:
            if mapping.contains(virtual_line):
                actual = mapping.actual_line(virtual_line)
                LOGGER.debug(
                    "Resolved virtual line %d in %s to line %d in %s",
                    virtual_line,
                    root.display_name,
                    actual,
                    mapping.target.display_name,
                )
                return ResolvedLocation(mapping.target, actual, was_included=True, directive=mapping.directive)
            if mapping.virtual_end < virtual_line:
                preceding += mapping.length

        root_line = layout.root_line(virtual_line - preceding)
        if 1 <= root_line <= root.line_count:
            return ResolvedLocation(root, root_line, was_included=False)
        return self._not_found(root, virtual_line, layout.mappings)

    def clear_cache(self) -> None:
        """Drop every cached include map."""

        with self._lock:
            self._cache.clear()
        LOGGER.debug("Include cache cleared")

    @property
    def cache_size(self) -> int:
        """Return the number of cached include maps."""

        with self._lock:
            return len(self._cache)

    @staticmethod
    def _not_found(root: SourceFile, virtual_line: int, mappings: tuple[IncludeMapping, ...]) -> None:
        LOGGER.debug(
            "Could not resolve virtual line %d in %s (file has %d lines, %d include mappings)",
            virtual_line,
            root.display_name,
            root.line_count,
            len(mappings),
        )


__all__ = ["IncludeResolver"]
