# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project file-system abstraction handing out shared :class:`SourceFile` handles."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from threading import Lock
from typing import Final

from .models import SourceFile

DEFAULT_EXCLUDED_DIRS: Final[frozenset[str]] = frozenset(
    {".git", ".hg", ".svn", ".lintwarden", "node_modules", ".venv", "build", "dist"}
)


class ProjectFileSystem:
    """Resolve paths inside a project root to cached :class:`SourceFile` objects."""

    def __init__(
        self,
        root: Path,
        *,
        suffixes: Sequence[str] = (".cfm", ".cfc"),
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        encoding: str = "utf-8",
    ) -> None:
        """Initialise the file system view.

        Args:
            root: Project root directory; absolute include paths resolve against it.
            suffixes: File suffixes treated as analysable sources.
            excluded_dirs: Directory names skipped during discovery.
            encoding: Text encoding used when reading sources.
        """

        self.root = root.resolve()
        self._suffixes = tuple(suffix.lower() for suffix in suffixes if suffix)
        self._excluded = frozenset(excluded_dirs)
        self._encoding = encoding
        self._files: dict[Path, SourceFile] = {}
        self._lock = Lock()

    def input_file(self, path: Path | str) -> SourceFile | None:
        """Return the handle for ``path`` when it names an existing regular file.

        Args:
            path: Absolute path, or a path relative to the project root.

        Returns:
            SourceFile | None: Shared handle, or ``None`` when the file does not exist.
        """

        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError):
            return None
        with self._lock:
            cached = self._files.get(resolved)
        if cached is not None:
            return cached
        if not resolved.is_file():
            return None
        with self._lock:
            return self._files.setdefault(resolved, SourceFile(resolved, encoding=self._encoding))

    def source_files(self) -> list[SourceFile]:
        """Return every analysable source below the root, sorted by path."""

        discovered: list[SourceFile] = []
        for directory, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(name for name in dirnames if name not in self._excluded)
            for filename in sorted(filenames):
                if self._suffixes and Path(filename).suffix.lower() not in self._suffixes:
                    continue
                handle = self.input_file(Path(directory) / filename)
                if handle is not None:
                    discovered.append(handle)
        return discovered

    def relative_display(self, file: SourceFile) -> str:
        """Return ``file`` relative to the root when possible."""

        try:
            return file.path.relative_to(self.root).as_posix()
        except ValueError:
            return str(file.path)


__all__ = ["DEFAULT_EXCLUDED_DIRS", "ProjectFileSystem"]
