# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Wire discovery, orchestration and import into one analysis run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .collector import ParsingErrorCollector
from .config.models import Config
from .engine import CommandLintEngine, LintEngine
from .filesystem import DEFAULT_EXCLUDED_DIRS, ProjectFileSystem
from .importer import ImportStats, ResultImporter
from .includes import IncludeMapper, IncludeResolver
from .orchestration import AnalysisOrchestrator, RunReport
from .sink import IssueSink
from .strategies import (
    CommandPreprocessor,
    FallbackAnalyzer,
    Preprocessor,
    RegexFallbackAnalyzer,
)

LOGGER = logging.getLogger(__name__)

RESULT_ARTIFACT_NAME: Final[str] = "lint-result.xml"


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """Combined result of orchestration and import."""

    report: RunReport
    imported: ImportStats
    fs: ProjectFileSystem


def build_file_system(root: Path, config: Config) -> ProjectFileSystem:
    """Return the file-system view configured for ``root``."""

    return ProjectFileSystem(
        root,
        suffixes=config.file_suffixes,
        excluded_dirs=DEFAULT_EXCLUDED_DIRS | set(config.excluded_dirs),
        encoding=config.encoding,
    )


def build_resolver(fs: ProjectFileSystem, config: Config) -> IncludeResolver:
    """Return an include resolver honouring the configured directive syntax."""

    mapper = IncludeMapper(fs, directive_tag=config.includes.directive_tag, extensions=config.includes.extensions)
    return IncludeResolver(mapper)


def build_preprocessor(config: Config) -> Preprocessor | None:
    """Return the configured preprocessor, or ``None`` when preprocessing is off."""

    strategies = config.strategies
    if not strategies.preprocessing_enabled or not strategies.preprocess_command:
        return None
    return CommandPreprocessor(strategies.preprocess_command, timeout=config.parsing.file_timeout)


def build_fallback(config: Config) -> FallbackAnalyzer | None:
    """Return the configured fallback analyzer, or ``None`` when disabled."""

    strategies = config.strategies
    if not strategies.fallback_enabled:
        return None
    return RegexFallbackAnalyzer(max_issues=strategies.fallback_max_issues, encoding=config.encoding)


def analyze_project(
    root: Path,
    config: Config,
    sink: IssueSink,
    *,
    engine: LintEngine | None = None,
    collector: ParsingErrorCollector | None = None,
) -> AnalysisOutcome:
    """Analyse every source below ``root`` and report located issues to ``sink``.

    Args:
        root: Project root directory.
        config: Effective configuration.
        sink: Destination for located issues.
        engine: Engine override; defaults to the configured command.
        collector: Collector receiving categorised failures.

    Returns:
        AnalysisOutcome: Run report, import statistics and the file-system view used.

    Raises:
        StrictModeFailure: If batch analysis fails in strict mode.
        ResultTooLargeError: If the result artifact exceeds an import ceiling.
    """

    resolved_root = root.resolve()
    fs = build_file_system(resolved_root, config)
    files = fs.source_files()
    work_dir = config.resolved_work_dir(resolved_root)
    work_dir.mkdir(parents=True, exist_ok=True)
    artifact = work_dir / RESULT_ARTIFACT_NAME
    LOGGER.debug("Discovered %d source files below %s", len(files), resolved_root)

    orchestrator = AnalysisOrchestrator(
        engine if engine is not None else CommandLintEngine(config.engine, cwd=resolved_root),
        config.parsing,
        artifact_path=artifact,
        collector=collector,
        preprocessor=build_preprocessor(config),
        fallback=build_fallback(config),
        encoding=config.encoding,
    )
    report = orchestrator.run(files)

    resolver = build_resolver(fs, config)
    importer = ResultImporter(fs, resolver, config.importing, repository=config.engine.rule_repository)
    try:
        imported = importer.import_file(artifact, sink)
    finally:
        resolver.clear_cache()
    return AnalysisOutcome(report=report, imported=imported, fs=fs)


__all__ = [
    "AnalysisOutcome",
    "RESULT_ARTIFACT_NAME",
    "analyze_project",
    "build_fallback",
    "build_file_system",
    "build_preprocessor",
    "build_resolver",
]
