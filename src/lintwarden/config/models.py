# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for the analysis pipeline."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_FILE_SUFFIXES: Final[tuple[str, ...]] = (".cfm", ".cfc")
DEFAULT_WORK_DIR_NAME: Final[str] = ".lintwarden"
MEBIBYTE: Final[int] = 1024 * 1024


class ParsingMode(str, Enum):
    """Error-tolerance levels controlling the analysis strategy."""

    STRICT = "strict"
    LENIENT = "lenient"
    FRAGMENT = "fragment"

    @classmethod
    def from_value(cls, raw: str | ParsingMode | None) -> ParsingMode:
        """Return the mode named by ``raw``, defaulting to lenient when blank.

        Args:
            raw: Mode name in any letter case, or an existing member.

        Returns:
            ParsingMode: Matching member.

        Raises:
            ValueError: If ``raw`` names no known mode.
        """

        if isinstance(raw, ParsingMode):
            return raw
        if raw is None or not raw.strip():
            return cls.LENIENT
        return cls(raw.strip().lower())

    @property
    def description(self) -> str:
        """Return a one-line description of the mode."""

        return _MODE_DESCRIPTIONS[self]

    @property
    def attempts_batch(self) -> bool:
        """Return ``True`` when a single batch pass should be tried first."""

        return self is ParsingMode.STRICT

    @property
    def continues_on_error(self) -> bool:
        """Return ``True`` when analysis falls through to isolated per-file runs."""

        return self is not ParsingMode.STRICT

    @property
    def recommended_error_threshold(self) -> int:
        """Return the maximum failure percentage considered healthy for the mode."""

        return _MODE_ERROR_THRESHOLDS[self]


_MODE_DESCRIPTIONS: Final[dict[ParsingMode, str]] = {
    ParsingMode.STRICT: "Strict - fail on any parsing error",
    ParsingMode.LENIENT: "Lenient - continue with warnings on recoverable errors",
    ParsingMode.FRAGMENT: "Fragment - minimal validation for template fragments",
}

_MODE_ERROR_THRESHOLDS: Final[dict[ParsingMode, int]] = {
    ParsingMode.STRICT: 0,
    ParsingMode.LENIENT: 15,
    ParsingMode.FRAGMENT: 30,
}


class ErrorReportingLevel(str, Enum):
    """Verbosity of the end-of-run error report."""

    NONE = "none"
    SUMMARY = "summary"
    DETAILED = "detailed"


def _lowercase_enum_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class ParsingConfig(BaseModel):
    """Failure-tolerance settings for the execution orchestrator."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    mode: ParsingMode = ParsingMode.LENIENT
    skip_malformed_files: bool = True
    error_reporting: ErrorReportingLevel = ErrorReportingLevel.SUMMARY
    error_threshold: int = Field(default=50, ge=0, le=100)
    file_timeout: float = Field(default=30.0, gt=0)
    max_consecutive_timeouts: int = Field(default=10, ge=1)

    @field_validator("mode", "error_reporting", mode="before")
    @classmethod
    def _normalise_enum(cls, value: Any) -> Any:
        return _lowercase_enum_value(value)


class StrategyConfig(BaseModel):
    """Settings for the optional preprocessing and fallback strategies."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    preprocessing_enabled: bool = True
    preprocess_command: list[str] = Field(default_factory=list)
    fallback_enabled: bool = True
    fallback_max_issues: int = Field(default=50, ge=0)


class ImportConfig(BaseModel):
    """Safety ceilings and pacing for the result importer."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    max_result_bytes: int = Field(default=256 * MEBIBYTE, gt=0)
    max_issues: int = Field(default=1_000_000, gt=0)
    count_issues_first: bool = True
    resolution_warmup: int = Field(default=1000, ge=0)
    resolution_stride: int = Field(default=1000, ge=1)
    progress_interval: int = Field(default=10_000, ge=1)


class EngineConfig(BaseModel):
    """Invocation details for the external lint engine."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    command: list[str] = Field(default_factory=lambda: ["cflint"])
    arguments: list[str] = Field(default_factory=lambda: ["-q", "-xml", "-stdout"])
    config_file: Path | None = None
    config_flag: str = "-configfile"
    file_flag: str | None = "-file"
    file_separator: str | None = ","
    timeout: float | None = Field(default=None, gt=0)
    rule_repository: str = "cflint"

    @field_validator("command")
    @classmethod
    def _require_command(cls, value: list[str]) -> list[str]:
        if not value or not value[0].strip():
            raise ValueError("engine command must name an executable")
        return value


class IncludeConfig(BaseModel):
    """Include directive syntax understood by the virtual-line resolver."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    directive_tag: str = Field(default="cfinclude", min_length=1)
    extensions: list[str] = Field(default_factory=lambda: [".cfm", ".cfc", ".cfml"])


class Config(BaseModel):
    """Top-level configuration container."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    file_suffixes: list[str] = Field(default_factory=lambda: list(DEFAULT_FILE_SUFFIXES))
    excluded_dirs: list[str] = Field(default_factory=list)
    work_dir: Path | None = None
    encoding: str = "utf-8"
    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    strategies: StrategyConfig = Field(default_factory=StrategyConfig)
    importing: ImportConfig = Field(default_factory=ImportConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    includes: IncludeConfig = Field(default_factory=IncludeConfig)

    def resolved_work_dir(self, root: Path) -> Path:
        """Return the work directory for a run rooted at ``root``."""

        if self.work_dir is None:
            return root / DEFAULT_WORK_DIR_NAME
        return self.work_dir if self.work_dir.is_absolute() else root / self.work_dir

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot of the configuration."""

        return self.model_dump(mode="json")


__all__ = [
    "Config",
    "DEFAULT_FILE_SUFFIXES",
    "DEFAULT_WORK_DIR_NAME",
    "EngineConfig",
    "ErrorReportingLevel",
    "ImportConfig",
    "IncludeConfig",
    "ParsingConfig",
    "ParsingMode",
    "StrategyConfig",
]
