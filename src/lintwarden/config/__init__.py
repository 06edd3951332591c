# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and loaders."""

from __future__ import annotations

from ..exceptions import ConfigError
from .loader import ConfigLoader, build_config, parse_property, properties_to_payload
from .models import (
    Config,
    EngineConfig,
    ErrorReportingLevel,
    ImportConfig,
    IncludeConfig,
    ParsingConfig,
    ParsingMode,
    StrategyConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigLoader",
    "EngineConfig",
    "ErrorReportingLevel",
    "ImportConfig",
    "IncludeConfig",
    "ParsingConfig",
    "ParsingMode",
    "StrategyConfig",
    "build_config",
    "parse_property",
    "properties_to_payload",
]
