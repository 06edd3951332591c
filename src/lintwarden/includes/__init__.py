# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Include graph expansion and virtual-line resolution."""

from __future__ import annotations

from .mapper import DEFAULT_DIRECTIVE_TAG, DEFAULT_INCLUDE_EXTENSIONS, IncludeMapper, build_directive_pattern
from .resolver import IncludeResolver

__all__ = [
    "DEFAULT_DIRECTIVE_TAG",
    "DEFAULT_INCLUDE_EXTENSIONS",
    "IncludeMapper",
    "IncludeResolver",
    "build_directive_pattern",
]
