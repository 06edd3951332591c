# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity related types and helpers."""

from __future__ import annotations

from enum import Enum
from typing import Final


class Severity(str, Enum):
    """Severity levels normalising the engine's vocabulary."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    NOTE = "note"


_ENGINE_SEVERITY_MAP: Final[dict[str, Severity]] = {
    "fatal": Severity.ERROR,
    "critical": Severity.ERROR,
    "error": Severity.ERROR,
    "high": Severity.ERROR,
    "warning": Severity.WARNING,
    "caution": Severity.WARNING,
    "medium": Severity.WARNING,
    "info": Severity.NOTICE,
    "low": Severity.NOTICE,
    "cosmetic": Severity.NOTE,
}


def severity_from_engine(label: str | None, default: Severity = Severity.WARNING) -> Severity:
    """Translate an engine severity label into :class:`Severity`.

    Args:
        label: Raw severity string emitted by the engine or a fallback rule.
        default: Severity returned when ``label`` is blank or unknown.

    Returns:
        Severity: Normalised severity value.
    """

    if not label:
        return default
    return _ENGINE_SEVERITY_MAP.get(label.strip().lower(), default)


__all__ = ["Severity", "severity_from_engine"]
