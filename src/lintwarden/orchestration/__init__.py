# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Batch and isolated execution of the lint engine."""

from __future__ import annotations

from .orchestrator import BATCH_ERROR_KEY, AnalysisOrchestrator
from .state import RunReport, RunState, ThresholdStatus, evaluate_failure_rate
from .worker import IsolatedExecutor

__all__ = [
    "AnalysisOrchestrator",
    "BATCH_ERROR_KEY",
    "IsolatedExecutor",
    "RunReport",
    "RunState",
    "ThresholdStatus",
    "evaluate_failure_rate",
]
