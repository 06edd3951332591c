# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deadline-enforcing worker pool for isolated per-file analysis."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from types import TracebackType
from typing import Any, Final, TypeVar

from ..exceptions import AnalysisTimeoutError, WorkerPoolSaturatedError

LOGGER = logging.getLogger(__name__)

WORKER_THREAD_PREFIX: Final[str] = "lintwarden-worker"

ResultT = TypeVar("ResultT")


class IsolatedExecutor:
    """Run callables on a reusable thread pool with a per-call deadline.

    The pool is created on ``__enter__`` and torn down on ``__exit__`` without
    waiting for abandoned calls; a call that outlives its deadline keeps its
    worker thread busy until it returns on its own.
    """

    def __init__(self, *, max_workers: int, thread_name_prefix: str = WORKER_THREAD_PREFIX) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._pool: ThreadPoolExecutor | None = None
        self._abandoned: list[Future[Any]] = []

    def __enter__(self) -> IsolatedExecutor:
        self._pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix=self._thread_name_prefix)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown()

    @property
    def abandoned_count(self) -> int:
        """Return how many timed-out calls are still running in the background."""

        self._abandoned = [future for future in self._abandoned if not future.done()]
        return len(self._abandoned)

    def run(self, func: Callable[[], ResultT], *, timeout: float, label: str) -> ResultT:
        """Execute ``func`` on a worker and wait at most ``timeout`` seconds.

        Args:
            func: Zero-argument callable performing the work.
            timeout: Deadline in seconds.
            label: Identifier of the unit of work, used in the timeout error.

        Returns:
            ResultT: Value returned by ``func``.

        Raises:
            AnalysisTimeoutError: If the deadline elapses first.
            WorkerPoolSaturatedError: If no worker became free before the deadline.
            concurrent.futures.CancelledError: If the call was cancelled before it ran.
            Exception: Any exception raised by ``func`` itself.
        """

        if self._pool is None:
            raise RuntimeError("IsolatedExecutor must be entered before use")
        future = self._pool.submit(func)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError as exc:
            if future.done() and not future.cancelled():
                return future.result()
            if future.cancel():
                busy = self.abandoned_count
                LOGGER.warning(
                    "Worker pool saturated: %s never started within %gs, %d abandoned call(s) still running",
                    label,
                    timeout,
                    busy,
                )
                raise WorkerPoolSaturatedError(label, timeout, busy) from exc
            self._abandoned.append(future)
            LOGGER.debug("Abandoned analysis of %s after %gs", label, timeout)
            raise AnalysisTimeoutError(label, timeout) from exc

    def shutdown(self) -> None:
        """Tear the pool down without waiting for abandoned calls."""

        if self._pool is None:
            return
        pending = self.abandoned_count
        if pending:
            LOGGER.debug("Shutting down worker pool with %d abandoned call(s) still running", pending)
        self._pool.shutdown(wait=False, cancel_futures=True)
        self._pool = None


__all__ = ["IsolatedExecutor", "WORKER_THREAD_PREFIX"]
