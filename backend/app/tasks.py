"""
Detached background work.

The queue runs short, fire-and-forget jobs (sending verification codes) on
a small thread pool.  Callers get a ``Future`` back but are not expected to
wait on it; a failing job is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Set


logger = logging.getLogger(__name__)


class TaskQueue:
    """Thread-pool backed queue for detached side effects."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="auth-task"
        )
        self._pending: Set[Future] = set()
        self._cond = threading.Condition()

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule *fn* and return its future. Failures are logged, never raised."""
        future = self._executor.submit(fn, *args, **kwargs)
        with self._cond:
            self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(name, f))
        return future

    def _on_done(self, name: str, future: Future) -> None:
        try:
            if future.cancelled():
                logger.warning("Background task %s was cancelled", name)
            elif future.exception() is not None:
                logger.error("Background task %s failed", name, exc_info=future.exception())
        finally:
            with self._cond:
                self._pending.discard(future)
                self._cond.notify_all()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued tasks. Returns False if some are still running after *timeout*."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
