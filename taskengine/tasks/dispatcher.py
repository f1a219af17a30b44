"""Bounded worker pool for asynchronous task execution."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..core.config import get_config
from ..core.logging_ import get_logger
from ..core.monitoring import MetricsCollector
from .errors import EngineShutdownError

logger = get_logger(__name__)

config = get_config()


@dataclass
class PoolStats:
    """Statistics for the worker pool."""
    pool_size: int
    submitted: int = 0
    pending: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    peak_active: int = 0


class TaskDispatcher:
    """Runs work items on a fixed number of worker threads.

    The pool is shared by every task type. Submissions beyond ``pool_size``
    wait in the executor's FIFO queue. Work that has started is never
    cancelled and no timeout is applied.
    """

    def __init__(
        self,
        pool_size: Optional[int] = None,
        thread_name_prefix: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.pool_size = config.engine.pool_size if pool_size is None else pool_size
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be positive, got {self.pool_size}")

        self.metrics = metrics
        self._executor = ThreadPoolExecutor(
            max_workers=self.pool_size,
            thread_name_prefix=thread_name_prefix or config.engine.thread_name_prefix,
        )
        self._lock = threading.Lock()
        self._stats = PoolStats(pool_size=self.pool_size)
        self._shutdown = False

        logger.info(f"Started worker pool with {self.pool_size} workers")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue ``fn(*args, **kwargs)`` and return its future."""
        with self._lock:
            if self._shutdown:
                raise EngineShutdownError("Worker pool has been shut down")
            self._stats.submitted += 1
            self._stats.pending += 1
            future = self._executor.submit(self._run, fn, *args, **kwargs)

        return future

    def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            self._stats.pending -= 1
            self._stats.active += 1
            self._stats.peak_active = max(self._stats.peak_active, self._stats.active)
            active = self._stats.active
        self._set_active_gauge(active)

        failed = False
        try:
            return fn(*args, **kwargs)
        except BaseException:
            failed = True
            raise
        finally:
            with self._lock:
                self._stats.active -= 1
                if failed:
                    self._stats.failed += 1
                else:
                    self._stats.completed += 1
                active = self._stats.active
            self._set_active_gauge(active)

    def _set_active_gauge(self, active: int) -> None:
        if self.metrics is not None:
            self.metrics.gauge("task_pool_active", active)

    def get_stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(**vars(self._stats))

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; queued items still run."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True

        self._executor.shutdown(wait=wait)
        logger.info("Worker pool stopped")
