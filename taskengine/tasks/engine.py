"""Engine facade combining the registry, executor and worker pool."""

import asyncio
from concurrent.futures import Future
from typing import Any, Dict, Iterable, Optional

from ..core.config import Config, get_config
from ..core.database import ExecutionStore, InMemoryExecutionStore
from ..core.logging_ import get_logger
from ..core.monitoring import MetricsCollector
from .context import TaskContext
from .dispatcher import PoolStats, TaskDispatcher
from .executor import TaskExecutor
from .handler import TaskHandler
from .registry import HandlerRegistry
from .result import TaskResult

logger = get_logger(__name__)


class TaskEngine:
    """Owns one handler registry, one executor and one worker pool.

    Engines are independent of each other: nothing is shared through module
    state, so several can live in one process.
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        store: Optional[ExecutionStore] = None,
        pool_size: Optional[int] = None,
        metrics: Optional[MetricsCollector] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.registry = registry if registry is not None else HandlerRegistry()
        self.store = store if store is not None else InMemoryExecutionStore()
        self.metrics = metrics if metrics is not None else MetricsCollector()

        persisted = self.store if self.config.engine.persist_results else None
        self.executor = TaskExecutor(self.registry, persisted, self.metrics)
        self.dispatcher = TaskDispatcher(
            pool_size=pool_size if pool_size is not None else self.config.engine.pool_size,
            thread_name_prefix=self.config.engine.thread_name_prefix,
            metrics=self.metrics,
        )

    @classmethod
    def with_handlers(cls, handlers: Iterable[TaskHandler], **kwargs: Any) -> "TaskEngine":
        engine = cls(**kwargs)
        for handler in handlers:
            engine.register_handler(handler)
        return engine

    def register_handler(self, handler: TaskHandler) -> None:
        self.registry.register(handler)

    def unregister_handler(self, task_type: str) -> None:
        self.registry.unregister(task_type)

    def run(self, task_type: str, context: TaskContext) -> TaskResult:
        """Execute synchronously on the calling thread."""
        return self.executor.run(task_type, context)

    def run_async(self, task_type: str, context: TaskContext) -> Future:
        """Queue the execution on the worker pool.

        Unknown task types raise ``HandlerNotFoundError`` here, before
        anything is queued, carrying the same FAILED result as ``run``. Every other failure is raised by
        ``future.result()`` exactly as ``run`` would raise it.
        """
        handler = self.executor.resolve(task_type, context)

        if not handler.supports_async():
            logger.warning(
                f"Task {task_type} does not declare async support, running on the pool anyway"
            )

        estimate = handler.estimated_duration_ms()
        logger.debug(
            f"Queued task {task_type} with execution ID: {context.execution_id}",
            estimated_duration_ms=estimate,
        )
        return self.dispatcher.submit(self.executor.run, task_type, context)

    async def submit(self, task_type: str, context: TaskContext) -> TaskResult:
        """Awaitable form of ``run_async``."""
        return await asyncio.wrap_future(self.run_async(task_type, context))

    def validate_only(self, task_type: str, context: TaskContext) -> bool:
        return self.executor.validate_only(task_type, context)

    def describe(self, task_type: str) -> Dict[str, Any]:
        return self.registry.lookup(task_type).describe()

    def list_registered(self) -> Dict[str, str]:
        return self.registry.list_all()

    def stats(self) -> PoolStats:
        return self.dispatcher.get_stats()

    def shutdown(self, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait)

    def __enter__(self) -> "TaskEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
