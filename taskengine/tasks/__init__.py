"""Task registration, execution and dispatch package."""

from .context import TaskContext
from .result import ResultStatus, TaskResult
from .status import ExecutionStatus, map_result_status
from .errors import (
    EngineShutdownError,
    HandlerNotFoundError,
    TaskEngineError,
    TaskExecutionError,
    UnexpectedError,
    ValidationError,
)
from .handler import HandlerInfo, TaskHandler
from .registry import HandlerRegistry
from .executor import TaskExecutor
from .dispatcher import PoolStats, TaskDispatcher
from .engine import TaskEngine

__all__ = [
    "TaskContext",
    "ResultStatus",
    "TaskResult",
    "ExecutionStatus",
    "map_result_status",
    "EngineShutdownError",
    "HandlerNotFoundError",
    "TaskEngineError",
    "TaskExecutionError",
    "UnexpectedError",
    "ValidationError",
    "HandlerInfo",
    "TaskHandler",
    "HandlerRegistry",
    "TaskExecutor",
    "PoolStats",
    "TaskDispatcher",
    "TaskEngine",
]
