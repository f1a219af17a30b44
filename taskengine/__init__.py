"""Task Engine - pluggable execution engine for typed units of work."""

__version__ = "0.1.0"

from .core import Config, settings, LoggingMixin, get_logger
from .tasks import (
    ExecutionStatus,
    HandlerNotFoundError,
    HandlerRegistry,
    ResultStatus,
    TaskContext,
    TaskEngine,
    TaskEngineError,
    TaskExecutionError,
    TaskHandler,
    TaskResult,
    UnexpectedError,
    ValidationError,
)

__all__ = [
    "__version__",
    "Config",
    "settings",
    "LoggingMixin",
    "get_logger",
    "ExecutionStatus",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "ResultStatus",
    "TaskContext",
    "TaskEngine",
    "TaskEngineError",
    "TaskExecutionError",
    "TaskHandler",
    "TaskResult",
    "UnexpectedError",
    "ValidationError",
]
