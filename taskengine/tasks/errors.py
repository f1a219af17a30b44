"""Structured errors raised by the task engine."""

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .result import TaskResult

WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
ENGINE_SHUTDOWN = "ENGINE_SHUTDOWN"


class TaskEngineError(Exception):
    """Base class for every error the engine reports to callers.

    Carries a machine readable ``error_code`` plus the task type and
    execution id it relates to. When the engine produced a terminal
    ``TaskResult`` for the failed attempt it is attached as ``result``.
    """

    default_code: Optional[str] = None
    client_error = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        task_type: Optional[str] = None,
        execution_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.task_type = task_type
        self.execution_id = execution_id
        self.result: Optional["TaskResult"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "errorCode": self.error_code,
            "taskType": self.task_type,
            "executionId": self.execution_id,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.message!r}, error_code={self.error_code!r}, "
            f"task_type={self.task_type!r}, execution_id={self.execution_id!r})"
        )


class HandlerNotFoundError(TaskEngineError):
    """No handler is registered for the requested task type."""

    default_code = WORKFLOW_NOT_FOUND
    client_error = True

    def __init__(self, task_type: str, execution_id: Optional[str] = None):
        super().__init__(
            f"Task type not found: {task_type}",
            task_type=task_type,
            execution_id=execution_id,
        )


class ValidationError(TaskEngineError):
    """The handler rejected the context before execution started."""

    default_code = VALIDATION_ERROR
    client_error = True

    def __init__(
        self,
        message: str = "Task context validation failed",
        task_type: Optional[str] = None,
        execution_id: Optional[str] = None,
    ):
        super().__init__(message, task_type=task_type, execution_id=execution_id)


class TaskExecutionError(TaskEngineError):
    """Raised by handlers for failures they detect while executing.

    The ``error_code`` is optional; the engine records ``UNEXPECTED_ERROR``
    for errors raised without one.
    """


class UnexpectedError(TaskEngineError):
    """Wraps any other exception that escaped a handler."""

    default_code = UNEXPECTED_ERROR


class EngineShutdownError(TaskEngineError):
    """The engine's worker pool no longer accepts work."""

    default_code = ENGINE_SHUTDOWN
