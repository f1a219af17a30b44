"""Task execution core: the validate, hook, execute, persist lifecycle."""

import time
from dataclasses import replace
from typing import Optional

from ..core.database import ExecutionStore
from ..core.logging_ import execution_context, get_logger
from ..core.monitoring import MetricsCollector
from .context import TaskContext
from .errors import (
    UNEXPECTED_ERROR,
    HandlerNotFoundError,
    TaskEngineError,
    TaskExecutionError,
    UnexpectedError,
    ValidationError,
)
from .handler import TaskHandler
from .registry import HandlerRegistry
from .result import TaskResult

logger = get_logger(__name__)

VALIDATION_FAILED = "Task context validation failed"


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class TaskExecutor:
    """Runs one execution attempt end to end on the calling thread.

    Lookup and validation failures raise before anything is persisted. Once
    validation passes a RUNNING record is saved, the handler runs, and the
    terminal result is saved whatever the outcome. Failures are then raised
    to the caller with that result attached as ``error.result``.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        store: Optional[ExecutionStore] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.registry = registry
        self.store = store
        self.metrics = metrics

    def run(self, task_type: str, context: TaskContext) -> TaskResult:
        with execution_context(task_type, context.execution_id):
            return self._run(task_type, context)

    def _run(self, task_type: str, context: TaskContext) -> TaskResult:
        handler = self.resolve(task_type, context)

        context.task_type = task_type
        start = time.perf_counter()

        logger.info(f"Executing task: {task_type} with execution ID: {context.execution_id}")

        self._validate(handler, context)
        self._persist_start(context)

        try:
            handler.before_execution(context)
            result = handler.execute(context)
            if not isinstance(result, TaskResult):
                raise TypeError(
                    f"{handler.__class__.__name__}.execute returned "
                    f"{type(result).__name__}, expected TaskResult"
                )
            handler.after_execution(context, result)

            result = replace(result, output_data=dict(result.output_data))
            result.stamp(context.execution_id, _elapsed_ms(start))

        except Exception as e:
            elapsed = _elapsed_ms(start)
            error = self._to_engine_error(e, task_type, context)
            result = self._failure_result(error, e, context, elapsed)
            error.result = result

            self._persist_result(result)
            self._record_metrics(task_type, result)
            logger.error(
                f"Task {task_type} failed after {result.execution_time_ms}ms: {error.message}",
                error_code=error.error_code,
            )

            if error is e:
                raise
            raise error from e

        self._persist_result(result)
        self._record_metrics(task_type, result)
        logger.info(
            f"Task {task_type} finished with status {result.status.value} "
            f"in {result.execution_time_ms}ms"
        )
        return result

    def validate_only(self, task_type: str, context: TaskContext) -> bool:
        """Run the handler's validation without side effects or persistence."""
        handler = self.resolve(task_type, context)
        try:
            return bool(handler.validate(context))
        except Exception as e:
            raise ValidationError(
                f"{VALIDATION_FAILED}: {e}",
                task_type=task_type,
                execution_id=context.execution_id,
            ) from e

    def resolve(self, task_type: str, context: TaskContext) -> TaskHandler:
        """Look up the handler, attaching a FAILED result to a not-found error."""
        try:
            return self.registry.lookup(task_type)
        except HandlerNotFoundError as e:
            e.execution_id = context.execution_id
            e.result = TaskResult.failed(context.execution_id, e.message, e.error_code)
            logger.warning(f"No handler for task type: {task_type}")
            raise

    def _validate(self, handler: TaskHandler, context: TaskContext) -> None:
        task_type = context.task_type
        cause = None

        try:
            valid = handler.validate(context)
        except Exception as e:
            valid, cause = False, e

        if valid:
            return

        message = VALIDATION_FAILED
        if cause is not None:
            message = f"{message}: {cause}"

        error = ValidationError(message, task_type=task_type, execution_id=context.execution_id)
        error.result = TaskResult.failed(context.execution_id, message, error.error_code)
        logger.warning(f"Validation failed for task {task_type}: {context.execution_id}")

        if self.metrics is not None:
            self.metrics.counter("task_validation_failures_total", labels={"task_type": task_type})

        if cause is not None:
            raise error from cause
        raise error

    def _to_engine_error(
        self, exc: Exception, task_type: str, context: TaskContext
    ) -> TaskEngineError:
        if isinstance(exc, TaskExecutionError):
            if exc.task_type is None:
                exc.task_type = task_type
            if exc.execution_id is None:
                exc.execution_id = context.execution_id
            if exc.error_code is None:
                exc.error_code = UNEXPECTED_ERROR
            return exc

        return UnexpectedError(
            "Unexpected error during task execution",
            task_type=task_type,
            execution_id=context.execution_id,
        )

    def _failure_result(
        self,
        error: TaskEngineError,
        exc: Exception,
        context: TaskContext,
        elapsed_ms: float,
    ) -> TaskResult:
        if isinstance(exc, TaskExecutionError):
            cause = exc.__cause__
            details = str(cause) if cause is not None else exc.message
        else:
            details = str(exc) or exc.__class__.__name__

        result = TaskResult.failed(
            context.execution_id,
            error.message,
            error.error_code or UNEXPECTED_ERROR,
            details,
        )
        result.stamp(context.execution_id, elapsed_ms)
        return result

    def _persist_start(self, context: TaskContext) -> None:
        if self.store is None:
            return
        try:
            self.store.save_execution_start(context)
        except Exception:
            logger.exception(f"Failed to save execution start: {context.execution_id}")

    def _persist_result(self, result: TaskResult) -> None:
        if self.store is None:
            return
        try:
            self.store.save_execution_result(result)
        except Exception:
            logger.exception(f"Failed to save execution result: {result.execution_id}")

    def _record_metrics(self, task_type: str, result: TaskResult) -> None:
        if self.metrics is None:
            return
        labels = {"task_type": task_type, "status": result.status.value}
        self.metrics.counter("task_executions_total", labels=labels)
        self.metrics.histogram(
            "task_execution_time_ms", result.execution_time_ms, labels={"task_type": task_type}
        )
