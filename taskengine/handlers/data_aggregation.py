"""Sample handler that validates, normalizes and aggregates records."""

import time
from typing import Any, Dict, List

from ..tasks import TaskContext, TaskExecutionError, TaskHandler, TaskResult

DATA_PROCESSING_ERROR = "DATA_PROCESSING_ERROR"


class DataAggregationHandler(TaskHandler):
    """Aggregates the numeric ``value`` field of each record in ``data``."""

    task_type = "DATA_PROCESSING"
    version = "1.0.0"
    description = "Processes input data by validating, transforming, and aggregating records"

    def validate(self, context: TaskContext) -> bool:
        data = context.get_input("data")
        if data is None:
            self.logger.warning("Validation failed: 'data' field is required")
            return False

        if not isinstance(data, list):
            self.logger.warning("Validation failed: 'data' field must be a list")
            return False

        if not data:
            self.logger.warning("Validation failed: 'data' list is empty")
            return False

        return True

    def execute(self, context: TaskContext) -> TaskResult:
        self.logger.info(f"Starting data processing for execution: {context.execution_id}")

        try:
            records = context.get_input("data")
            self._check_records(records)
            summary = self._aggregate(self._normalize(records))
        except Exception as e:
            raise TaskExecutionError(
                f"Data processing failed: {e}",
                DATA_PROCESSING_ERROR,
                self.task_type,
                context.execution_id,
            ) from e

        result = TaskResult.success(
            context.execution_id,
            summary,
            message="Data processing completed successfully",
        )
        self.logger.info(f"Data processing completed for execution: {context.execution_id}")
        return result

    def supports_async(self) -> bool:
        return True

    def estimated_duration_ms(self) -> int:
        return 5000

    def before_execution(self, context: TaskContext) -> None:
        context.set_variable("started_at", time.perf_counter())

    def after_execution(self, context: TaskContext, result: TaskResult) -> None:
        started = context.get_variable("started_at")
        if started is not None:
            duration = (time.perf_counter() - started) * 1000
            self.logger.debug(f"Data processing took {duration:.1f}ms")

    def _check_records(self, records: List[Any]) -> None:
        for index, record in enumerate(records):
            if not isinstance(record, dict) or "value" not in record:
                raise TaskExecutionError(f"Record {index} must contain a 'value' field")

    def _normalize(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        normalized = []
        for record in records:
            transformed = dict(record)
            value = record["value"]
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                transformed["normalizedValue"] = float(value)
            normalized.append(transformed)
        return normalized

    def _aggregate(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        count = len(records)
        total = sum(r.get("normalizedValue", 0.0) for r in records)

        return {
            "processedRecords": count,
            "totalValue": total,
            "averageValue": total / count if count else 0.0,
        }
