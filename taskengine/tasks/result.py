"""Outcome envelope produced for every execution attempt."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .context import utcnow


class ResultStatus(Enum):
    """Terminal statuses a handler may report."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    CANCELLED = "CANCELLED"


@dataclass
class TaskResult:
    """Result of one execution attempt.

    Handlers build results through the factory classmethods. Timing and the
    execution id are stamped by the executor afterwards via ``stamp``.
    """
    execution_id: Optional[str]
    status: ResultStatus
    message: Optional[str] = None
    output_data: Dict[str, Any] = field(default_factory=dict)
    completed_at: datetime = field(default_factory=utcnow)
    execution_time_ms: int = 0
    error_code: Optional[str] = None
    error_details: Optional[str] = None
    _stamped: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.output_data is None:
            self.output_data = {}

    @classmethod
    def success(
        cls,
        execution_id: Optional[str] = None,
        output_data: Optional[Dict[str, Any]] = None,
        message: str = "Task executed successfully",
    ) -> "TaskResult":
        return cls(execution_id, ResultStatus.SUCCESS, message, output_data or {})

    @classmethod
    def partial_success(
        cls,
        execution_id: Optional[str] = None,
        output_data: Optional[Dict[str, Any]] = None,
        message: str = "Task partially completed",
    ) -> "TaskResult":
        return cls(execution_id, ResultStatus.PARTIAL_SUCCESS, message, output_data or {})

    @classmethod
    def failed(
        cls,
        execution_id: Optional[str],
        message: str,
        error_code: Optional[str] = None,
        error_details: Optional[str] = None,
    ) -> "TaskResult":
        return cls(
            execution_id,
            ResultStatus.FAILED,
            message,
            error_code=error_code,
            error_details=error_details,
        )

    @classmethod
    def cancelled(
        cls,
        execution_id: Optional[str] = None,
        message: str = "Task cancelled by handler",
    ) -> "TaskResult":
        return cls(execution_id, ResultStatus.CANCELLED, message)

    @property
    def is_successful(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.PARTIAL_SUCCESS)

    def add_output(self, key: str, value: Any) -> None:
        self.output_data[key] = value

    def get_output(self, key: str, default: Any = None) -> Any:
        return self.output_data.get(key, default)

    def stamp(self, execution_id: str, execution_time_ms: float) -> None:
        """Record the execution id and elapsed time, rounded up to whole milliseconds.

        Only the executor calls this, on its own copy of the handler's result.
        """
        if self._stamped:
            raise RuntimeError(f"Result for {self.execution_id} was already stamped")
        self.execution_id = execution_id
        self.execution_time_ms = max(0, math.ceil(execution_time_ms))
        self._stamped = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "status": self.status.value,
            "message": self.message,
            "outputData": self.output_data,
            "completedAt": self.completed_at.isoformat(),
            "executionTimeMs": self.execution_time_ms,
            "errorCode": self.error_code,
            "errorDetails": self.error_details,
        }
