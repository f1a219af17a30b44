"""Persisted execution statuses and their mapping from result statuses."""

from enum import Enum
from typing import Dict

from .result import ResultStatus


class ExecutionStatus(Enum):
    """Status stored on an execution record.

    ``RUNNING`` marks the start record written before any terminal status is
    known; every other member mirrors a ``ResultStatus``.
    """
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.RUNNING

    @classmethod
    def parse(cls, value: str) -> "ExecutionStatus":
        """Case-insensitive lookup by name; raises ValueError for unknown names."""
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown execution status: {value}") from None


def _build_status_map() -> Dict[ResultStatus, ExecutionStatus]:
    mapping = {}
    for status in ResultStatus:
        if status.name not in ExecutionStatus.__members__:
            raise RuntimeError(f"ResultStatus.{status.name} has no persisted counterpart")
        mapping[status] = ExecutionStatus[status.name]
    return mapping


# Built at import so a status without a counterpart fails immediately.
_RESULT_TO_EXECUTION = _build_status_map()


def map_result_status(status: ResultStatus) -> ExecutionStatus:
    """Map a handler-reported result status to the persisted status."""
    return _RESULT_TO_EXECUTION[status]
