"""Per-attempt execution context handed to task handlers."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_MAPPING_FIELDS = ("input_data", "metadata", "variables")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_execution_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TaskContext:
    """Carries input data, identity and scratch variables for one attempt.

    ``execution_id`` cannot change once set. The mapping fields are never
    ``None``: assigning ``None`` stores an empty dict, and ``input_data`` is
    copied on construction so later changes by the caller do not leak in.
    """

    task_type: Optional[str] = None
    input_data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    execution_id: str = field(default_factory=_new_execution_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.input_data = dict(self.input_data or {})

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "execution_id":
            current = self.__dict__.get("execution_id")
            if current is not None and value != current:
                raise AttributeError(f"execution_id is immutable (already {current})")
            if not value:
                value = _new_execution_id()
        elif name in _MAPPING_FIELDS and value is None:
            value = {}
        super().__setattr__(name, value)

    def get_input(self, key: str, default: Any = None) -> Any:
        return self.input_data.get(key, default)

    def set_input(self, key: str, value: Any) -> None:
        self.input_data[key] = value

    def get_variable(self, key: str, default: Any = None) -> Any:
        return self.variables.get(key, default)

    def set_variable(self, key: str, value: Any) -> None:
        self.variables[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view; ``variables`` are never persisted."""
        return {
            "executionId": self.execution_id,
            "taskType": self.task_type,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
            "inputData": self.input_data,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskContext":
        """Build a context from a camelCase or snake_case payload."""

        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        kwargs: Dict[str, Any] = {
            "task_type": pick("taskType", "task_type"),
            "input_data": pick("inputData", "input_data"),
            "metadata": pick("metadata"),
            "user_id": pick("userId", "user_id"),
        }
        execution_id = pick("executionId", "execution_id")
        if execution_id:
            kwargs["execution_id"] = str(execution_id)

        return cls(**kwargs)
