"""Base class for pluggable task handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from ..core.logging_ import LoggingMixin
from .context import TaskContext
from .result import TaskResult


@dataclass(frozen=True)
class HandlerInfo:
    """Stable identity of a handler."""
    type: str
    version: str
    description: str


class TaskHandler(LoggingMixin, ABC):
    """A unit of pluggable behaviour registered under a task type.

    Subclasses set ``task_type`` (and usually ``version`` and
    ``description``) and implement ``execute`` and ``validate``. The
    remaining methods have working defaults.
    """

    task_type: str = ""
    version: str = "1.0.0"
    description: str = ""

    @abstractmethod
    def execute(self, context: TaskContext) -> TaskResult:
        """Run the task.

        Raise ``TaskExecutionError`` for failures detected while running.
        Preconditions belong in ``validate``.
        """

    @abstractmethod
    def validate(self, context: TaskContext) -> bool:
        """Check ``context.input_data`` without side effects.

        Return False rather than raising when a precondition is not met.
        """

    def identity(self) -> HandlerInfo:
        if not self.task_type:
            raise TypeError(f"{self.__class__.__name__} does not define task_type")
        return HandlerInfo(self.task_type, self.version, self.description)

    def supports_async(self) -> bool:
        """Advisory; handlers returning False still run on the pool."""
        return False

    def estimated_duration_ms(self) -> int:
        """Advisory estimate, -1 when unknown. Never enforced as a timeout."""
        return -1

    def before_execution(self, context: TaskContext) -> None:
        pass

    def after_execution(self, context: TaskContext, result: TaskResult) -> None:
        """Runs only after ``execute`` returned normally."""
        pass

    def describe(self) -> Dict[str, Any]:
        info = self.identity()
        return {
            "type": info.type,
            "version": info.version,
            "description": info.description,
            "supportsAsync": self.supports_async(),
            "estimatedDurationMs": self.estimated_duration_ms(),
        }
