"""Thread-safe registry of task handlers keyed by task type."""

import threading
from typing import Dict, List, Optional

from ..core.logging_ import get_logger
from .errors import HandlerNotFoundError
from .handler import TaskHandler

logger = get_logger(__name__)


class HandlerRegistry:
    """Maps task type names to handler instances.

    Registering a type that already exists replaces the previous handler.
    Writers take the lock; lookups read a single dict slot, so a lookup that
    races a register sees either the old or the new handler.
    """

    def __init__(self):
        self._handlers: Dict[str, TaskHandler] = {}
        self._lock = threading.RLock()

    def register(self, handler: TaskHandler) -> None:
        info = handler.identity()

        with self._lock:
            previous = self._handlers.get(info.type)
            self._handlers[info.type] = handler

        if previous is not None and previous is not handler:
            logger.info(
                f"Replaced handler for task type: {info.type} "
                f"({previous.version} -> {info.version})"
            )
        else:
            logger.info(f"Registered handler for task type: {info.type} (version: {info.version})")

    def unregister(self, task_type: str) -> Optional[TaskHandler]:
        with self._lock:
            removed = self._handlers.pop(task_type, None)

        if removed is not None:
            logger.info(f"Unregistered handler for task type: {task_type}")
        return removed

    def lookup(self, task_type: str) -> TaskHandler:
        handler = self._handlers.get(task_type)
        if handler is None:
            raise HandlerNotFoundError(task_type)
        return handler

    def list_all(self) -> Dict[str, str]:
        """Snapshot of task type -> description."""
        with self._lock:
            handlers = list(self._handlers.items())
        return {task_type: handler.identity().description for task_type, handler in handlers}

    def types(self) -> List[str]:
        with self._lock:
            return sorted(self._handlers)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
