"""Sample task handlers."""

from typing import List

from ..tasks import TaskHandler
from .data_aggregation import DataAggregationHandler
from .notification import NotificationHandler, simulated_sender


def default_handlers() -> List[TaskHandler]:
    """Fresh instances of the bundled handlers."""
    return [DataAggregationHandler(), NotificationHandler()]


__all__ = [
    "DataAggregationHandler",
    "NotificationHandler",
    "simulated_sender",
    "default_handlers",
]
