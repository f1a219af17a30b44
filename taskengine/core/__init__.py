"""Core infrastructure packages."""

from .config import Config, settings
from .logging_ import LoggingMixin, get_logger
from .monitoring import HealthChecker, HealthStatus, MetricsCollector

__all__ = [
    "Config",
    "settings",
    "LoggingMixin",
    "get_logger",
    "HealthChecker",
    "HealthStatus",
    "MetricsCollector",
]
