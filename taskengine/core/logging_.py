"""Structured logging configuration.

Every log line written while an execution attempt is in progress carries the
attempt's ``execution_id`` and ``task_type``; see ``execution_context``.
"""

import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars
from structlog.stdlib import add_log_level, add_logger_name, filter_by_level

from .config import get_config

config = get_config()

# Engine internals that would otherwise drown the execution log at DEBUG.
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def get_log_level() -> str:
    """Get log level from config or environment."""
    return os.getenv("LOG_LEVEL", config.app.log_level)


def get_log_format() -> str:
    return os.getenv("LOG_FORMAT", config.app.log_format).lower()


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    raise ValueError(f"Unknown log format: {log_format} (expected 'console' or 'json')")


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Configure structured logging for the engine and its workers."""

    log_level = log_level or get_log_level()
    level = getattr(logging, log_level.upper())

    processors = [
        filter_by_level,
        merge_contextvars,
        add_logger_name,
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format or get_log_format()),
    ]

    if log_file:
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(log_dir / log_file)
        file_handler.setLevel(level)
        logging.root.addHandler(file_handler)

    structlog.configure(
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        processors=processors,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def execution_context(task_type: str, execution_id: str) -> Iterator[None]:
    """Bind ``task_type`` and ``execution_id`` to every log line in the block.

    Bindings live in context variables, so each worker thread sees only the
    attempt it is running, and they are restored when the block exits.
    """
    with bound_contextvars(task_type=task_type, execution_id=execution_id):
        yield


class LoggingMixin:
    """Gives handlers a ``self.logger`` named after their class."""

    @property
    def logger(self):
        return structlog.get_logger(self.__class__.__name__)


def get_logger(name: str):
    """Get a logger with the given name."""
    return structlog.get_logger(name)


setup_logging()
