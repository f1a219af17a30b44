"""Shared fixtures and fake handlers for the task engine tests."""

import threading
import time

import pytest

from taskengine.core.database import InMemoryExecutionStore
from taskengine.core.monitoring import MetricsCollector
from taskengine.tasks import (
    HandlerRegistry,
    TaskContext,
    TaskEngine,
    TaskExecutionError,
    TaskHandler,
    TaskResult,
)


class RecordingStore(InMemoryExecutionStore):
    """In-memory store that remembers every save call in order."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def save_execution_start(self, context):
        self.calls.append(("start", context.execution_id))
        return super().save_execution_start(context)

    def save_execution_result(self, result):
        self.calls.append(("result", result.execution_id))
        return super().save_execution_result(result)

    def started(self):
        return [eid for kind, eid in self.calls if kind == "start"]


class EchoHandler(TaskHandler):
    task_type = "ECHO"
    description = "Returns its input unchanged"

    def __init__(self, version="1.0.0"):
        self.version = version
        self.hooks = []

    def validate(self, context):
        return True

    def before_execution(self, context):
        self.hooks.append("before")
        context.set_variable("seen", True)

    def execute(self, context):
        self.hooks.append("execute")
        return TaskResult.success(output_data=dict(context.input_data))

    def after_execution(self, context, result):
        self.hooks.append("after")


class DataListHandler(TaskHandler):
    """Rejects contexts whose ``data`` list is missing or empty."""

    task_type = "DATA_LIST"
    description = "Requires a non-empty data list"

    def validate(self, context):
        data = context.get_input("data")
        return isinstance(data, list) and len(data) > 0

    def execute(self, context):
        return TaskResult.success(output_data={"count": len(context.get_input("data"))})


class DomainFailureHandler(TaskHandler):
    """Fails part way through with a handler-specific error code."""

    task_type = "DOMAIN_FAIL"
    description = "Always fails with a domain error"

    def __init__(self):
        self.after_called = False

    def validate(self, context):
        return True

    def execute(self, context):
        time.sleep(0.01)
        try:
            raise KeyError("missing ledger entry")
        except KeyError as e:
            raise TaskExecutionError("Ledger reconciliation failed", "LEDGER_ERROR") from e

    def after_execution(self, context, result):
        self.after_called = True


class CrashingHandler(TaskHandler):
    task_type = "CRASH"
    description = "Raises a plain exception"

    def validate(self, context):
        return True

    def execute(self, context):
        raise RuntimeError("disk on fire")


class ConcurrencyCountingHandler(TaskHandler):
    """Tracks how many executions overlap."""

    task_type = "COUNTING"
    description = "Counts concurrent executions"

    def __init__(self, delay=0.02):
        self.delay = delay
        self.current = 0
        self.peak = 0
        self.seen = []
        self._lock = threading.Lock()

    def validate(self, context):
        return True

    def execute(self, context):
        with self._lock:
            self.current += 1
            self.peak = max(self.peak, self.current)
            self.seen.append(context.execution_id)
        try:
            time.sleep(self.delay)
        finally:
            with self._lock:
                self.current -= 1
        return TaskResult.success(output_data={"n": context.get_input("n")})


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def engine(registry, store, metrics):
    engine = TaskEngine(registry=registry, store=store, metrics=metrics, pool_size=4)
    yield engine
    engine.shutdown()


@pytest.fixture
def context():
    return TaskContext(input_data={"x": 1})
