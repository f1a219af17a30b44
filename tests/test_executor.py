"""Tests for the synchronous execution lifecycle."""

import pytest
import structlog

from conftest import (
    CrashingHandler,
    DataListHandler,
    DomainFailureHandler,
    EchoHandler,
)
from taskengine.tasks import (
    ExecutionStatus,
    HandlerNotFoundError,
    ResultStatus,
    TaskContext,
    TaskExecutionError,
    TaskHandler,
    TaskResult,
    UnexpectedError,
    ValidationError,
)


class TestSuccessfulRun:
    def test_echo_returns_input_as_output(self, engine):
        engine.register_handler(EchoHandler())

        result = engine.run("ECHO", TaskContext(input_data={"x": 1}))

        assert result.status == ResultStatus.SUCCESS
        assert result.output_data == {"x": 1}

    def test_core_stamps_execution_id_and_time(self, engine, context):
        engine.register_handler(EchoHandler())

        result = engine.run("ECHO", context)

        assert result.execution_id == context.execution_id
        assert result.execution_time_ms >= 0

    def test_task_type_is_overwritten(self, engine):
        engine.register_handler(EchoHandler())
        context = TaskContext(task_type="SOMETHING_ELSE")

        engine.run("ECHO", context)

        assert context.task_type == "ECHO"

    def test_hooks_run_in_order(self, engine, context):
        handler = EchoHandler()
        engine.register_handler(handler)

        engine.run("ECHO", context)

        assert handler.hooks == ["before", "execute", "after"]
        assert context.get_variable("seen") is True

    def test_start_then_result_persisted(self, engine, store, context):
        engine.register_handler(EchoHandler())

        engine.run("ECHO", context)

        assert store.calls == [("start", context.execution_id), ("result", context.execution_id)]
        record = store.find_by_execution_id(context.execution_id)
        assert record.execution_status == ExecutionStatus.SUCCESS
        assert record.task_type == "ECHO"

    def test_handler_reported_partial_success_is_kept(self, engine, store, context):
        class PartialHandler(EchoHandler):
            task_type = "PARTIAL"

            def execute(self, context):
                return TaskResult.partial_success(output_data={"done": 3, "skipped": 1})

        engine.register_handler(PartialHandler())

        result = engine.run("PARTIAL", context)

        assert result.status == ResultStatus.PARTIAL_SUCCESS
        assert result.is_successful
        assert store.find_by_execution_id(context.execution_id).status == "PARTIAL_SUCCESS"

    def test_metrics_recorded(self, engine, metrics, context):
        engine.register_handler(EchoHandler())

        engine.run("ECHO", context)

        labels = {"task_type": "ECHO", "status": "SUCCESS"}
        assert metrics.get_counter("task_executions_total", labels) == 1


class TestLookupFailure:
    def test_missing_type_raises_without_persistence(self, engine, store, context):
        with pytest.raises(HandlerNotFoundError) as exc_info:
            engine.run("MISSING", context)

        error = exc_info.value
        assert error.error_code == "WORKFLOW_NOT_FOUND"
        assert error.task_type == "MISSING"
        assert error.result.status == ResultStatus.FAILED
        assert error.result.error_code == "WORKFLOW_NOT_FOUND"
        assert store.calls == []


class TestValidationFailure:
    def test_empty_data_list_fails_validation(self, engine, store):
        engine.register_handler(DataListHandler())
        context = TaskContext(input_data={"data": []})

        with pytest.raises(ValidationError) as exc_info:
            engine.run("DATA_LIST", context)

        assert "validation failed" in str(exc_info.value)
        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert exc_info.value.result.error_code == "VALIDATION_ERROR"
        assert store.calls == []

    @pytest.mark.parametrize("data", [None, [], "not-a-list", {}])
    def test_no_start_record_for_any_rejected_input(self, engine, store, data):
        engine.register_handler(DataListHandler())

        with pytest.raises(ValidationError):
            engine.run("DATA_LIST", TaskContext(input_data={"data": data}))

        assert store.started() == []

    def test_validate_raising_is_reported_as_validation_error(self, engine, store, context):
        class BrokenValidator(EchoHandler):
            task_type = "BROKEN_VALIDATOR"

            def validate(self, context):
                raise ValueError("bad schema")

        engine.register_handler(BrokenValidator())

        with pytest.raises(ValidationError) as exc_info:
            engine.run("BROKEN_VALIDATOR", context)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert store.calls == []


class TestExecutionFailure:
    def test_domain_error_code_is_preserved(self, engine, store, context):
        handler = DomainFailureHandler()
        engine.register_handler(handler)

        with pytest.raises(TaskExecutionError) as exc_info:
            engine.run("DOMAIN_FAIL", context)

        error = exc_info.value
        assert error.error_code == "LEDGER_ERROR"
        assert error.task_type == "DOMAIN_FAIL"
        assert error.execution_id == context.execution_id

        record = store.find_by_execution_id(context.execution_id)
        assert record.execution_status == ExecutionStatus.FAILED
        assert record.error_code == "LEDGER_ERROR"
        assert record.execution_time_ms > 0
        assert "missing ledger entry" in record.error_details

    def test_after_hook_skipped_when_execute_raises(self, engine, context):
        handler = DomainFailureHandler()
        engine.register_handler(handler)

        with pytest.raises(TaskExecutionError):
            engine.run("DOMAIN_FAIL", context)

        assert handler.after_called is False

    def test_unexpected_exception_is_wrapped(self, engine, store, context):
        engine.register_handler(CrashingHandler())

        with pytest.raises(UnexpectedError) as exc_info:
            engine.run("CRASH", context)

        error = exc_info.value
        assert error.error_code == "UNEXPECTED_ERROR"
        assert isinstance(error.__cause__, RuntimeError)
        assert error.result.error_details == "disk on fire"

        record = store.find_by_execution_id(context.execution_id)
        assert record.status == "FAILED"
        assert record.error_code == "UNEXPECTED_ERROR"
        assert record.error_details == "disk on fire"
        assert store.calls == [("start", context.execution_id), ("result", context.execution_id)]

    def test_error_without_code_defaults_to_unexpected(self, engine, context):
        class CodelessHandler(EchoHandler):
            task_type = "CODELESS"

            def execute(self, context):
                raise TaskExecutionError("nothing to do")

        engine.register_handler(CodelessHandler())

        with pytest.raises(TaskExecutionError) as exc_info:
            engine.run("CODELESS", context)

        assert exc_info.value.error_code == "UNEXPECTED_ERROR"
        assert exc_info.value.result.error_details == "nothing to do"

    def test_before_hook_failure_is_recorded(self, engine, store, context):
        class BadSetup(EchoHandler):
            task_type = "BAD_SETUP"

            def before_execution(self, context):
                raise OSError("no scratch dir")

        engine.register_handler(BadSetup())

        with pytest.raises(UnexpectedError):
            engine.run("BAD_SETUP", context)

        assert store.find_by_execution_id(context.execution_id).status == "FAILED"

    def test_non_result_return_is_unexpected(self, engine, context):
        class WrongReturn(EchoHandler):
            task_type = "WRONG_RETURN"

            def execute(self, context):
                return {"status": "ok"}

        engine.register_handler(WrongReturn())

        with pytest.raises(UnexpectedError) as exc_info:
            engine.run("WRONG_RETURN", context)

        assert "expected TaskResult" in exc_info.value.result.error_details

    def test_store_failure_does_not_break_run(self, registry, context):
        from taskengine.tasks import TaskExecutor

        class ExplodingStore:
            def save_execution_start(self, context):
                raise ConnectionError("db down")

            def save_execution_result(self, result):
                raise ConnectionError("db down")

        registry.register(EchoHandler())
        executor = TaskExecutor(registry, ExplodingStore())

        result = executor.run("ECHO", context)

        assert result.status == ResultStatus.SUCCESS

    def test_fast_failure_still_records_elapsed_time(self, engine, store, context):
        engine.register_handler(CrashingHandler())

        with pytest.raises(UnexpectedError):
            engine.run("CRASH", context)

        assert store.find_by_execution_id(context.execution_id).execution_time_ms >= 1


class TestReusedResult:
    def test_shared_result_object_is_not_rejected(self, engine, store):
        shared = TaskResult.success(output_data={"cached": True})

        class CachedHandler(EchoHandler):
            task_type = "CACHED"

            def execute(self, context):
                return shared

        engine.register_handler(CachedHandler())
        first, second = TaskContext(), TaskContext()

        results = [engine.run("CACHED", first), engine.run("CACHED", second)]

        assert [r.execution_id for r in results] == [first.execution_id, second.execution_id]
        assert all(r.output_data == {"cached": True} for r in results)
        assert shared.execution_id is None
        for ctx in (first, second):
            assert store.find_by_execution_id(ctx.execution_id).status == "SUCCESS"
        assert [kind for kind, _ in store.calls] == ["start", "result", "start", "result"]

    def test_returned_result_is_detached_from_handler_output(self, engine):
        shared = TaskResult.success(output_data={"n": 1})

        class CachedHandler(EchoHandler):
            task_type = "CACHED"

            def execute(self, context):
                return shared

        engine.register_handler(CachedHandler())

        result = engine.run("CACHED", TaskContext())
        result.add_output("extra", 2)

        assert shared.output_data == {"n": 1}


class TestLogContext:
    def test_execution_ids_are_bound_while_running(self, engine, context):
        seen = {}

        class Snooping(EchoHandler):
            task_type = "SNOOP"

            def execute(self, context):
                seen.update(structlog.contextvars.get_contextvars())
                return super().execute(context)

        engine.register_handler(Snooping())
        engine.run("SNOOP", context)

        assert seen == {"task_type": "SNOOP", "execution_id": context.execution_id}
        assert structlog.contextvars.get_contextvars() == {}


class TestValidateOnly:
    def test_validate_only_has_no_side_effects(self, engine, store):
        engine.register_handler(DataListHandler())

        assert engine.validate_only("DATA_LIST", TaskContext(input_data={"data": [1]})) is True
        assert engine.validate_only("DATA_LIST", TaskContext(input_data={"data": []})) is False
        assert store.calls == []

    def test_validate_only_unknown_type(self, engine, context):
        with pytest.raises(HandlerNotFoundError) as exc_info:
            engine.validate_only("NOPE", context)

        assert exc_info.value.execution_id == context.execution_id

    def test_validator_exception_becomes_validation_error(self, engine, store, context):
        class SchemaHandler(EchoHandler):
            task_type = "SCHEMA"

            def validate(self, context):
                raise ValueError("bad schema")

        engine.register_handler(SchemaHandler())

        with pytest.raises(ValidationError) as exc_info:
            engine.validate_only("SCHEMA", context)

        error = exc_info.value
        assert error.error_code == "VALIDATION_ERROR"
        assert error.task_type == "SCHEMA"
        assert "bad schema" in error.message
        assert isinstance(error.__cause__, ValueError)
        assert store.calls == []


class TestHandlerContract:
    def test_missing_task_type_is_rejected(self):
        class Nameless(TaskHandler):
            def validate(self, context):
                return True

            def execute(self, context):
                return TaskResult.success()

        with pytest.raises(TypeError):
            Nameless().identity()

    def test_defaults(self):
        handler = EchoHandler()

        assert handler.supports_async() is False
        assert handler.estimated_duration_ms() == -1
        assert handler.describe() == {
            "type": "ECHO",
            "version": "1.0.0",
            "description": "Returns its input unchanged",
            "supportsAsync": False,
            "estimatedDurationMs": -1,
        }
