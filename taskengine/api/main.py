"""FastAPI application exposing the task engine."""

from concurrent.futures import Future
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..core.config import get_config
from ..core.database import ExecutionStore, create_store
from ..core.logging_ import get_logger
from ..core.monitoring import HealthChecker
from ..handlers import default_handlers
from ..tasks import (
    EngineShutdownError,
    ExecutionStatus,
    TaskContext,
    TaskEngine,
    TaskEngineError,
)

logger = get_logger(__name__)

config = get_config()


class TaskRequest(BaseModel):
    """Execution request body."""
    model_config = ConfigDict(populate_by_name=True)

    execution_id: Optional[str] = Field(default=None, alias="executionId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    input_data: Dict[str, Any] = Field(default_factory=dict, alias="inputData")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_context(self) -> TaskContext:
        kwargs = {}
        if self.execution_id:
            kwargs["execution_id"] = self.execution_id
        return TaskContext(
            input_data=self.input_data,
            metadata=self.metadata,
            user_id=self.user_id,
            **kwargs,
        )


class AcceptedResponse(BaseModel):
    """Async execution acknowledgement."""
    executionId: str
    status: str
    message: str


class ValidationResponse(BaseModel):
    valid: bool


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    components: Dict[str, Dict[str, Any]] = {}


def _status_code(error: TaskEngineError) -> int:
    if isinstance(error, EngineShutdownError):
        return 503
    return 400 if error.client_error else 500


def _error_response(error: TaskEngineError) -> JSONResponse:
    status_code = _status_code(error)
    return JSONResponse(status_code=status_code, content=error.to_dict())


def _log_async_outcome(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error(f"Async task failed: {error}")


def create_app(
    engine: Optional[TaskEngine] = None,
    store: Optional[ExecutionStore] = None,
) -> FastAPI:
    """Build the API around an engine, creating one from configuration if needed."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.engine is None
        if owned:
            app.state.store = app.state.store or create_store()
            app.state.engine = TaskEngine.with_handlers(default_handlers(), store=app.state.store)
        yield
        if owned:
            app.state.engine.shutdown()
            close = getattr(app.state.store, "close", None)
            if close is not None:
                close()

    app = FastAPI(
        title="Task Engine",
        description="Pluggable task execution engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine
    app.state.store = store if store is not None else (engine.store if engine else None)

    health_checker = HealthChecker()

    async def check_engine():
        stats = app.state.engine.stats()
        return {"healthy": True, "pool_size": stats.pool_size, "active": stats.active}

    async def check_store():
        app.state.store.find_by_execution_id("__health__")
        return {"healthy": True}

    health_checker.register_component("engine", check_engine, critical=True)
    health_checker.register_component("store", check_store, critical=True)

    @app.exception_handler(TaskEngineError)
    async def engine_error_handler(request: Request, exc: TaskEngineError):
        logger.error(f"Task request failed: {exc.message}", error_code=exc.error_code)
        return _error_response(exc)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        status = await health_checker.get_health_status(__version__)
        return HealthResponse(
            status=status.status,
            timestamp=status.timestamp,
            version=status.version,
            components={
                name: {"status": c["status"], "critical": c["critical"]}
                for name, c in status.components.items()
            },
        )

    @app.get("/metrics", response_class=PlainTextResponse)
    async def get_metrics():
        return app.state.engine.metrics.format_prometheus()

    @app.post("/api/tasks/{task_type}/execute")
    def execute_task(task_type: str, request: TaskRequest):
        """Execute a task synchronously."""
        context = request.to_context()
        logger.info(f"Executing task: {task_type} with execution ID: {context.execution_id}")
        result = app.state.engine.run(task_type, context)
        return result.to_dict()

    @app.post("/api/tasks/{task_type}/execute-async", status_code=202, response_model=AcceptedResponse)
    def execute_task_async(task_type: str, request: TaskRequest):
        """Queue a task on the worker pool."""
        context = request.to_context()
        future = app.state.engine.run_async(task_type, context)
        future.add_done_callback(_log_async_outcome)

        return AcceptedResponse(
            executionId=context.execution_id,
            status="ACCEPTED",
            message="Task execution started asynchronously",
        )

    @app.post("/api/tasks/{task_type}/validate", response_model=ValidationResponse)
    def validate_task(task_type: str, request: TaskRequest):
        """Validate a context without executing it."""
        return ValidationResponse(valid=app.state.engine.validate_only(task_type, request.to_context()))

    @app.get("/api/tasks/types", response_model=Dict[str, str])
    def list_task_types():
        return app.state.engine.list_registered()

    @app.get("/api/tasks/executions", response_model=List[Dict[str, Any]])
    def list_executions(
        task_type: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
    ):
        store = app.state.store

        if task_type is not None:
            records = store.find_by_task_type(task_type)
        elif user_id is not None:
            records = store.find_by_user(user_id)
        elif status is not None:
            try:
                records = store.find_by_status(ExecutionStatus.parse(status))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        else:
            records = store.find_all()

        return [record.to_dict() for record in records]

    @app.get("/api/tasks/executions/{execution_id}")
    def get_execution(execution_id: str):
        record = app.state.store.find_by_execution_id(execution_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")
        return record.to_dict()

    @app.delete("/api/tasks/executions/{execution_id}", status_code=204)
    def delete_execution(execution_id: str):
        if not app.state.store.delete_by_execution_id(execution_id):
            raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")
        return Response(status_code=204)

    @app.get("/api/tasks/{task_type}/info")
    def get_task_info(task_type: str):
        try:
            return app.state.engine.describe(task_type)
        except TaskEngineError:
            raise HTTPException(status_code=404, detail=f"Task type not found: {task_type}")

    return app


app = create_app()
