"""Execution record persistence using SQLAlchemy."""

import json
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..tasks.context import TaskContext
from ..tasks.result import TaskResult
from ..tasks.status import ExecutionStatus, map_result_status
from .config import get_config
from .logging_ import get_logger

logger = get_logger(__name__)

config = get_config()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class ExecutionRecord(Base):
    """One row per execution attempt, keyed by execution_id."""
    __tablename__ = "task_execution"

    id = Column(Integer, primary_key=True, autoincrement=True)
    execution_id = Column(String(64), nullable=False, unique=True, index=True)
    task_type = Column(String(255), index=True)
    user_id = Column(String(255), index=True)
    status = Column(String(32), nullable=False, index=True)
    input_data = Column(JSON)
    output_data = Column(JSON)
    metadata_ = Column("metadata", JSON)
    error_code = Column(String(100))
    error_message = Column(Text)
    error_details = Column(Text)
    execution_time_ms = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    @property
    def execution_status(self) -> ExecutionStatus:
        return ExecutionStatus(self.status)

    def apply_start(self, context: TaskContext) -> None:
        self.execution_id = context.execution_id
        self.task_type = context.task_type
        self.user_id = context.user_id
        self.status = ExecutionStatus.RUNNING.value
        self.input_data = dict(context.input_data)
        self.metadata_ = dict(context.metadata)
        self.created_at = context.created_at
        self.updated_at = utcnow()

    def apply_result(self, result: TaskResult) -> None:
        self.status = map_result_status(result.status).value
        self.output_data = dict(result.output_data)
        self.error_code = result.error_code
        self.error_message = result.message
        self.error_details = result.error_details
        self.execution_time_ms = result.execution_time_ms
        self.completed_at = result.completed_at
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "executionId": self.execution_id,
            "taskType": self.task_type,
            "userId": self.user_id,
            "status": self.status,
            "inputData": self.input_data,
            "outputData": self.output_data,
            "metadata": self.metadata_,
            "errorCode": self.error_code,
            "errorMessage": self.error_message,
            "errorDetails": self.error_details,
            "executionTimeMs": self.execution_time_ms,
            "createdAt": iso(self.created_at),
            "completedAt": iso(self.completed_at),
            "updatedAt": iso(self.updated_at),
        }


def _sort_key(record: ExecutionRecord) -> datetime:
    created = record.created_at or datetime.min.replace(tzinfo=timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


class ExecutionStore(ABC):
    """Contract the engine and the API use to persist execution records.

    ``save_execution_result`` upserts by execution id, so saving the same
    result twice leaves one terminal record.
    """

    @abstractmethod
    def save_execution_start(self, context: TaskContext) -> ExecutionRecord:
        ...

    @abstractmethod
    def save_execution_result(self, result: TaskResult) -> ExecutionRecord:
        ...

    @abstractmethod
    def find_by_execution_id(self, execution_id: str) -> Optional[ExecutionRecord]:
        ...

    @abstractmethod
    def find_by_task_type(self, task_type: str) -> List[ExecutionRecord]:
        ...

    @abstractmethod
    def find_by_user(self, user_id: str) -> List[ExecutionRecord]:
        ...

    @abstractmethod
    def find_by_status(self, status: ExecutionStatus) -> List[ExecutionRecord]:
        ...

    @abstractmethod
    def find_all(self) -> List[ExecutionRecord]:
        ...

    @abstractmethod
    def update_status(self, execution_id: str, status: ExecutionStatus) -> bool:
        ...

    @abstractmethod
    def delete_by_execution_id(self, execution_id: str) -> bool:
        ...


class InMemoryExecutionStore(ExecutionStore):
    """Process-local store, used when no database is configured."""

    def __init__(self):
        self._records: Dict[str, ExecutionRecord] = {}
        self._lock = threading.Lock()
        self._next_id = 1

    def _get_or_create(self, execution_id: str) -> ExecutionRecord:
        record = self._records.get(execution_id)
        if record is None:
            record = ExecutionRecord(
                id=self._next_id, execution_id=execution_id, created_at=utcnow()
            )
            self._next_id += 1
            self._records[execution_id] = record
        return record

    def save_execution_start(self, context: TaskContext) -> ExecutionRecord:
        with self._lock:
            record = self._get_or_create(context.execution_id)
            record.apply_start(context)
        logger.debug(f"Saved execution start: {context.execution_id}")
        return record

    def save_execution_result(self, result: TaskResult) -> ExecutionRecord:
        with self._lock:
            record = self._get_or_create(result.execution_id)
            record.apply_result(result)
        logger.debug(f"Saved execution result: {result.execution_id} with status: {record.status}")
        return record

    def find_by_execution_id(self, execution_id: str) -> Optional[ExecutionRecord]:
        with self._lock:
            return self._records.get(execution_id)

    def _filter(self, **criteria: Any) -> List[ExecutionRecord]:
        with self._lock:
            records = [
                r for r in self._records.values()
                if all(getattr(r, k) == v for k, v in criteria.items())
            ]
        return sorted(records, key=_sort_key, reverse=True)

    def find_by_task_type(self, task_type: str) -> List[ExecutionRecord]:
        return self._filter(task_type=task_type)

    def find_by_user(self, user_id: str) -> List[ExecutionRecord]:
        return self._filter(user_id=user_id)

    def find_by_status(self, status: ExecutionStatus) -> List[ExecutionRecord]:
        return self._filter(status=status.value)

    def find_all(self) -> List[ExecutionRecord]:
        return self._filter()

    def update_status(self, execution_id: str, status: ExecutionStatus) -> bool:
        with self._lock:
            record = self._records.get(execution_id)
            if record is not None:
                record.status = status.value
                record.updated_at = utcnow()

        if record is None:
            logger.warning(f"Execution not found for ID: {execution_id}")
            return False
        return True

    def delete_by_execution_id(self, execution_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(execution_id, None)
        return removed is not None


class Database(ExecutionStore):
    """SQL-backed execution store."""

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or config.database.url
        self.echo = config.database.echo if echo is None else echo
        self.engine = None
        self._session_factory = None

    def connect(self) -> None:
        """Initialize the engine and create tables."""
        if self.engine is not None:
            return

        url = make_url(self.url)
        kwargs: Dict[str, Any] = {
            "echo": self.echo,
            "json_serializer": lambda obj: json.dumps(obj, default=str),
        }

        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                db_dir = os.path.dirname(url.database)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)
        else:
            kwargs["pool_pre_ping"] = True

        self.engine = create_engine(url, **kwargs)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

        logger.info(f"Connected to database: {url.render_as_string(hide_password=True)}")

    def close(self) -> None:
        """Close database connection."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self._session_factory = None
            logger.info("Database connection closed")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Get a database session."""
        if self._session_factory is None:
            self.connect()

        with self._session_factory() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def _get(self, session: Session, execution_id: str) -> Optional[ExecutionRecord]:
        return session.execute(
            select(ExecutionRecord).where(ExecutionRecord.execution_id == execution_id)
        ).scalar_one_or_none()

    def save_execution_start(self, context: TaskContext) -> ExecutionRecord:
        with self.session() as session:
            record = self._get(session, context.execution_id)
            if record is None:
                record = ExecutionRecord()
                session.add(record)
            record.apply_start(context)
            session.flush()

        logger.debug(f"Saved execution start: {record.execution_id}")
        return record

    def save_execution_result(self, result: TaskResult) -> ExecutionRecord:
        with self.session() as session:
            record = self._get(session, result.execution_id)
            if record is None:
                record = ExecutionRecord(execution_id=result.execution_id, created_at=utcnow())
                session.add(record)
            record.apply_result(result)
            session.flush()

        logger.debug(f"Saved execution result: {record.execution_id} with status: {record.status}")
        return record

    def find_by_execution_id(self, execution_id: str) -> Optional[ExecutionRecord]:
        with self.session() as session:
            return self._get(session, execution_id)

    def _query(self, *criteria) -> List[ExecutionRecord]:
        with self.session() as session:
            query = select(ExecutionRecord).where(*criteria).order_by(
                ExecutionRecord.created_at.desc()
            )
            return list(session.execute(query).scalars().all())

    def find_by_task_type(self, task_type: str) -> List[ExecutionRecord]:
        return self._query(ExecutionRecord.task_type == task_type)

    def find_by_user(self, user_id: str) -> List[ExecutionRecord]:
        return self._query(ExecutionRecord.user_id == user_id)

    def find_by_status(self, status: ExecutionStatus) -> List[ExecutionRecord]:
        return self._query(ExecutionRecord.status == status.value)

    def find_all(self) -> List[ExecutionRecord]:
        return self._query()

    def update_status(self, execution_id: str, status: ExecutionStatus) -> bool:
        with self.session() as session:
            record = self._get(session, execution_id)
            if record is None:
                logger.warning(f"Execution not found for ID: {execution_id}")
                return False
            record.status = status.value
            record.updated_at = utcnow()

        logger.debug(f"Updated execution {execution_id} status to: {status.value}")
        return True

    def delete_by_execution_id(self, execution_id: str) -> bool:
        with self.session() as session:
            deleted = session.execute(
                delete(ExecutionRecord).where(ExecutionRecord.execution_id == execution_id)
            ).rowcount

        logger.debug(f"Deleted execution: {execution_id}")
        return bool(deleted)


def create_store(url: Optional[str] = None) -> ExecutionStore:
    """Build the store for a database URL; ``memory://`` gives the in-process store."""
    url = url or config.database.url
    if url.startswith("memory://"):
        return InMemoryExecutionStore()

    db = Database(url)
    db.connect()
    return db
