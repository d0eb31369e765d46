"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from .models import ObjectHead, ProcessingJob, StoredObject, WorkflowExecution


class ObjectStoreProtocol(Protocol):
    """Object storage operations consumed by the pipeline."""

    def get_object(self, bucket: str, key: str) -> StoredObject:
        ...

    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        only_if_absent: bool = False,
    ) -> None:
        ...

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        ...

    def presign_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        content_length: int,
        ttl_seconds: int = 3600,
    ) -> str:
        ...


class ClockProtocol(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class RandomSourceProtocol(Protocol):
    """Source of random tokens for storage keys."""

    def token(self) -> str:
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...


class WorkflowStarter(Protocol):
    """Anything that can start a named workflow execution for a job."""

    def start_execution(self, job: ProcessingJob, name: str) -> Any:
        """Start an execution; raise ExecutionAlreadyExistsError on a name clash."""
        ...


class ExecutionStore(ABC):
    """Abstract record keeper for workflow executions."""

    @abstractmethod
    def create(self, execution: WorkflowExecution) -> None:
        """Atomically register a new execution.

        Raises:
            ExecutionAlreadyExistsError: an execution with the same id exists.
        """

    @abstractmethod
    def update(self, execution: WorkflowExecution) -> None:
        """Persist the latest state of an existing execution."""

    @abstractmethod
    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Return the stored execution, or None if unknown."""
