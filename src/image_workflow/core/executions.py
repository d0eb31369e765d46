"""Execution record stores providing idempotent execution starts."""

import hashlib
import threading
from typing import Dict, Optional

from .exceptions import (
    ExecutionAlreadyExistsError,
    ObjectAlreadyExistsError,
    ObjectNotFoundError,
)
from .models import ProcessingJob, WorkflowExecution
from .protocols import ExecutionStore, ObjectStoreProtocol

EXECUTION_NAME_PREFIX = "img-process-"


def execution_name_for(job: ProcessingJob) -> str:
    """
    Deterministic execution name for a job.

    Duplicate deliveries of the same notification carry the same bucket, key
    and event time, so they map to the same name.
    """
    digest = hashlib.sha256(
        f"{job.bucket}-{job.key}-{job.uploaded_at}".encode("utf-8")
    ).hexdigest()
    return f"{EXECUTION_NAME_PREFIX}{digest[:32]}"


class InMemoryExecutionStore(ExecutionStore):
    """Process-local store; ``create`` is a locked check-and-set."""

    def __init__(self) -> None:
        self._executions: Dict[str, WorkflowExecution] = {}
        self._lock = threading.Lock()

    def create(self, execution: WorkflowExecution) -> None:
        with self._lock:
            if execution.execution_id in self._executions:
                raise ExecutionAlreadyExistsError(execution.execution_id)
            self._executions[execution.execution_id] = execution.model_copy(deep=True)

    def update(self, execution: WorkflowExecution) -> None:
        with self._lock:
            self._executions[execution.execution_id] = execution.model_copy(deep=True)

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        with self._lock:
            execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None


class S3ExecutionStore(ExecutionStore):
    """
    Durable store keeping one JSON record per execution under
    ``executions/<execution id>.json``. Creation uses a conditional write, so
    two processes racing on the same id cannot both succeed.
    """

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        bucket: str,
        prefix: str = "executions/",
    ):
        self._object_store = object_store
        self._bucket = bucket
        self._prefix = prefix

    def _key(self, execution_id: str) -> str:
        return f"{self._prefix}{execution_id}.json"

    def _write(self, execution: WorkflowExecution, only_if_absent: bool) -> None:
        self._object_store.put_object(
            self._bucket,
            self._key(execution.execution_id),
            execution.model_dump_json(by_alias=True).encode("utf-8"),
            "application/json",
            only_if_absent=only_if_absent,
        )

    def create(self, execution: WorkflowExecution) -> None:
        try:
            self._write(execution, only_if_absent=True)
        except ObjectAlreadyExistsError as e:
            raise ExecutionAlreadyExistsError(execution.execution_id) from e

    def update(self, execution: WorkflowExecution) -> None:
        self._write(execution, only_if_absent=False)

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        try:
            stored = self._object_store.get_object(self._bucket, self._key(execution_id))
        except ObjectNotFoundError:
            return None
        return WorkflowExecution.model_validate_json(stored.body)
