"""Turns "object created" notifications into workflow executions."""

import posixpath
from typing import Any, Callable, Dict, List
from urllib.parse import unquote_plus

from .core.error_handling import RecordFailureReport
from .core.exceptions import ExecutionAlreadyExistsError
from .core.executions import execution_name_for
from .core.keys import UPLOADS_PREFIX
from .core.models import (
    BatchSummary,
    NotificationRecord,
    ProcessingJob,
    RecordOutcome,
    RecordResult,
)
from .core.observability import LogContext
from .core.protocols import LoggerProtocol, WorkflowStarter
from .processors import multithread_process_batch

BatchDriver = Callable[[List[Dict[str, Any]], Callable[[Dict[str, Any]], RecordResult]], List[RecordResult]]

DEFAULT_CONTENT_TYPE = "image/jpeg"

CONTENT_TYPES_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


def guess_content_type(key: str) -> str:
    """Content type implied by the key's extension; unknown ones read as JPEG."""
    _, extension = posixpath.splitext(key)
    return CONTENT_TYPES_BY_EXTENSION.get(extension.lower(), DEFAULT_CONTENT_TYPE)


class UploadOrchestrator:
    """
    Starts exactly one workflow execution per uploaded object.

    Records are handled independently through the configured batch driver:
    one failing record never stops its siblings, and a duplicate delivery
    (execution name already taken) counts as success.
    """

    def __init__(
        self,
        starter: WorkflowStarter,
        logger: LoggerProtocol,
        process_batch_fn: BatchDriver = multithread_process_batch,
        upload_prefix: str = UPLOADS_PREFIX,
    ):
        self._starter = starter
        self._logger = logger
        self._process_batch = process_batch_fn
        self._upload_prefix = upload_prefix

    def handle_event(self, event: Dict[str, Any]) -> BatchSummary:
        records = event.get("Records") or []
        self._logger.info("Processing S3 event", record_count=len(records))

        with RecordFailureReport("Upload notification batch") as report:
            results = self._process_batch(records, self.process_record)
            report.collect(results)

        summary = BatchSummary.from_results(results)
        self._logger.info(
            "Completed processing all S3 records",
            started=summary.started,
            duplicates=summary.duplicates,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary

    def build_job(self, notification: NotificationRecord) -> ProcessingJob:
        key = unquote_plus(notification.s3_object.key)
        return ProcessingJob(
            bucket=notification.bucket.name,
            key=key,
            content_type=guess_content_type(key),
            size=notification.s3_object.size,
            uploaded_at=notification.event_time,
        )

    def process_record(self, record: Dict[str, Any]) -> RecordResult:
        job = self.build_job(NotificationRecord.from_event_record(record))
        key = job.key
        log_context = LogContext(correlation_id=key, component="upload_orchestrator")

        if not key.startswith(self._upload_prefix):
            self._logger.info("Skipping non-upload object", log_context)
            return RecordResult(key=key, outcome=RecordOutcome.SKIPPED)

        if key.endswith("/"):
            self._logger.info("Skipping folder", log_context)
            return RecordResult(key=key, outcome=RecordOutcome.SKIPPED)

        execution_id = execution_name_for(job)
        log_context = log_context.bind(execution_id=execution_id)

        self._logger.info("Starting processing for file", log_context, size=job.size)
        try:
            self._starter.start_execution(job, execution_id)
        except ExecutionAlreadyExistsError:
            self._logger.info("Execution already exists for file", log_context)
            return RecordResult(key=key, outcome=RecordOutcome.DUPLICATE, execution_id=execution_id)

        self._logger.info("Started workflow execution", log_context)
        return RecordResult(key=key, outcome=RecordOutcome.STARTED, execution_id=execution_id)
