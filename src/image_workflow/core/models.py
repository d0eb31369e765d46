"""Shared data models for the image workflow pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_FILE_SIZE = 25 * 1024 * 1024

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")


class WireModel(BaseModel):
    """Base model whose JSON shape uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Dump to the JSON-compatible dict exchanged between steps."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass
class StoredObject:
    """Object body and headers returned by the object store."""

    body: bytes
    content_type: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class ObjectHead:
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class UploadRequest(WireModel):
    """Client request for a presigned upload URL."""

    filename: str
    content_type: str
    file_size: int


class UploadResponse(WireModel):
    """Presigned upload URL issued to the client."""

    upload_url: str
    key: str
    expires_at: str


class ProcessingJob(WireModel):
    """Immutable description of one uploaded object to process."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    content_type: str
    size: int
    uploaded_at: str


class ValidationEvent(WireModel):
    bucket: str
    key: str


class ValidationResult(WireModel):
    """Outcome of validating a stored object before processing."""

    is_valid: bool
    content_type: Optional[str] = None
    size: Optional[int] = None
    error: Optional[str] = None


class ResizeEvent(WireModel):
    bucket: str
    key: str
    width: Optional[int] = None
    height: Optional[int] = None
    maintain_aspect_ratio: bool = True


class Dimensions(WireModel):
    width: int
    height: int


class ResizeResult(WireModel):
    output_key: str
    dimensions: Dimensions
    file_size: int


class ExposureEvent(WireModel):
    bucket: str
    key: str
    adjustment: float = 0.0


class ExposureResult(WireModel):
    output_key: str
    adjustment: float
    file_size: int


class StepSuccess(BaseModel):
    """Step attempt finished and produced an output payload."""

    status: Literal["success"] = "success"
    output: Dict[str, Any] = Field(default_factory=dict)


class StepError(BaseModel):
    """Step failed in a way that ends the execution."""

    status: Literal["error"] = "error"
    error: str


class StepRetry(BaseModel):
    """Step failed transiently and may be attempted again."""

    status: Literal["retry"] = "retry"
    reason: str


StepOutcome = Annotated[
    Union[StepSuccess, StepError, StepRetry], Field(discriminator="status")
]


class ExecutionState(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class StepRecord(WireModel):
    """History entry for one state the execution passed through."""

    step: str
    status: str
    attempts: int = 0
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    started_at: str
    finished_at: Optional[str] = None


class ProcessedFiles(WireModel):
    resized: str
    adjusted: str


class SuccessRecord(WireModel):
    status: Literal["success"] = "success"
    original_key: str
    processed_files: ProcessedFiles
    completed_at: str


class FailureRecord(WireModel):
    status: Literal["failed"] = "failed"
    original_key: str
    error: str
    failed_at: str


TerminalRecord = Annotated[
    Union[SuccessRecord, FailureRecord], Field(discriminator="status")
]


class WorkflowExecution(WireModel):
    """One run of the workflow for one uploaded object."""

    execution_id: str
    job: ProcessingJob
    state: ExecutionState = ExecutionState.RUNNING
    current_step: Optional[str] = None
    step_results: List[StepRecord] = Field(default_factory=list)
    output: Optional[TerminalRecord] = None
    started_at: str
    stopped_at: Optional[str] = None


class NotificationObject(BaseModel):
    key: str
    size: int = 0


class NotificationBucket(BaseModel):
    name: str


class NotificationRecord(BaseModel):
    """A single "object created" record, flattened from the S3 event shape."""

    bucket: NotificationBucket
    s3_object: NotificationObject = Field(alias="object")
    event_time: str = Field(alias="eventTime")

    @classmethod
    def from_event_record(cls, record: Dict[str, Any]) -> "NotificationRecord":
        body = record.get("s3", record)
        return cls.model_validate(
            {
                "bucket": body.get("bucket"),
                "object": body.get("object"),
                "eventTime": record.get("eventTime"),
            }
        )


class RecordOutcome(str, Enum):
    STARTED = "started"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    FAILED = "failed"


class RecordResult(BaseModel):
    """Result of handling one notification record."""

    key: str
    outcome: RecordOutcome
    execution_id: Optional[str] = None
    error: str = ""

    @property
    def success(self) -> bool:
        return self.outcome != RecordOutcome.FAILED


class BatchSummary(BaseModel):
    total_records: int = 0
    started: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[RecordResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[RecordResult]) -> "BatchSummary":
        counts = {outcome: 0 for outcome in RecordOutcome}
        for result in results:
            counts[result.outcome] += 1
        return cls(
            total_records=len(results),
            started=counts[RecordOutcome.STARTED],
            duplicates=counts[RecordOutcome.DUPLICATE],
            skipped=counts[RecordOutcome.SKIPPED],
            failed=counts[RecordOutcome.FAILED],
            results=results,
        )


def isoformat(moment: datetime) -> str:
    """Render a UTC datetime the way object metadata and records expect."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
