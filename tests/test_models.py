"""Tests for the shared pydantic models."""

from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from image_workflow.core.models import (
    BatchSummary,
    ExecutionState,
    FailureRecord,
    NotificationRecord,
    ProcessedFiles,
    ProcessingJob,
    RecordOutcome,
    RecordResult,
    ResizeEvent,
    ResizeResult,
    Dimensions,
    StepOutcome,
    StepRetry,
    StepSuccess,
    SuccessRecord,
    ValidationResult,
    WorkflowExecution,
    isoformat,
)


def make_job(**overrides) -> ProcessingJob:
    values = dict(
        bucket="bucket",
        key="uploads/1700000000000-abc123-photo.jpg",
        content_type="image/jpeg",
        size=1024,
        uploaded_at="2024-01-01T00:00:00.000Z",
    )
    values.update(overrides)
    return ProcessingJob(**values)


class TestWireShapes:
    def test_validation_result_omits_missing_fields(self):
        result = ValidationResult(is_valid=False, error="File not found")
        assert result.to_payload() == {"isValid": False, "error": "File not found"}

    def test_resize_result_uses_camel_case(self):
        result = ResizeResult(
            output_key="processed/a-resized-10x5.jpg",
            dimensions=Dimensions(width=10, height=5),
            file_size=321,
        )
        assert result.to_payload() == {
            "outputKey": "processed/a-resized-10x5.jpg",
            "dimensions": {"width": 10, "height": 5},
            "fileSize": 321,
        }

    def test_resize_event_accepts_camel_case_payload(self):
        event = ResizeEvent.model_validate(
            {"bucket": "b", "key": "k", "width": 800, "maintainAspectRatio": False}
        )
        assert event.width == 800
        assert event.height is None
        assert event.maintain_aspect_ratio is False

    def test_processing_job_is_frozen(self):
        job = make_job()
        with pytest.raises(ValidationError):
            job.key = "other"


class TestStepOutcome:
    adapter = TypeAdapter(StepOutcome)

    def test_discriminates_on_status(self):
        outcome = self.adapter.validate_python({"status": "retry", "reason": "throttled"})
        assert isinstance(outcome, StepRetry)
        assert outcome.reason == "throttled"

    def test_success_carries_output(self):
        outcome = self.adapter.validate_python({"status": "success", "output": {"a": 1}})
        assert isinstance(outcome, StepSuccess)
        assert outcome.output == {"a": 1}

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            self.adapter.validate_python({"status": "pending"})


class TestWorkflowExecution:
    def test_terminal_record_round_trips_through_json(self):
        execution = WorkflowExecution(
            execution_id="img-process-1",
            job=make_job(),
            state=ExecutionState.SUCCEEDED,
            output=SuccessRecord(
                original_key="uploads/a.jpg",
                processed_files=ProcessedFiles(resized="processed/r.jpg", adjusted="processed/e.jpg"),
                completed_at="2024-01-01T00:00:01.000Z",
            ),
            started_at="2024-01-01T00:00:00.000Z",
        )

        restored = WorkflowExecution.model_validate_json(execution.model_dump_json(by_alias=True))

        assert isinstance(restored.output, SuccessRecord)
        assert restored.output.processed_files.adjusted == "processed/e.jpg"
        assert restored.job == execution.job

    def test_failure_record_shape(self):
        record = FailureRecord(original_key="uploads/a.jpg", error="boom", failed_at="t")
        assert record.to_payload() == {
            "status": "failed",
            "originalKey": "uploads/a.jpg",
            "error": "boom",
            "failedAt": "t",
        }


class TestNotificationRecord:
    def test_parses_s3_event_record(self):
        record = NotificationRecord.from_event_record(
            {
                "eventTime": "2024-01-01T00:00:00.000Z",
                "s3": {"bucket": {"name": "b"}, "object": {"key": "uploads/a.jpg", "size": 42}},
            }
        )
        assert record.bucket.name == "b"
        assert record.s3_object.key == "uploads/a.jpg"
        assert record.s3_object.size == 42
        assert record.event_time == "2024-01-01T00:00:00.000Z"

    def test_parses_flattened_record(self):
        record = NotificationRecord.from_event_record(
            {
                "bucket": {"name": "b"},
                "object": {"key": "uploads/a.jpg"},
                "eventTime": "2024-01-01T00:00:00.000Z",
            }
        )
        assert record.s3_object.size == 0

    def test_missing_bucket_rejected(self):
        with pytest.raises(ValidationError):
            NotificationRecord.from_event_record({"s3": {"object": {"key": "k"}}})


def test_batch_summary_counts_outcomes():
    results = [
        RecordResult(key="a", outcome=RecordOutcome.STARTED, execution_id="x"),
        RecordResult(key="b", outcome=RecordOutcome.DUPLICATE, execution_id="y"),
        RecordResult(key="c", outcome=RecordOutcome.SKIPPED),
        RecordResult(key="d", outcome=RecordOutcome.FAILED, error="boom"),
    ]

    summary = BatchSummary.from_results(results)

    assert summary.total_records == 4
    assert (summary.started, summary.duplicates, summary.skipped, summary.failed) == (1, 1, 1, 1)
    assert [r.success for r in results] == [True, True, True, False]


def test_isoformat_uses_millisecond_precision_and_z_suffix():
    moment = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    assert isoformat(moment) == "2024-01-02T03:04:05.678Z"
