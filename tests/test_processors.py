"""Tests for the batch driver modules."""

import threading

import pytest

from image_workflow.core.models import RecordOutcome, RecordResult
from image_workflow.processors import (
    BATCH_DRIVERS,
    asyncio_process_batch,
    multithread_process_batch,
    serial_process_batch,
)
from image_workflow.processors.common import failed_result, record_identifier


def make_record(key: str) -> dict:
    return {
        "eventTime": "2024-01-01T00:00:00.000Z",
        "s3": {"bucket": {"name": "b"}, "object": {"key": key, "size": 1}},
    }


def handler(record: dict) -> RecordResult:
    key = record["s3"]["object"]["key"]
    if "bad" in key:
        raise RuntimeError(f"cannot handle {key}")
    return RecordResult(key=key, outcome=RecordOutcome.STARTED)


@pytest.mark.parametrize("driver", sorted(BATCH_DRIVERS))
def test_driver_isolates_failures_and_keeps_order(driver):
    records = [make_record("uploads/a.jpg"), make_record("uploads/bad.jpg"), make_record("uploads/c.jpg")]

    results = BATCH_DRIVERS[driver](records, handler)

    assert [r.key for r in results] == ["uploads/a.jpg", "uploads/bad.jpg", "uploads/c.jpg"]
    assert [r.outcome for r in results] == [
        RecordOutcome.STARTED,
        RecordOutcome.FAILED,
        RecordOutcome.STARTED,
    ]
    assert results[1].error == "cannot handle uploads/bad.jpg"


@pytest.mark.parametrize(
    "process_batch", [serial_process_batch, multithread_process_batch, asyncio_process_batch]
)
def test_driver_handles_empty_batch(process_batch):
    assert process_batch([], handler) == []


def test_multithread_driver_runs_records_concurrently():
    barrier = threading.Barrier(3, timeout=5)

    def waiting_handler(record):
        barrier.wait()
        return handler(record)

    records = [make_record(f"uploads/{i}.jpg") for i in range(3)]
    results = multithread_process_batch(records, waiting_handler)

    assert all(r.success for r in results)


def test_serial_driver_runs_in_order():
    seen = []

    def recording_handler(record):
        seen.append(record["s3"]["object"]["key"])
        return handler(record)

    serial_process_batch([make_record("uploads/1.jpg"), make_record("uploads/2.jpg")], recording_handler)

    assert seen == ["uploads/1.jpg", "uploads/2.jpg"]


class TestCommon:
    def test_record_identifier_reads_nested_key(self):
        assert record_identifier(make_record("uploads/x.jpg")) == "uploads/x.jpg"

    def test_record_identifier_reads_flat_key(self):
        assert record_identifier({"object": {"key": "uploads/y.jpg"}}) == "uploads/y.jpg"

    def test_record_identifier_unknown(self):
        assert record_identifier({"s3": {}}) == "<unknown>"
        assert record_identifier("garbage") == "'garbage'"

    def test_failed_result_uses_exception_type_when_message_empty(self):
        result = failed_result({}, KeyError())
        assert result.outcome is RecordOutcome.FAILED
        assert result.error == "KeyError"
