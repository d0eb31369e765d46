"""Common functions shared across all batch driver implementations."""

from typing import Any, Callable, Dict

from ..core.models import RecordOutcome, RecordResult

RecordHandler = Callable[[Dict[str, Any]], RecordResult]


def record_identifier(record: Any) -> str:
    """Best-effort object key of a notification record, for error reporting."""
    if not isinstance(record, dict):
        return repr(record)
    body = record.get("s3", record)
    if isinstance(body, dict):
        s3_object = body.get("object")
        if isinstance(s3_object, dict) and s3_object.get("key"):
            return str(s3_object["key"])
    return "<unknown>"


def failed_result(record: Any, error: BaseException) -> RecordResult:
    return RecordResult(
        key=record_identifier(record),
        outcome=RecordOutcome.FAILED,
        error=str(error) or type(error).__name__,
    )
