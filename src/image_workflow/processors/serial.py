"""Serial batch driver - handles notification records one at a time."""

from typing import Any, Dict, List

from ..core.logging_config import get_logger
from ..core.models import RecordResult
from .common import RecordHandler, failed_result


def process_batch(
    records: List[Dict[str, Any]], handler: RecordHandler
) -> List[RecordResult]:
    """
    Handle records sequentially.

    Args:
        records: Notification records
        handler: Per-record handler

    Returns:
        One result per record, in input order
    """
    logger = get_logger("serial-processor")
    results: List[RecordResult] = []

    for record in records:
        try:
            results.append(handler(record))
        except Exception as e:  # noqa: BLE001
            logger.error(f"Record handling failed: {e}", exc_info=True)
            results.append(failed_result(record, e))

    return results
