"""Multithreaded batch driver - fans records out to a thread pool and joins."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

from ..core.logging_config import get_logger
from ..core.models import RecordResult
from .common import RecordHandler, failed_result


def process_batch(
    records: List[Dict[str, Any]],
    handler: RecordHandler,
    max_workers: int = 8,
) -> List[RecordResult]:
    """
    Handle records concurrently, one unit of work per record.

    Args:
        records: Notification records
        handler: Per-record handler; must be safe to call from several threads
        max_workers: Upper bound on pool size

    Returns:
        One result per record, in input order. A record whose handler raises
        gets a failed result; its siblings are unaffected.
    """
    if not records:
        return []

    logger = get_logger("multithread-processor")
    results: List[Optional[RecordResult]] = [None] * len(records)

    with ThreadPoolExecutor(max_workers=min(max_workers, len(records))) as executor:
        future_to_index = {
            executor.submit(handler, record): index
            for index, record in enumerate(records)
        }

        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:  # noqa: BLE001
                logger.error(f"Record handling failed: {e}", exc_info=True)
                results[index] = failed_result(records[index], e)

    return [result for result in results if result is not None]
