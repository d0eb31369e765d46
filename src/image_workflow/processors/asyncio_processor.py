"""AsyncIO batch driver - gathers per-record work running on worker threads."""

import asyncio
from typing import Any, Dict, List

from ..core.logging_config import get_logger
from ..core.models import RecordResult
from .common import RecordHandler, failed_result


async def process_batch_async(
    records: List[Dict[str, Any]], handler: RecordHandler
) -> List[RecordResult]:
    """Run every record concurrently and wait for all of them."""
    logger = get_logger("asyncio-processor")

    tasks = [asyncio.to_thread(handler, record) for record in records]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    results: List[RecordResult] = []
    for record, outcome in zip(records, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"Record handling failed: {outcome}")
            results.append(failed_result(record, outcome))
        else:
            results.append(outcome)  # type: ignore[arg-type]
    return results


def process_batch(
    records: List[Dict[str, Any]], handler: RecordHandler
) -> List[RecordResult]:
    """
    Handle records with asyncio.

    This is the synchronous wrapper that runs the async function.
    """
    return asyncio.run(process_batch_async(records, handler))
