"""Batch drivers for notification records with different concurrency strategies."""

from typing import Callable, Dict, List

from .serial import process_batch as serial_process_batch
from .multithread import process_batch as multithread_process_batch
from .asyncio_processor import process_batch as asyncio_process_batch

BATCH_DRIVERS: Dict[str, Callable[..., List]] = {
    "serial": serial_process_batch,
    "multithread": multithread_process_batch,
    "asyncio": asyncio_process_batch,
}

__all__ = [
    "BATCH_DRIVERS",
    "serial_process_batch",
    "multithread_process_batch",
    "asyncio_process_batch",
]
