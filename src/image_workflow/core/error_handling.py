"""Error translation, retry classification and batch error aggregation."""

import functools
import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional, Tuple, Type, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from PIL import UnidentifiedImageError

from .exceptions import (
    ObjectAlreadyExistsError,
    ObjectNotFoundError,
    StorageError,
    TerminalError,
)

NOT_FOUND_ERROR_CODES = ("404", "NoSuchKey", "NotFound")
PRECONDITION_ERROR_CODES = ("412", "PreconditionFailed", "ConditionalRequestConflict")

# Errors the workflow engine never retries.
NON_RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    TerminalError,
    UnidentifiedImageError,
)

F = TypeVar("F", bound=Callable[..., Any])


def client_error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def with_error_handling(func: F) -> F:
    """
    Translate botocore failures raised by an object store call into
    pipeline exceptions.

    The wrapped function must take ``bucket`` and ``key`` arguments; they are
    used to build :class:`ObjectNotFoundError` for missing objects.
    """
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = logging.getLogger(func.__module__ + "." + func.__name__)
        try:
            return func(*args, **kwargs)
        except ClientError as e:
            code = client_error_code(e)
            bound = signature.bind(*args, **kwargs)
            bucket = bound.arguments.get("bucket", "")
            key = bound.arguments.get("key", "")
            if code in NOT_FOUND_ERROR_CODES:
                logger.info(f"Object s3://{bucket}/{key} not found")
                raise ObjectNotFoundError(bucket, key) from e
            if code in PRECONDITION_ERROR_CODES:
                raise ObjectAlreadyExistsError(
                    f"Object s3://{bucket}/{key} already exists"
                ) from e
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise StorageError(f"S3 operation {func.__name__} failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise StorageError(f"S3 operation {func.__name__} failed: {e}") from e

    return wrapper  # type: ignore[return-value]


def is_retryable(
    error: BaseException,
    non_retryable: Tuple[Type[BaseException], ...] = NON_RETRYABLE_ERRORS,
) -> bool:
    """Return True unless the error belongs to one of the terminal classes."""
    return not isinstance(error, non_retryable)


class RecordFailureReport:
    """
    Collects failed records of one notification batch and logs them on exit.

    An exception escaping the ``with`` block is logged and propagates.
    """

    def __init__(self, batch_name: str = "Notification batch"):
        self.batch_name = batch_name
        self.failures: List[Tuple[str, str]] = []
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    def __enter__(self) -> "RecordFailureReport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.logger.error(
                "%s aborted: %s", self.batch_name, exc_val, exc_info=(exc_type, exc_val, exc_tb)
            )
        elif self.failures:
            self.logger.warning("%s: %d record(s) failed", self.batch_name, len(self.failures))
            for key, error in self.failures:
                self.logger.error("%s: %s failed: %s", self.batch_name, key, error)
        else:
            self.logger.debug("%s: no failed records", self.batch_name)
        return False

    def add(self, key: str, error: Optional[str]) -> None:
        self.failures.append((key, error or "unknown error"))

    def collect(self, results: Iterable[Any]) -> None:
        """Add every result whose ``success`` is false."""
        for result in results:
            if not result.success:
                self.add(result.key, result.error)
