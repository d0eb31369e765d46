"""Core utilities and shared components for the image workflow pipeline."""

from .exceptions import (
    ConfigurationError,
    ExecutionAlreadyExistsError,
    ImageWorkflowError,
    InvalidImageError,
    ObjectAlreadyExistsError,
    ObjectNotFoundError,
    StorageError,
    TerminalError,
    UploadRequestError,
    WorkflowTimeoutError,
)
from .logging_config import get_logger, setup_logger
from .models import (
    ExecutionState,
    ProcessingJob,
    StepError,
    StepOutcome,
    StepRetry,
    StepSuccess,
    WorkflowExecution,
)
from .config import PipelineSettings
from .workflow import DEFAULT_RETRY_TABLE, RetryPolicy, StepName, WorkflowEngine

__all__ = [
    "ConfigurationError",
    "ExecutionAlreadyExistsError",
    "ImageWorkflowError",
    "InvalidImageError",
    "ObjectAlreadyExistsError",
    "ObjectNotFoundError",
    "StorageError",
    "TerminalError",
    "UploadRequestError",
    "WorkflowTimeoutError",
    "get_logger",
    "setup_logger",
    "ExecutionState",
    "ProcessingJob",
    "StepError",
    "StepOutcome",
    "StepRetry",
    "StepSuccess",
    "WorkflowExecution",
    "PipelineSettings",
    "DEFAULT_RETRY_TABLE",
    "RetryPolicy",
    "StepName",
    "WorkflowEngine",
]
