"""Custom exceptions for the image workflow pipeline."""

from __future__ import annotations


class ImageWorkflowError(Exception):
    """Base exception for all image workflow errors."""


class TerminalError(ImageWorkflowError):
    """Marker for failures that retrying cannot fix."""


class StorageError(ImageWorkflowError):
    """Error raised for object storage failures."""


class ObjectNotFoundError(StorageError, TerminalError):
    """Error raised when the requested object does not exist."""

    def __init__(self, bucket: str, key: str):
        super().__init__(f"Object s3://{bucket}/{key} not found")
        self.bucket = bucket
        self.key = key


class ObjectAlreadyExistsError(StorageError):
    """Error raised when a conditional write finds an existing object."""


class InvalidImageError(TerminalError):
    """Error raised when image bytes cannot be decoded into a usable image."""


class ConfigurationError(ImageWorkflowError):
    """Error raised for invalid configuration options."""


class UploadRequestError(ImageWorkflowError):
    """Error raised for client input that fails presign validation."""


class ExecutionAlreadyExistsError(ImageWorkflowError):
    """Error raised when an execution with the same name was already started."""

    def __init__(self, execution_id: str):
        super().__init__(f"Execution {execution_id} already exists")
        self.execution_id = execution_id


class WorkflowTimeoutError(TerminalError):
    """Error raised when an execution exceeds its wall-clock bound."""
