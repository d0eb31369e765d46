"""Presign, validation and image stage services for the workflow pipeline."""

from datetime import timedelta
from typing import Any, Dict, Optional, Sequence

from PIL import UnidentifiedImageError
from pydantic import ValidationError

from .clock import SystemClock
from .exceptions import InvalidImageError, ObjectNotFoundError, UploadRequestError
from .image_utils import (
    ImageBuffer,
    apply_exposure,
    compute_target_dimensions,
    encode_jpeg,
    exposure_parameters,
    resize_image,
)
from .keys import KeyGenerator, exposure_output_key, resized_output_key
from .models import (
    ALLOWED_CONTENT_TYPES,
    MAX_FILE_SIZE,
    Dimensions,
    ExposureEvent,
    ExposureResult,
    ResizeEvent,
    ResizeResult,
    UploadRequest,
    UploadResponse,
    ValidationEvent,
    ValidationResult,
    isoformat,
)
from .observability import LogContext
from .protocols import ClockProtocol, LoggerProtocol, ObjectStoreProtocol

REQUIRED_UPLOAD_FIELDS = ("filename", "contentType", "fileSize")


def format_adjustment(value: float) -> str:
    """
    Render an adjustment the way it is stored in object metadata ("0.5", "1", "-0.25").

    Callers pass the adjustment actually applied, after clamping to [-1, 1],
    so ``adjustment-value`` and ``ExposureResult.adjustment`` describe the
    stored image rather than the requested value.
    """
    return f"{value:g}"


class PresignService:
    """Validates upload requests and issues presigned upload URLs."""

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        key_generator: KeyGenerator,
        bucket: str,
        logger: LoggerProtocol,
        clock: Optional[ClockProtocol] = None,
        max_file_size: int = MAX_FILE_SIZE,
        allowed_content_types: Sequence[str] = ALLOWED_CONTENT_TYPES,
        ttl_seconds: int = 3600,
    ):
        self._object_store = object_store
        self._key_generator = key_generator
        self._bucket = bucket
        self._logger = logger
        self._clock = clock or SystemClock()
        self._max_file_size = max_file_size
        self._allowed_content_types = tuple(allowed_content_types)
        self._ttl_seconds = ttl_seconds

    def validate_request(self, body: Any) -> UploadRequest:
        """
        Check a decoded request body against the upload policy.

        Raises:
            UploadRequestError: With a client-facing message for each rule
        """
        if not isinstance(body, dict) or not all(
            body.get(name) for name in REQUIRED_UPLOAD_FIELDS
        ):
            raise UploadRequestError(
                "Missing required fields: " + ", ".join(REQUIRED_UPLOAD_FIELDS)
            )

        if body["contentType"] not in self._allowed_content_types:
            raise UploadRequestError(
                "Invalid content type. Allowed: " + ", ".join(self._allowed_content_types)
            )

        file_size = body["fileSize"]
        if isinstance(file_size, bool) or not isinstance(file_size, (int, float)) or file_size < 1:
            raise UploadRequestError("Invalid file size")

        if file_size > self._max_file_size:
            max_mb = self._max_file_size / 1024 / 1024
            raise UploadRequestError(f"File size exceeds maximum of {max_mb:g}MB")

        try:
            return UploadRequest.model_validate(body)
        except ValidationError as e:
            raise UploadRequestError(f"Invalid request: {e.errors()[0]['msg']}") from e

    def create_upload(self, body: Any) -> UploadResponse:
        request = self.validate_request(body)
        key = self._key_generator.generate_key(request.filename)

        upload_url = self._object_store.presign_upload(
            self._bucket,
            key,
            request.content_type,
            request.file_size,
            self._ttl_seconds,
        )
        expires_at = self._clock.now() + timedelta(seconds=self._ttl_seconds)

        self._logger.info(
            "Presigned URL generated successfully",
            LogContext(correlation_id=key, component="presign_service"),
            content_type=request.content_type,
            file_size=request.file_size,
        )
        return UploadResponse(upload_url=upload_url, key=key, expires_at=isoformat(expires_at))


class ValidatorService:
    """Checks a stored object's headers against the size/type policy."""

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        logger: LoggerProtocol,
        max_file_size: int = MAX_FILE_SIZE,
        allowed_content_types: Sequence[str] = ALLOWED_CONTENT_TYPES,
    ):
        self._object_store = object_store
        self._logger = logger
        self._max_file_size = max_file_size
        self._allowed_content_types = tuple(allowed_content_types)

    def validate(self, bucket: str, key: str) -> ValidationResult:
        """
        Validate the object at ``bucket/key``.

        A missing object yields an invalid result rather than an exception;
        any other storage failure propagates for the workflow to retry.
        """
        log_context = LogContext(
            correlation_id=key, component="validator", step="validate"
        ).bind(bucket=bucket)
        self._logger.info("Validating file", log_context)

        try:
            head = self._object_store.head_object(bucket, key)
        except ObjectNotFoundError:
            self._logger.error("File not found", log_context)
            return ValidationResult(is_valid=False, error="File not found")

        content_type = head.content_type
        size = head.content_length

        if not content_type:
            self._logger.warning("File has no content type", log_context)
            return ValidationResult(is_valid=False, error="File has no content type")

        if content_type not in self._allowed_content_types:
            self._logger.warning("Invalid content type", log_context, content_type=content_type)
            return ValidationResult(
                is_valid=False,
                content_type=content_type,
                error=f"Invalid content type: {content_type}",
            )

        if size is not None and size > self._max_file_size:
            self._logger.warning(
                "File size exceeds maximum", log_context, size=size, max_size=self._max_file_size
            )
            return ValidationResult(
                is_valid=False,
                content_type=content_type,
                size=size,
                error=f"File size ({size}) exceeds maximum ({self._max_file_size})",
            )

        # Redundant with the allow-list above.
        if not content_type.startswith("image/"):
            self._logger.warning("File is not an image", log_context, content_type=content_type)
            return ValidationResult(
                is_valid=False,
                content_type=content_type,
                error="File is not a valid image",
            )

        self._logger.info("File validation successful", log_context, content_type=content_type, size=size)
        return ValidationResult(is_valid=True, content_type=content_type, size=size)

    def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = ValidationEvent.model_validate(payload)
        return self.validate(event.bucket, event.key).to_payload()


class ResizeStage:
    """Downloads an image, fits it to the requested bounds and uploads a JPEG."""

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        logger: LoggerProtocol,
        clock: Optional[ClockProtocol] = None,
    ):
        self._object_store = object_store
        self._logger = logger
        self._clock = clock or SystemClock()

    def resize(
        self,
        bucket: str,
        key: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        maintain_aspect_ratio: bool = True,
    ) -> ResizeResult:
        """Resize ``bucket/key``. Decode, encode and storage errors propagate untouched."""
        log_context = LogContext(
            correlation_id=key, component="resize_stage", step="resize"
        ).bind(bucket=bucket)

        stored = self._object_store.get_object(bucket, key)
        source = ImageBuffer.from_bytes(stored.body)
        self._logger.info("Downloaded image", log_context, size=source.size_bytes)

        target_width, target_height = compute_target_dimensions(
            source.width, source.height, width, height, maintain_aspect_ratio
        )
        self._logger.info(
            "Resizing image",
            log_context,
            original=source.dimensions,
            target=f"{target_width}x{target_height}",
            maintain_aspect_ratio=maintain_aspect_ratio,
        )

        output = encode_jpeg(resize_image(source.decode(), target_width, target_height))
        output_key = resized_output_key(key, output.width, output.height)

        metadata = {
            **stored.metadata,
            "processing-step": "resize",
            "original-key": key,
            "dimensions": output.dimensions,
            "processed-at": isoformat(self._clock.now()),
        }
        self._object_store.put_object(bucket, output_key, output.data, "image/jpeg", metadata)

        self._logger.info(
            "Uploaded resized image",
            log_context,
            output_key=output_key,
            dimensions=output.dimensions,
            size=output.size_bytes,
        )
        return ResizeResult(
            output_key=output_key,
            dimensions=Dimensions(width=output.width, height=output.height),
            file_size=output.size_bytes,
        )

    def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = ResizeEvent.model_validate(payload)
        return self.resize(
            event.bucket, event.key, event.width, event.height, event.maintain_aspect_ratio
        ).to_payload()


class ExposureStage:
    """Applies the gamma/brightness/contrast exposure transform to an image."""

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        logger: LoggerProtocol,
        clock: Optional[ClockProtocol] = None,
    ):
        self._object_store = object_store
        self._logger = logger
        self._clock = clock or SystemClock()

    def adjust_exposure(self, bucket: str, key: str, adjustment: float) -> ExposureResult:
        """
        Adjust exposure of ``bucket/key`` by ``adjustment`` (clamped to [-1, 1]).

        Raises:
            InvalidImageError: If the object is not a decodable, non-empty image
        """
        log_context = LogContext(
            correlation_id=key, component="exposure_stage", step="adjust_exposure"
        ).bind(bucket=bucket)

        stored = self._object_store.get_object(bucket, key)
        try:
            source = ImageBuffer.from_bytes(stored.body)
            image = source.decode()
        except (UnidentifiedImageError, OSError) as e:
            self._logger.error("Could not decode image", log_context, error=str(e))
            raise InvalidImageError("Invalid image data") from e
        if not source.width or not source.height:
            raise InvalidImageError("Invalid image data")

        params = exposure_parameters(adjustment)
        self._logger.debug(
            "Exposure parameters",
            log_context,
            gamma=params.gamma,
            brightness=params.brightness,
            contrast=params.contrast,
        )

        output = encode_jpeg(apply_exposure(image, params))
        output_key = exposure_output_key(key)

        metadata = {
            **stored.metadata,
            "processing-step": "exposure-adjustment",
            "adjustment-value": format_adjustment(params.adjustment),
            "dimensions": output.dimensions,
            "processed-at": isoformat(self._clock.now()),
        }
        self._object_store.put_object(bucket, output_key, output.data, "image/jpeg", metadata)

        self._logger.info(
            "Uploaded exposure-adjusted image",
            log_context,
            output_key=output_key,
            adjustment=params.adjustment,
            size=output.size_bytes,
        )
        return ExposureResult(
            output_key=output_key,
            adjustment=params.adjustment,
            file_size=output.size_bytes,
        )

    def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = ExposureEvent.model_validate(payload)
        return self.adjust_exposure(event.bucket, event.key, event.adjustment).to_payload()
