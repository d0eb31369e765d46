"""Pipeline settings loaded from the environment."""

from typing import Annotated, Any, Literal, Mapping, Optional, Tuple

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import ALLOWED_CONTENT_TYPES, MAX_FILE_SIZE


class PipelineSettings(BaseSettings):
    """
    Configuration shared by the presign path, the orchestrator and the workflow.

    Each field is read from the upper-cased environment variable of the same
    name (``bucket_name`` from ``BUCKET_NAME``); empty variables count as unset.
    ``execution_store`` left unset lets the caller pick the store.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    bucket_name: str = Field(min_length=1)
    state_machine_arn: Optional[str] = None
    aws_region: str = "us-east-1"
    max_file_size: int = Field(default=MAX_FILE_SIZE, gt=0)
    allowed_content_types: Annotated[Tuple[str, ...], NoDecode] = ALLOWED_CONTENT_TYPES
    presign_ttl_seconds: int = Field(default=3600, gt=0)
    execution_timeout_seconds: float = Field(default=300.0, gt=0)
    resize_width: Optional[int] = Field(default=None, gt=0)
    resize_height: Optional[int] = Field(default=None, gt=0)
    maintain_aspect_ratio: bool = True
    exposure_adjustment: float = Field(default=0.1, ge=-1.0, le=1.0)
    batch_strategy: Literal["serial", "multithread", "asyncio"] = "multithread"
    execution_store: Optional[Literal["memory", "s3"]] = None

    @field_validator("allowed_content_types", mode="before")
    @classmethod
    def _split_content_types(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """
        Build settings from the process environment, or from ``environ`` alone
        when a mapping is given.

        Raises:
            ConfigurationError: If BUCKET_NAME is missing or a value is invalid
        """
        try:
            if environ is None:
                return cls()
            values = {
                name: environ[name.upper()]
                for name in cls.model_fields
                if environ.get(name.upper())
            }
            return cls.model_validate(values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']).upper()}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid pipeline settings: {problems}") from e
