"""Tests for environment-driven pipeline settings."""

import pytest

from image_workflow.core.config import PipelineSettings
from image_workflow.core.exceptions import ConfigurationError
from image_workflow.core.models import ALLOWED_CONTENT_TYPES, MAX_FILE_SIZE


def test_defaults_with_only_bucket():
    settings = PipelineSettings.from_env({"BUCKET_NAME": "uploads-bucket"})

    assert settings.bucket_name == "uploads-bucket"
    assert settings.state_machine_arn is None
    assert settings.aws_region == "us-east-1"
    assert settings.max_file_size == MAX_FILE_SIZE
    assert settings.allowed_content_types == ALLOWED_CONTENT_TYPES
    assert settings.presign_ttl_seconds == 3600
    assert settings.execution_timeout_seconds == 300
    assert settings.resize_width is None and settings.resize_height is None
    assert settings.maintain_aspect_ratio is True
    assert settings.exposure_adjustment == 0.1
    assert settings.batch_strategy == "multithread"
    assert settings.execution_store is None


def test_parses_every_variable():
    settings = PipelineSettings.from_env(
        {
            "BUCKET_NAME": "b",
            "STATE_MACHINE_ARN": "arn:aws:states:us-east-1:123:stateMachine:images",
            "AWS_REGION": "eu-west-1",
            "MAX_FILE_SIZE": "1024",
            "ALLOWED_CONTENT_TYPES": "image/jpeg, image/png",
            "PRESIGN_TTL_SECONDS": "60",
            "EXECUTION_TIMEOUT_SECONDS": "30",
            "RESIZE_WIDTH": "800",
            "RESIZE_HEIGHT": "600",
            "MAINTAIN_ASPECT_RATIO": "false",
            "EXPOSURE_ADJUSTMENT": "-0.5",
            "BATCH_STRATEGY": "asyncio",
            "EXECUTION_STORE": "s3",
        }
    )

    assert settings.state_machine_arn.endswith(":images")
    assert settings.aws_region == "eu-west-1"
    assert settings.max_file_size == 1024
    assert settings.allowed_content_types == ("image/jpeg", "image/png")
    assert settings.presign_ttl_seconds == 60
    assert settings.execution_timeout_seconds == 30.0
    assert (settings.resize_width, settings.resize_height) == (800, 600)
    assert settings.maintain_aspect_ratio is False
    assert settings.exposure_adjustment == -0.5
    assert settings.batch_strategy == "asyncio"
    assert settings.execution_store == "s3"


def test_empty_values_fall_back_to_defaults():
    settings = PipelineSettings.from_env({"BUCKET_NAME": "b", "RESIZE_WIDTH": ""})
    assert settings.resize_width is None


def test_missing_bucket_name():
    with pytest.raises(ConfigurationError, match="BUCKET_NAME"):
        PipelineSettings.from_env({})


@pytest.mark.parametrize(
    "variable,value",
    [
        ("MAX_FILE_SIZE", "big"),
        ("MAX_FILE_SIZE", "0"),
        ("MAINTAIN_ASPECT_RATIO", "maybe"),
        ("EXPOSURE_ADJUSTMENT", "2"),
        ("BATCH_STRATEGY", "multiprocess"),
        ("EXECUTION_STORE", "redis"),
    ],
)
def test_invalid_values_raise_configuration_error(variable, value):
    with pytest.raises(ConfigurationError):
        PipelineSettings.from_env({"BUCKET_NAME": "b", variable: value})


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("BUCKET_NAME", "from-env")
    monkeypatch.setenv("RESIZE_WIDTH", "640")

    settings = PipelineSettings.from_env()

    assert settings.bucket_name == "from-env"
    assert settings.resize_width == 640


def test_process_environment_parsing(monkeypatch):
    monkeypatch.setenv("BUCKET_NAME", "from-env")
    monkeypatch.setenv("ALLOWED_CONTENT_TYPES", "image/jpeg,image/webp")
    monkeypatch.setenv("MAINTAIN_ASPECT_RATIO", "no")
    monkeypatch.setenv("RESIZE_HEIGHT", "")

    settings = PipelineSettings.from_env()

    assert settings.allowed_content_types == ("image/jpeg", "image/webp")
    assert settings.maintain_aspect_ratio is False
    assert settings.resize_height is None


def test_invalid_process_environment_names_the_variable(monkeypatch):
    monkeypatch.setenv("BUCKET_NAME", "from-env")
    monkeypatch.setenv("BATCH_STRATEGY", "multiprocess")

    with pytest.raises(ConfigurationError, match="BATCH_STRATEGY"):
        PipelineSettings.from_env()


def test_missing_bucket_in_process_environment(monkeypatch):
    monkeypatch.delenv("BUCKET_NAME", raising=False)

    with pytest.raises(ConfigurationError, match="BUCKET_NAME"):
        PipelineSettings.from_env()
