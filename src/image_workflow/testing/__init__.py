"""Testing utilities and fakes for the image workflow pipeline."""

from .fakes import (
    FakeClock,
    FakeLogger,
    FakeRandomSource,
    FakeS3Client,
    FakeStepFunctionsClient,
    S3Bucket,
    S3Object,
    create_test_image,
    setup_test_s3_environment,
)

__all__ = [
    "FakeClock",
    "FakeLogger",
    "FakeRandomSource",
    "FakeS3Client",
    "FakeStepFunctionsClient",
    "S3Bucket",
    "S3Object",
    "create_test_image",
    "setup_test_s3_environment",
]
