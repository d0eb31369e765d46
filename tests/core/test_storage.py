"""Tests for the S3-backed object store."""

import pytest

from image_workflow.core.exceptions import (
    ObjectAlreadyExistsError,
    ObjectNotFoundError,
    StorageError,
)
from image_workflow.core.storage import S3ObjectStore
from image_workflow.testing.fakes import FakeS3Client


@pytest.fixture
def s3_client():
    client = FakeS3Client()
    bucket = client.create_bucket("bucket")
    bucket.add_object("uploads/a.jpg", b"jpeg-bytes", "image/jpeg", {"owner": "alice"})
    return client


@pytest.fixture
def store(s3_client):
    return S3ObjectStore(s3_client)


def test_get_object(store):
    stored = store.get_object("bucket", "uploads/a.jpg")

    assert stored.body == b"jpeg-bytes"
    assert stored.content_type == "image/jpeg"
    assert stored.metadata == {"owner": "alice"}


def test_head_object(store):
    head = store.head_object("bucket", "uploads/a.jpg")

    assert head.content_type == "image/jpeg"
    assert head.content_length == len(b"jpeg-bytes")


@pytest.mark.parametrize("operation", ["get_object", "head_object"])
def test_missing_object_raises_not_found(store, operation):
    with pytest.raises(ObjectNotFoundError) as excinfo:
        getattr(store, operation)("bucket", "uploads/missing.jpg")

    assert excinfo.value.key == "uploads/missing.jpg"


def test_put_object_stores_metadata(store, s3_client):
    store.put_object("bucket", "processed/b.jpg", b"out", "image/jpeg", {"processing-step": "resize"})

    obj = s3_client.get_bucket("bucket").get_object("processed/b.jpg")
    assert obj.body == b"out"
    assert obj.metadata == {"processing-step": "resize"}


def test_put_object_only_if_absent_refuses_overwrite(store):
    store.put_object("bucket", "executions/x.json", b"{}", "application/json", only_if_absent=True)

    with pytest.raises(ObjectAlreadyExistsError):
        store.put_object("bucket", "executions/x.json", b"{}", "application/json", only_if_absent=True)


def test_put_object_overwrites_by_default(store, s3_client):
    store.put_object("bucket", "uploads/a.jpg", b"new", "image/jpeg")

    assert s3_client.get_bucket("bucket").get_object("uploads/a.jpg").body == b"new"


def test_backend_failure_raises_storage_error(store, s3_client):
    s3_client.set_failure_mode(True, "Slow down", code="SlowDown")

    with pytest.raises(StorageError) as excinfo:
        store.get_object("bucket", "uploads/a.jpg")

    assert not isinstance(excinfo.value, ObjectNotFoundError)


def test_presign_upload(store, s3_client):
    url = store.presign_upload("bucket", "uploads/a.jpg", "image/png", 2048, ttl_seconds=600)

    assert url.startswith("https://bucket.s3.amazonaws.com/uploads/a.jpg")
    call = s3_client.presign_calls[0]
    assert call["ClientMethod"] == "put_object"
    assert call["Params"] == {
        "Bucket": "bucket",
        "Key": "uploads/a.jpg",
        "ContentType": "image/png",
        "ContentLength": 2048,
    }
    assert call["ExpiresIn"] == 600
