"""S3-backed object store used by every pipeline stage."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from .error_handling import with_error_handling
from .models import ObjectHead, StoredObject

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client
else:
    S3Client = Any


class S3ObjectStore:
    """Object store over a boto3 S3 client.

    Missing objects surface as ``ObjectNotFoundError`` and every other
    backend failure as ``StorageError`` (see ``with_error_handling``).
    """

    def __init__(self, s3_client: S3Client):
        self._s3_client = s3_client

    @with_error_handling
    def get_object(self, bucket: str, key: str) -> StoredObject:
        response = self._s3_client.get_object(Bucket=bucket, Key=key)
        return StoredObject(
            body=response["Body"].read(),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    @with_error_handling
    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        only_if_absent: bool = False,
    ) -> None:
        params: Dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
            "Metadata": metadata or {},
        }
        if only_if_absent:
            params["IfNoneMatch"] = "*"
        self._s3_client.put_object(**params)

    @with_error_handling
    def head_object(self, bucket: str, key: str) -> ObjectHead:
        response = self._s3_client.head_object(Bucket=bucket, Key=key)
        return ObjectHead(
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
            metadata=dict(response.get("Metadata") or {}),
        )

    @with_error_handling
    def presign_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        content_length: int,
        ttl_seconds: int = 3600,
    ) -> str:
        return self._s3_client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": bucket,
                "Key": key,
                "ContentType": content_type,
                "ContentLength": content_length,
            },
            ExpiresIn=ttl_seconds,
        )
