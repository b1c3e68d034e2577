"""
Object storage client for videos and profile files.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Using R2 instead of S3 because:
- No egress fees (important for video delivery)
- Same S3 API means we could swap to actual S3 if needed

Every client enforces the upload policy before writing anything, writes
the object under a generated key with its content type, a long-lived
cache directive and descriptive metadata, and returns an UploadResult
that the catalog record is built from.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol
from urllib.parse import quote, unquote

from ...core.errors import ObjectNotFound, StorageUnavailable
from ...core.media.models import MediaKind, StoredObjectInfo, UploadResult, utcnow
from ...core.media.policy import UploadPolicy, build_storage_key

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    `public_base_url` is where browsers fetch objects from. When it is
    not set, URLs are built path-style from the endpoint and bucket.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    public_base_url: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    @property
    def policy(self) -> UploadPolicy:
        ...

    async def store(
        self,
        file_data: bytes,
        filename: str,
        content_type: str,
        size_bytes: int,
        kind: MediaKind,
    ) -> UploadResult:
        """Validate and durably write an object. Returns where it lives."""
        ...

    async def get_metadata(self, key: str) -> StoredObjectInfo:
        """Read back the descriptive metadata stored with an object."""
        ...

    async def ping(self) -> None:
        """Raise if the bucket can't be reached."""
        ...


def build_object_metadata(filename: str, content_type: str, uploaded_at: datetime) -> dict[str, str]:
    """
    Metadata stored on the object itself.

    S3 metadata values must be ASCII, so the filename is percent-encoded.
    """
    return {
        "original-name": quote(filename),
        "content-type": content_type,
        "upload-date": uploaded_at.isoformat(),
    }


def _checked_size(file_data: bytes, size_bytes: int) -> int:
    # Never trust a declared size smaller than the payload itself
    return max(size_bytes, len(file_data))


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    boto3 is synchronous, so calls run in a worker thread. That keeps the
    event loop free during large transfers and lets the caller bound a
    transfer with asyncio.wait_for.
    """

    def __init__(self, config: StorageConfig, policy: UploadPolicy) -> None:
        """
        Initialize R2 client with boto3.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        import boto3
        from botocore.config import Config

        self._config = config
        self._policy = policy

        # R2 requires v4 signatures and has specific endpoint patterns
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    def public_url(self, key: str) -> str:
        if self._config.public_base_url:
            return f"{self._config.public_base_url.rstrip('/')}/{quote(key)}"
        endpoint = self._config.endpoint_url.rstrip('/')
        return f"{endpoint}/{self._config.bucket_name}/{quote(key)}"

    async def store(
        self,
        file_data: bytes,
        filename: str,
        content_type: str,
        size_bytes: int,
        kind: MediaKind,
    ) -> UploadResult:
        """
        Upload an object to R2 storage.

        Path structure: {videos|files}/{random hex}{ext}
        Policy violations raise before any request is made to the bucket.
        """
        size_bytes = _checked_size(file_data, size_bytes)
        self._policy.enforce(size_bytes, content_type, kind)

        storage_key = build_storage_key(kind, filename)
        uploaded_at = utcnow()

        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=storage_key,
                Body=file_data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
                Metadata=build_object_metadata(filename, content_type, uploaded_at),
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"storage_key": storage_key, "kind": kind.value, "error": str(e)}
            )
            raise StorageUnavailable(f"Upload failed: {e}")

        logger.info(
            "Uploaded object",
            extra={
                "storage_key": storage_key,
                "kind": kind.value,
                "size_bytes": size_bytes,
            }
        )

        return UploadResult(
            url=self.public_url(storage_key),
            key=storage_key,
            original_name=filename,
            size_bytes=size_bytes,
            content_type=content_type,
            uploaded_at=uploaded_at,
        )

    async def get_metadata(self, key: str) -> StoredObjectInfo:
        """Fetch object properties and the metadata written by store()."""
        from botocore.exceptions import ClientError

        try:
            response = await asyncio.to_thread(
                self._s3_client.head_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code in ('404', 'NoSuchKey', 'NotFound'):
                raise ObjectNotFound(f"Object not found: {key}")
            logger.error(
                "Failed to read object metadata",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailable(f"Metadata lookup failed: {e}")
        except Exception as e:
            logger.error(
                "Failed to read object metadata",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailable(f"Metadata lookup failed: {e}")

        metadata = response.get('Metadata', {})
        original_name = metadata.get('original-name')

        return StoredObjectInfo(
            key=key,
            original_name=unquote(original_name) if original_name else None,
            content_type=response.get('ContentType') or metadata.get('content-type'),
            upload_date=metadata.get('upload-date'),
            content_length=response.get('ContentLength', 0),
            last_modified=response.get('LastModified'),
        )

    async def ping(self) -> None:
        try:
            await asyncio.to_thread(self._s3_client.head_bucket, Bucket=self._config.bucket_name)
        except Exception as e:
            raise StorageUnavailable(f"Bucket unreachable: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockObject:
    data: bytes
    content_type: str
    cache_control: str
    metadata: dict[str, str]
    last_modified: datetime


class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Objects are stored in a dictionary and "URLs"
    are mock URIs.

    Policy enforcement is identical to the real client.
    """

    def __init__(self, policy: UploadPolicy) -> None:
        self._policy = policy
        # {storage_key: object}
        self._objects: dict[str, _MockObject] = {}
        self.fail_writes = False
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    @property
    def object_count(self) -> int:
        return len(self._objects)

    def has_object(self, key: str) -> bool:
        return key in self._objects

    async def store(
        self,
        file_data: bytes,
        filename: str,
        content_type: str,
        size_bytes: int,
        kind: MediaKind,
    ) -> UploadResult:
        """Store object in memory."""
        size_bytes = _checked_size(file_data, size_bytes)
        self._policy.enforce(size_bytes, content_type, kind)

        if self.fail_writes:
            raise StorageUnavailable("Upload failed: mock storage is offline")

        storage_key = build_storage_key(kind, filename)
        uploaded_at = utcnow()
        self._objects[storage_key] = _MockObject(
            data=file_data,
            content_type=content_type,
            cache_control=CACHE_CONTROL,
            metadata=build_object_metadata(filename, content_type, uploaded_at),
            last_modified=uploaded_at,
        )

        logger.debug(
            "Stored object in mock storage",
            extra={"storage_key": storage_key, "size_bytes": size_bytes}
        )

        return UploadResult(
            url=f"mock://storage/{storage_key}",
            key=storage_key,
            original_name=filename,
            size_bytes=size_bytes,
            content_type=content_type,
            uploaded_at=uploaded_at,
        )

    async def get_metadata(self, key: str) -> StoredObjectInfo:
        """Retrieve object metadata from memory."""
        stored = self._objects.get(key)
        if stored is None:
            raise ObjectNotFound(f"Object not found: {key}")

        return StoredObjectInfo(
            key=key,
            original_name=unquote(stored.metadata["original-name"]),
            content_type=stored.content_type,
            upload_date=stored.metadata["upload-date"],
            content_length=len(stored.data),
            last_modified=stored.last_modified,
        )

    async def ping(self) -> None:
        if self.fail_writes:
            raise StorageUnavailable("Mock storage is offline")


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    policy: UploadPolicy,
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        policy: Size and format rules every write must satisfy
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (R2 or Mock)
    """
    if mock_mode:
        return MockStorageClient(policy)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config, policy)
