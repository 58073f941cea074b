"""
Object storage client for scanned photos.

Writes each photo to S3 under a fresh key. The bucket region is
resolved through a StorageContext (see regions.py); if S3 answers that
the request went to the wrong region, the context re-discovers the
region and the write is retried once.

Mock mode stores photos in memory, enabling API testing without
provisioning a bucket.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.core.scan.models import UploadOutcome

from .regions import BASELINE_REGION, ClientFactory, RegionResolver, StorageContext

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class UploadError(StorageError):
    """Raised when a photo could not be stored."""
    pass


class RegionMismatchError(UploadError):
    """Raised when the write still hit the wrong region after re-discovery."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3 storage.

    region is optional: leave it empty to discover the bucket's region
    at first use.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    folder: str = "person_image"
    region: Optional[str] = None
    endpoint_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------

class FailureKind(Enum):
    """What a failed write means for the retry decision."""
    REGION_MISMATCH = "region_mismatch"
    OTHER = "other"


REDIRECT_STATUS_CODES = frozenset({301, 307})

REGION_MISMATCH_ERROR_CODES = frozenset({
    "PermanentRedirect",
    "TemporaryRedirect",
    "AuthorizationHeaderMalformed",
    "IllegalLocationConstraintException",
})


def classify_failure(error: BaseException) -> FailureKind:
    """
    Decide whether a storage error means "wrong region".

    S3 signals it through a redirect status, a handful of error codes,
    or (from botocore itself) an endpoint error.
    """
    if isinstance(error, ClientError):
        response = error.response or {}
        code = response.get("Error", {}).get("Code", "")
        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in REGION_MISMATCH_ERROR_CODES or status in REDIRECT_STATUS_CODES:
            return FailureKind.REGION_MISMATCH

    if "endpoint" in str(error).lower():
        return FailureKind.REGION_MISMATCH

    return FailureKind.OTHER


# ---------------------------------------------------------------------------
# Keys and URLs
# ---------------------------------------------------------------------------

def sanitize_folder(folder: str) -> str:
    return (folder or "").strip().strip("/")


def generate_object_key(folder: str, extension: str = ".jpg") -> str:
    """
    Build a unique key: <folder>/<timestamp>-<uuid><extension>.

    The timestamp keeps keys sortable by upload time in the console; the
    uuid makes them unique.
    """
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    safe_folder = sanitize_folder(folder)
    prefix = f"{safe_folder}/" if safe_folder else ""
    return f"{prefix}{timestamp}-{uuid4()}{extension}"


def build_public_url(bucket_name: str, region: str, object_key: str) -> str:
    """
    Virtual-hosted URL for an object.

    us-east-1 buckets use the global hostname, every other region
    uses a region-qualified one.
    """
    if region == BASELINE_REGION:
        domain = "s3.amazonaws.com"
    else:
        domain = f"s3.{region}.amazonaws.com"
    return f"https://{bucket_name}.{domain}/{object_key}"


def create_s3_client_factory(config: StorageConfig) -> ClientFactory:
    """Return a function that builds an S3 client for a given region."""
    boto_config = Config(signature_version='s3v4')

    def factory(region: str):
        return boto3.client(
            's3',
            region_name=region,
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            config=boto_config,
        )

    return factory


# ---------------------------------------------------------------------------
# S3 Writer
# ---------------------------------------------------------------------------

class S3ObjectWriter:
    """
    Writes photos to S3 with one region-correcting retry.

    boto3 is synchronous, so every call that may hit the network runs in
    a worker thread. That lets the upload overlap with the model call.
    """

    def __init__(self, config: StorageConfig, context: StorageContext) -> None:
        self._config = config
        self._context = context

        logger.info(
            "Initialized S3 storage writer",
            extra={
                "bucket": config.bucket_name,
                "folder": config.folder,
                "region": config.region or "auto",
            }
        )

    @property
    def context(self) -> StorageContext:
        return self._context

    async def write(
        self,
        payload: bytes,
        content_type: str = "image/jpeg",
        extension: str = ".jpg",
    ) -> UploadOutcome:
        """
        Upload a photo and return where it landed.

        Raises UploadError (or RegionMismatchError) when the photo could
        not be stored.
        """
        object_key = generate_object_key(self._config.folder, extension)

        try:
            region = await asyncio.to_thread(
                self._put_object, object_key, payload, content_type,
            )
        except (ClientError, BotoCoreError) as e:
            if classify_failure(e) is not FailureKind.REGION_MISMATCH:
                self._log_failure("Upload failed", object_key, e)
                raise UploadError("Failed to store the image.") from e

            region = await self._retry_in_discovered_region(
                object_key, payload, content_type, e,
            )

        logger.info(
            "Uploaded image",
            extra={
                "bucket": self._config.bucket_name,
                "region": region,
                "object_key": object_key,
                "size_bytes": len(payload),
            }
        )

        return UploadOutcome(object_key=object_key, region=region)

    def public_url(self, outcome: UploadOutcome) -> str:
        return build_public_url(self._config.bucket_name, outcome.region, outcome.object_key)

    async def _retry_in_discovered_region(
        self,
        object_key: str,
        payload: bytes,
        content_type: str,
        first_error: Union[ClientError, BotoCoreError],
    ) -> str:
        logger.warning(
            "Region mismatch, re-discovering bucket region",
            extra={
                "bucket": self._config.bucket_name,
                "region": self._context.region,
                "object_key": object_key,
                "error": str(first_error),
            }
        )

        await asyncio.to_thread(self._context.rediscover)

        try:
            return await asyncio.to_thread(
                self._put_object, object_key, payload, content_type,
            )
        except (ClientError, BotoCoreError) as e:
            self._log_failure("Retry failed", object_key, e)
            if classify_failure(e) is FailureKind.REGION_MISMATCH:
                raise RegionMismatchError(
                    "Failed to store the image: storage region could not be determined."
                ) from e
            raise UploadError("Failed to store the image.") from e

    def _put_object(self, object_key: str, payload: bytes, content_type: str) -> str:
        client, region = self._context.acquire()
        client.put_object(
            Bucket=self._config.bucket_name,
            Key=object_key,
            Body=payload,
            ContentType=content_type,
        )
        return region

    def _log_failure(self, message: str, object_key: str, error: Exception) -> None:
        logger.error(
            message,
            extra={
                "bucket": self._config.bucket_name,
                "region": self._context.region,
                "object_key": object_key,
                "error": str(error),
            }
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockObjectWriter:
    """
    In-memory storage for local development.

    Photos are kept in a dictionary and "URLs" are mock URIs.
    Not suitable for production.
    """

    def __init__(self, folder: str = "person_image") -> None:
        self._folder = folder
        self._objects: dict[str, bytes] = {}
        logger.info("Initialized mock storage writer (in-memory)")

    async def write(
        self,
        payload: bytes,
        content_type: str = "image/jpeg",
        extension: str = ".jpg",
    ) -> UploadOutcome:
        object_key = generate_object_key(self._folder, extension)
        self._objects[object_key] = payload

        logger.debug(
            "Stored image in mock storage",
            extra={"object_key": object_key, "size_bytes": len(payload)}
        )

        return UploadOutcome(object_key=object_key, region=BASELINE_REGION)

    def public_url(self, outcome: UploadOutcome) -> str:
        return f"mock://storage/{outcome.object_key}"

    def get(self, object_key: str) -> bytes:
        if object_key not in self._objects:
            raise StorageError(f"Object not found: {object_key}")
        return self._objects[object_key]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_writer(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    client_factory: Optional[ClientFactory] = None,
) -> Union[S3ObjectWriter, MockObjectWriter]:
    """
    Create the object writer based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return an in-memory writer
        client_factory: Builds region-bound S3 clients; defaults to boto3

    Returns:
        S3ObjectWriter or MockObjectWriter
    """
    if mock_mode:
        return MockObjectWriter(folder=config.folder if config else "person_image")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    factory = client_factory or create_s3_client_factory(config)
    resolver = RegionResolver(
        bucket_name=config.bucket_name,
        client_factory=factory,
        fixed_region=config.region,
    )
    return S3ObjectWriter(config, StorageContext(resolver, factory))
