"""
Object storage integration for scanned photos.

S3 with automatic bucket region discovery and a one-shot region retry.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockObjectWriter,
    RegionMismatchError,
    S3ObjectWriter,
    StorageConfig,
    StorageError,
    UploadError,
    create_object_writer,
)
from .regions import BASELINE_REGION, RegionResolver, StorageContext, normalize_region

__all__ = [
    "BASELINE_REGION",
    "MockObjectWriter",
    "RegionMismatchError",
    "RegionResolver",
    "S3ObjectWriter",
    "StorageConfig",
    "StorageContext",
    "StorageError",
    "UploadError",
    "create_object_writer",
    "normalize_region",
]
