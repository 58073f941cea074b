"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized

The ScanService is built once at startup (see main.lifespan) and kept on
app.state. It owns the cached bucket region and S3 client, so it must
outlive individual requests.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ..config.settings import Settings, get_settings
from ..core.scan.reader import FaceReader
from ..core.scan.service import ScanService
from ..infrastructure.anthropic.client import AnthropicConfig, AnthropicVisionClient
from ..infrastructure.storage.client import StorageConfig, create_object_writer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Service Construction
# ---------------------------------------------------------------------------

def build_scan_service(settings: Settings) -> ScanService:
    """
    Wire the reader and the writer from settings.

    Called once per process. Settings must already be validated.
    """
    vision_client = AnthropicVisionClient(
        AnthropicConfig(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
            temperature=settings.anthropic_temperature,
        )
    )

    storage_config = StorageConfig(
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        bucket_name=settings.s3_bucket,
        folder=settings.s3_folder,
        region=settings.s3_region or None,
        endpoint_url=settings.s3_endpoint_url,
    )
    writer = create_object_writer(
        config=storage_config,
        mock_mode=settings.storage_mock_mode,
    )

    logger.info(
        "Created ScanService",
        extra={
            "bucket": settings.s3_bucket,
            "region": settings.s3_region or "auto",
            "mock_storage": settings.storage_mock_mode,
        }
    )

    return ScanService(reader=FaceReader(vision_client), writer=writer)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_scan_service(request: Request) -> ScanService:
    """Provide the process-wide ScanService created at startup."""
    service = getattr(request.app.state, "scan_service", None)
    if service is None:
        logger.error("ScanService requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up. Please retry shortly.",
        )
    return service


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
ScanServiceDep = Annotated[ScanService, Depends(get_scan_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
