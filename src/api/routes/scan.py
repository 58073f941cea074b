"""
Scan API endpoint.

One call does the whole job:
1. Client posts a base64 photo
2. Server asks the model for a reading and stores the photo, concurrently
3. Client receives the reading, the record id and the photo URL

Status codes:
- 400: image missing, not a string, or not base64
- 405: anything but POST (handled by the router)
- 413: image larger than MAX_IMAGE_SIZE_MB
- 500: reading or storage failed
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.scan.images import ImageValidationError
from ...core.scan.models import BiometricAnalysis
from ...core.scan.reader import AnalysisError
from ...infrastructure.storage.client import StorageError
from ..dependencies import ScanServiceDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

MISSING_IMAGE_DETAIL = "Missing base64 image data."


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ScanRequest(BaseModel):
    """
    Request body for a scan.

    image is typed loosely so a wrong type gets our 400, not a 422.
    """
    image: Optional[Any] = Field(
        default=None,
        description="Base64 photo, optionally prefixed with a data URL header"
    )


class FortuneResponse(BaseModel):
    """The four palaces of the reading."""
    model_config = ConfigDict(populate_by_name=True)

    thien_dinh: str = Field(alias="thienDinh", description="Forehead")
    tai_bach: str = Field(alias="taiBach", description="Nose")
    phu_the: str = Field(alias="phuThe", description="Eyes and mouth")
    tong_quan: str = Field(alias="tongQuan", description="Overall destiny")


class AnalysisResponse(BaseModel):
    """The model's reading."""
    model_config = ConfigDict(populate_by_name=True)

    estimated_age: int = Field(alias="estimatedAge", description="Estimated age")
    beauty_score: int = Field(alias="beautyScore", description="Beauty score (0-100)")
    life_quote: str = Field(alias="lifeQuote", description="A quote about life")
    archetype: str = Field(description="Honorific title")
    fortune: FortuneResponse

    @classmethod
    def from_domain(cls, analysis: BiometricAnalysis) -> "AnalysisResponse":
        return cls.model_validate(analysis.to_dict())


class ScanResponse(BaseModel):
    """Response with the reading and the stored photo reference."""
    model_config = ConfigDict(populate_by_name=True)

    analysis: AnalysisResponse
    record_id: str = Field(alias="recordId", description="Object key of the stored photo")
    s3_url: str = Field(alias="s3Url", description="Public URL of the stored photo")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ScanResponse,
    status_code=status.HTTP_200_OK,
    summary="Scan a photo",
    description="Read a face from a base64 photo and store the photo",
)
async def scan(
    request: ScanRequest,
    service: ScanServiceDep,
    settings: SettingsDep,
) -> ScanResponse:
    """
    Read and store one photo.

    The reading and the upload run concurrently; both must succeed.
    Nothing is rolled back on failure, so the photo may be stored even
    when the reading failed.
    """
    image = request.image
    if not image or not isinstance(image, str):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=MISSING_IMAGE_DETAIL,
        )

    if len(image) > settings.max_image_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_image_size_mb}MB",
        )

    logger.info("Received image, starting scan", extra={"size_chars": len(image)})

    try:
        result = await service.handle(image)
    except ImageValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except (AnalysisError, StorageError) as e:
        logger.error(
            "Scan failed",
            extra={"error": str(e), "error_type": type(e).__name__},
            exc_info=e,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Unable to process the request.",
        )

    logger.info("Scan finished", extra={"record_id": result.record_id})

    return ScanResponse(
        analysis=AnalysisResponse.from_domain(result.analysis),
        record_id=result.record_id,
        s3_url=result.url,
    )
