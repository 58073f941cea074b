"""
Physiognomy scan logic.

Contains the domain models, the face reader with its prompts, and the
orchestrator that combines a reading with a stored photo.
"""

from .images import ImageValidationError, decode_base64_image, detect_image_type
from .models import BiometricAnalysis, Fortune, ScanResult, UploadOutcome
from .reader import AnalysisError, FaceReader, VisionModelClient
from .service import ObjectWriter, ScanService

__all__ = [
    "AnalysisError",
    "BiometricAnalysis",
    "FaceReader",
    "Fortune",
    "ImageValidationError",
    "ObjectWriter",
    "ScanResult",
    "ScanService",
    "UploadOutcome",
    "VisionModelClient",
    "decode_base64_image",
    "detect_image_type",
]
