"""
Shared test doubles.

boto3 clients are replaced by FakeS3Factory, which hands out region-bound
fake clients and records every call. Errors are real botocore ClientError
instances so classification sees exactly what S3 would send.
"""

import base64
import json
from typing import Optional

import pytest
from botocore.exceptions import ClientError

SETTINGS_ENV_VARS = [
    "S3_BUCKET", "S3_FOLDER", "S3_REGION", "S3_ENDPOINT_URL",
    "AWS_REGION", "AWS_DEFAULT_REGION", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY",
    "ANTHROPIC_API_KEY", "STORAGE_MOCK_MODE", "MAX_IMAGE_SIZE_MB", "CORS_ORIGINS",
]


def make_client_error(
    code: str,
    status: int = 400,
    message: str = "",
    operation: str = "PutObject",
) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    def __init__(self, factory: "FakeS3Factory", region: str) -> None:
        self._factory = factory
        self.region = region

    def get_bucket_location(self, Bucket: str) -> dict:
        self._factory.location_calls.append((self.region, Bucket))
        if self._factory.location_error is not None:
            raise self._factory.location_error
        if self._factory.location_response is not None:
            return self._factory.location_response
        return {"LocationConstraint": self._factory.location}

    def put_object(self, **kwargs) -> dict:
        self._factory.put_calls.append((self.region, kwargs))
        if self._factory.put_errors:
            error = self._factory.put_errors.pop(0)
            if error is not None:
                raise error
        return {"ETag": '"fake"'}


class FakeS3Factory:
    """Callable(region) -> FakeS3Client, with scripted responses."""

    def __init__(
        self,
        location: Optional[str] = "eu-west-1",
        put_errors: Optional[list] = None,
        location_error: Optional[Exception] = None,
        location_response=None,
    ) -> None:
        self.location = location
        self.put_errors = list(put_errors or [])
        self.location_error = location_error
        self.location_response = location_response
        self.created_regions: list[str] = []
        self.location_calls: list[tuple[str, str]] = []
        self.put_calls: list[tuple[str, dict]] = []

    def __call__(self, region: str) -> FakeS3Client:
        self.created_regions.append(region)
        return FakeS3Client(self, region)


# Smallest valid JPEG header; enough for magic-byte detection
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


SAMPLE_ANALYSIS = {
    "estimatedAge": 27,
    "beautyScore": 92,
    "lifeQuote": "Núi cao ắt có đường trèo.",
    "archetype": "Thiên Cơ Tú Sĩ",
    "fortune": {
        "thienDinh": "Vầng trán cao rộng, trí tuệ hơn người.",
        "taiBach": "Mũi thẳng đầy đặn, tài lộc dồi dào.",
        "phuThe": "Mắt sáng môi tươi, gia đạo êm ấm.",
        "tongQuan": "Hậu vận rực rỡ, đại cát đại lợi.",
    },
}


class FakeVisionClient:
    """Returns a canned reply, or raises a canned error."""

    def __init__(self, reply: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.reply = json.dumps(SAMPLE_ANALYSIS, ensure_ascii=False) if reply is None else reply
        self.error = error
        self.calls: list[dict] = []

    async def analyze_image(self, image, system_prompt, user_prompt, media_type="image/jpeg"):
        self.calls.append({
            "image": image,
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "media_type": media_type,
        })
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep the developer's shell environment out of Settings()."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def client_error():
    return make_client_error


@pytest.fixture
def fake_s3_factory():
    return FakeS3Factory


@pytest.fixture
def fake_vision_client():
    return FakeVisionClient


@pytest.fixture
def sample_analysis() -> dict:
    return json.loads(json.dumps(SAMPLE_ANALYSIS))


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def jpeg_base64() -> str:
    return base64.b64encode(JPEG_BYTES).decode("ascii")
