"""
End-to-end tests for the HTTP surface.

The app is built with create_app() and a ScanService wired to fakes, so
each test goes through routing, validation, the orchestrator, the real
S3ObjectWriter retry logic (against FakeS3Factory) and response shaping.
"""

import pytest
from fastapi.testclient import TestClient

from src.config.settings import ConfigurationError, Settings
from src.core.scan.reader import AnalysisError, FaceReader
from src.core.scan.service import ScanService
from src.infrastructure.anthropic.client import AnthropicClientError
from src.infrastructure.storage.client import StorageConfig, create_object_writer
from src.main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        s3_bucket="scanner-photos",
        aws_access_key_id="AKIA-test",
        aws_secret_access_key="secret",
        anthropic_api_key="sk-test",
        max_image_size_mb=1,
    )


@pytest.fixture
def s3(fake_s3_factory):
    return fake_s3_factory(location="ap-southeast-1")


@pytest.fixture
def vision(fake_vision_client):
    return fake_vision_client()


def build_client(settings, vision, s3) -> TestClient:
    writer = create_object_writer(
        config=StorageConfig(
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            bucket_name=settings.s3_bucket,
            folder=settings.s3_folder,
        ),
        client_factory=s3,
    )
    service = ScanService(FaceReader(vision), writer)
    return TestClient(create_app(settings=settings, scan_service=service))


@pytest.fixture
def client(settings, vision, s3):
    with build_client(settings, vision, s3) as test_client:
        yield test_client


class TestScanEndpoint:

    def test_successful_scan(self, client, s3, jpeg_base64, sample_analysis):
        response = client.post("/api/scan", json={"image": jpeg_base64})

        assert response.status_code == 200
        body = response.json()
        assert body["analysis"] == sample_analysis
        assert body["recordId"].startswith("person_image/")
        assert body["s3Url"] == (
            f"https://scanner-photos.s3.ap-southeast-1.amazonaws.com/{body['recordId']}"
        )
        assert len(s3.put_calls) == 1

    def test_data_url_image_is_accepted(self, client, jpeg_base64):
        response = client.post(
            "/api/scan", json={"image": f"data:image/jpeg;base64,{jpeg_base64}"}
        )

        assert response.status_code == 200

    def test_region_mismatch_is_retried_transparently(
        self, settings, vision, fake_s3_factory, client_error, jpeg_base64
    ):
        s3 = fake_s3_factory(
            location="eu-west-1",
            put_errors=[client_error("PermanentRedirect", 301), None],
        )

        with build_client(settings, vision, s3) as client:
            response = client.post("/api/scan", json={"image": jpeg_base64})

        assert response.status_code == 200
        assert len(s3.put_calls) == 2

    @pytest.mark.parametrize("payload", [
        {"image": 123},
        {"image": ""},
        {"image": None},
        {},
        {"picture": "abc"},
    ])
    def test_bad_image_field_is_400(self, client, vision, s3, payload):
        response = client.post("/api/scan", json=payload)

        assert response.status_code == 400
        assert "detail" in response.json()
        assert vision.calls == []
        assert s3.put_calls == []

    def test_non_json_body_is_400(self, client, vision):
        response = client.post(
            "/api/scan",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Request body must be valid JSON."}
        assert vision.calls == []

    def test_non_object_body_reports_missing_image(self, client):
        response = client.post("/api/scan", json=["not", "an", "object"])

        assert response.status_code == 400
        assert response.json() == {"detail": "Missing base64 image data."}

    def test_invalid_base64_is_400(self, client, vision, s3):
        response = client.post("/api/scan", json={"image": "***"})

        assert response.status_code == 400
        assert vision.calls == []
        assert s3.put_calls == []

    def test_oversized_image_is_413(self, client, vision):
        response = client.post("/api/scan", json={"image": "A" * (1024 * 1024 + 4)})

        assert response.status_code == 413
        assert vision.calls == []

    def test_get_is_405(self, client):
        response = client.get("/api/scan")

        assert response.status_code == 405
        assert "POST" in response.headers["allow"]

    def test_analysis_unreachable_is_500(
        self, settings, fake_vision_client, s3, jpeg_base64
    ):
        vision = fake_vision_client(error=AnthropicClientError("API error: Connection error."))

        with build_client(settings, vision, s3) as client:
            response = client.post("/api/scan", json={"image": jpeg_base64})

        assert response.status_code == 500
        body = response.json()
        assert body == {"detail": "API error: Connection error."}
        assert "recordId" not in body
        assert "analysis" not in body

    def test_unparseable_reading_is_500(self, settings, fake_vision_client, s3, jpeg_base64):
        vision = fake_vision_client(reply="not json at all")

        with build_client(settings, vision, s3) as client:
            response = client.post("/api/scan", json={"image": jpeg_base64})

        assert response.status_code == 500
        assert "unreadable" in response.json()["detail"]

    def test_storage_failure_is_500_without_internal_detail(
        self, settings, vision, fake_s3_factory, client_error, jpeg_base64
    ):
        s3 = fake_s3_factory(put_errors=[client_error("AccessDenied", 403)])

        with build_client(settings, vision, s3) as client:
            response = client.post("/api/scan", json={"image": jpeg_base64})

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert "scanner-photos" not in detail
        assert "person_image" not in detail


class TestServiceEndpoints:

    def test_root_banner(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "scanner-api"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


def test_missing_configuration_aborts_startup(vision, s3, caplog):
    settings = Settings(_env_file=None, anthropic_api_key="sk-test")
    app = create_app(settings=settings)

    with pytest.raises(ConfigurationError, match="S3_BUCKET"):
        with TestClient(app):
            pass

    failures = [r for r in caplog.records if r.getMessage() == "Missing required configuration"]
    assert len(failures) == 1
    assert "S3_BUCKET" in failures[0].error


def test_analysis_error_is_the_reader_contract():
    """The vision client's errors are analysis errors to the orchestrator."""
    assert issubclass(AnthropicClientError, AnalysisError)
