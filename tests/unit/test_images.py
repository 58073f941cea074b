"""Tests for base64 photo decoding and type detection."""

import base64

import pytest

from src.core.scan.images import (
    ImageValidationError,
    decode_base64_image,
    detect_image_type,
    extension_for,
    strip_data_url,
)


class TestDecodeBase64Image:

    def test_decodes_plain_base64(self, jpeg_bytes, jpeg_base64):
        assert decode_base64_image(jpeg_base64) == jpeg_bytes

    def test_strips_data_url_header(self, png_bytes):
        encoded = "data:image/png;base64," + base64.b64encode(png_bytes).decode()

        assert decode_base64_image(encoded) == png_bytes

    def test_ignores_line_breaks(self, jpeg_bytes, jpeg_base64):
        """MIME-style wrapped base64 is still valid input."""
        wrapped = "\n".join(jpeg_base64[i:i + 16] for i in range(0, len(jpeg_base64), 16))

        assert decode_base64_image(wrapped) == jpeg_bytes

    def test_rejects_invalid_base64(self):
        with pytest.raises(ImageValidationError, match="not valid base64"):
            decode_base64_image("this is not base64!!")

    def test_rejects_header_without_data(self):
        with pytest.raises(ImageValidationError, match="Missing"):
            decode_base64_image("data:image/jpeg;base64,")

    def test_rejects_non_string(self):
        with pytest.raises(ImageValidationError, match="base64 string"):
            decode_base64_image(123)


class TestDetectImageType:

    def test_detects_jpeg(self, jpeg_bytes):
        assert detect_image_type(jpeg_bytes) == "image/jpeg"

    def test_detects_png(self, png_bytes):
        assert detect_image_type(png_bytes) == "image/png"

    def test_detects_webp(self):
        assert detect_image_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"

    def test_unknown_defaults_to_jpeg(self):
        assert detect_image_type(b"plain bytes") == "image/jpeg"

    def test_extension_follows_type(self):
        assert extension_for("image/png") == ".png"
        assert extension_for("image/unknown") == ".jpg"


def test_strip_data_url_leaves_plain_payload_alone():
    assert strip_data_url("abcd") == "abcd"
