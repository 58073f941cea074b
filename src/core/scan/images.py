"""
Helpers for the base64 photos clients send.

Browsers usually hand us a data URL (``data:image/png;base64,...``) straight
from a canvas or file reader, so the header is optional.
"""

import base64
import binascii
import re


class ImageValidationError(ValueError):
    """Raised when the request does not carry a usable image."""
    pass


_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)

# media type -> object key extension
EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def strip_data_url(image: str) -> str:
    """Remove a leading data URL header, if any."""
    return _DATA_URL_PREFIX.sub("", image.strip(), count=1)


def decode_base64_image(image: str) -> bytes:
    """
    Decode a base64 photo, with or without a data URL header.

    Raises ImageValidationError if the payload is empty or not base64.
    """
    if not isinstance(image, str):
        raise ImageValidationError("Image must be a base64 string")

    clean = "".join(strip_data_url(image).split())
    if not clean:
        raise ImageValidationError("Missing base64 image data")

    try:
        payload = base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError):
        raise ImageValidationError("Image is not valid base64")

    if not payload:
        raise ImageValidationError("Missing base64 image data")

    return payload


def detect_image_type(image_data: bytes) -> str:
    """
    Detect image MIME type from magic bytes.

    Phone cameras and canvases give us jpeg, png or webp; anything we
    don't recognize is treated as jpeg.
    """
    if image_data[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    elif image_data[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    elif image_data[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"
    elif image_data[:4] == b'RIFF' and image_data[8:12] == b'WEBP':
        return "image/webp"
    else:
        return "image/jpeg"


def extension_for(media_type: str) -> str:
    return EXTENSIONS.get(media_type, ".jpg")
