"""Image inspection helpers (Pillow)."""

import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}


def detect_mime_type(data: bytes, default: str = "image/jpeg") -> str:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return MIME_BY_FORMAT.get(img.format, default)
    except (UnidentifiedImageError, OSError):
        return default


def read_dimensions(data: bytes) -> Optional[dict]:
    """Pixel size of an encoded image, or None if Pillow cannot decode it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
        return {"width": width, "height": height}
    except (UnidentifiedImageError, OSError):
        return None
