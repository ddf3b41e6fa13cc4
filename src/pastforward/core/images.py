"""Image payload helpers.

Generated images travel through the system as ``data:`` URLs, the same shape
the browser produces when it reads an uploaded file.  This module converts
between data URLs, raw bytes, and Pillow images.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.S)

DEFAULT_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ImagePayload:
    """Decoded data URL.

    Attributes:
        mime_type: Declared media type, ``image/png`` when the URL omits it.
        data: Raw encoded image bytes.
    """

    mime_type: str
    data: bytes


def parse_data_url(data_url: str) -> ImagePayload:
    """Split a base64 ``data:`` URL into its media type and bytes.

    Raises:
        ValueError: If ``data_url`` is not a base64 data URL.
    """
    match = _DATA_URL_RE.match(data_url.strip())
    if match is None:
        raise ValueError("Expected a base64 data URL (data:<mime>;base64,<payload>)")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload in data URL: {exc}") from exc
    if not data:
        raise ValueError("Data URL carries no image bytes")
    return ImagePayload(mime_type=match.group("mime") or DEFAULT_MIME_TYPE, data=data)


def to_data_url(data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Encode raw image bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def open_image(payload: str | bytes) -> Image.Image:
    """Decode a data URL or raw bytes into an RGB Pillow image.

    EXIF orientation is applied so portrait phone photos are upright.
    """
    data = parse_data_url(payload).data if isinstance(payload, str) else payload
    image = Image.open(BytesIO(data))
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def validate_image(data_url: str) -> ImagePayload:
    """Check that ``data_url`` holds a decodable image.

    Raises:
        ValueError: If the URL is malformed or the bytes are not an image.
    """
    payload = parse_data_url(data_url)
    try:
        with Image.open(BytesIO(payload.data)) as image:
            image.verify()
    except Exception as exc:
        raise ValueError(f"Uploaded data is not a readable image: {exc}") from exc
    return payload


def cover_fit(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Scale and centre-crop ``image`` so it fills ``size`` exactly."""
    width, height = size
    if width <= 0 or height <= 0:
        raise ValueError("fit size must be positive")
    return ImageOps.fit(image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))


def encode_jpeg(image: Image.Image, quality: int = 90) -> bytes:
    """Encode ``image`` as an optimised baseline JPEG."""
    buffer = BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def encode_png(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
