"""
Decoding of pasted image content ("data:<mime>;base64,<data>").

The declared MIME type picks the decoder:
  image/jpeg, image/jpg → JPEG
  anything else         → PNG (explicit default, also when no type is given)

The bytes are then checked against that decoder, so a payload is never
silently embedded as a format it is not.
"""
from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image, UnidentifiedImageError

from core.errors import ImagePayloadError


class ImageFormat(str, Enum):
    JPEG = "JPEG"
    PNG = "PNG"


_JPEG_MIME_TYPES = ("image/jpeg", "image/jpg")


def format_for_mime(mime: Optional[str]) -> ImageFormat:
    if mime and mime.strip().lower() in _JPEG_MIME_TYPES:
        return ImageFormat.JPEG
    return ImageFormat.PNG


@dataclass(frozen=True)
class ImagePayload:
    mime: Optional[str]
    format: ImageFormat
    data: bytes


@dataclass
class DecodedImage:
    """
    A validated image ready for embedding.

    For JPEG the original bytes are kept (embedded as-is, no re-encoding).
    For PNG the decoded Pillow image is kept (embedded as a bitmap).
    """
    format: ImageFormat
    width_px: int
    height_px: int
    data: bytes
    image: Optional[Image.Image] = None


def parse_data_url(content: str) -> ImagePayload:
    """Split a data URL into declared MIME type, decoder choice and raw bytes."""
    if not isinstance(content, str) or "," not in content:
        raise ImagePayloadError("Invalid paste data URL format")

    header, b64 = content.split(",", 1)
    if not header.startswith("data:"):
        raise ImagePayloadError("Invalid paste data URL format: missing 'data:' prefix")

    b64 = b64.strip()
    if not b64:
        raise ImagePayloadError("Invalid paste data URL format: empty payload")

    meta = header[len("data:"):].split(";")
    mime = meta[0] or None

    try:
        data = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImagePayloadError(f"Invalid base64 image data: {e}") from e

    return ImagePayload(mime=mime, format=format_for_mime(mime), data=data)


def decode_image(payload: ImagePayload) -> DecodedImage:
    """Open the payload bytes with the decoder chosen by its declared type."""
    try:
        img = Image.open(io.BytesIO(payload.data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImagePayloadError(f"Could not decode {payload.format.value} image: {e}") from e

    if img.format != payload.format.value:
        raise ImagePayloadError(
            f"Declared {payload.mime or 'no type'} ({payload.format.value}) "
            f"but data is {img.format or 'unknown'}"
        )

    width_px, height_px = img.size
    if width_px == 0 or height_px == 0:
        raise ImagePayloadError("Image has zero size")

    if payload.format is ImageFormat.JPEG:
        return DecodedImage(ImageFormat.JPEG, width_px, height_px, payload.data)

    return DecodedImage(ImageFormat.PNG, width_px, height_px, payload.data, image=img)


def decode_data_url(content: str) -> DecodedImage:
    return decode_image(parse_data_url(content))


def to_data_url(image: Image.Image, fmt: ImageFormat = ImageFormat.PNG) -> str:
    """Encode a Pillow image as a data URL (PNG by default)."""
    bio = io.BytesIO()
    if fmt is ImageFormat.JPEG:
        image.convert("RGB").save(bio, format="JPEG", quality=90)
        mime = "image/jpeg"
    else:
        image.save(bio, format="PNG")
        mime = "image/png"
    return f"data:{mime};base64,{base64.b64encode(bio.getvalue()).decode('ascii')}"
