"""
Image Codec and Byte-Level Entry Points
=======================================
Decodes raw / base64 image payloads with Pillow, runs the engine, and
encodes results back to PNG.

Technical Notes:
- Format is detected from content (PNG, JPEG, WEBP, GIF), never from a
  file extension
- Output is always PNG so restored pixels are not re-quantized
- Base64 input may be a bare string or a ``data:image/...;base64,`` URL
- When detection reports no watermark, removal is skipped and
  ``RemovalOutcome.output`` is None
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from ..errors import DecodeError, EncodeError, InvalidInputError
from .detector import DetectionResult
from .engine import Engine, get_default_engine
from .placement import Info

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovalOutcome:
    """Result of a byte- or base64-level removal."""
    output: Optional[Union[bytes, str]]  # None when no watermark was found
    present: bool
    score: float
    info: Info


def decode_image_bytes(data: bytes) -> Tuple[Image.Image, str]:
    """
    Decode raw image bytes.

    Args:
        data: Encoded image (PNG, JPEG, WEBP, GIF).

    Returns:
        Tuple of (fully loaded PIL Image, lower-case format name).

    Raises:
        InvalidInputError: If data is empty.
        DecodeError: If the bytes are not a decodable image, or declare
                     more pixels than Pillow's decompression bomb limit.
    """
    if not data:
        raise InvalidInputError("Empty image data")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e

    return image, (image.format or "").lower()


def encode_png_bytes(image: Image.Image) -> bytes:
    """
    Encode an image as PNG.

    Raises:
        EncodeError: If Pillow cannot write the image.
    """
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Cannot encode PNG: {e}") from e
    return buffer.getvalue()


def strip_data_prefix(text: str) -> str:
    """Strip a ``data:...,`` URL prefix if present."""
    if text[:5].lower() == "data:":
        _, sep, payload = text.partition(",")
        if sep:
            return payload
    return text


def _decode_base64(text: str) -> bytes:
    raw = "".join(strip_data_prefix(text).split())
    if not raw:
        raise InvalidInputError("Empty base64 image data")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Decode base64: {e}") from e


def decode_base64_image(text: str) -> Tuple[Image.Image, str]:
    """Decode a base64 string or data URL into (image, format)."""
    return decode_image_bytes(_decode_base64(text))


def encode_png_base64(image: Image.Image) -> str:
    """Encode an image as PNG and return it as base64 text."""
    return base64.b64encode(encode_png_bytes(image)).decode("ascii")


def detect_watermark_bytes(data: bytes, engine: Optional[Engine] = None) -> DetectionResult:
    """Check raw image bytes for the watermark without modifying anything."""
    image, _ = decode_image_bytes(data)
    engine = engine if engine is not None else get_default_engine()
    return engine.detect_watermark(image)


def remove_watermark_bytes(data: bytes, engine: Optional[Engine] = None) -> RemovalOutcome:
    """
    Remove the watermark from raw image bytes.

    Args:
        data: Encoded image.
        engine: Engine to use; the default engine if None.

    Returns:
        RemovalOutcome with cleaned PNG bytes, or output=None when the
        watermark was not detected.
    """
    image, format_name = decode_image_bytes(data)
    engine = engine if engine is not None else get_default_engine()

    detection = engine.detect_watermark(image)
    if not detection.present:
        logger.info(
            "No watermark detected in %s image (score %.2f), skipping removal",
            format_name, detection.score
        )
        return RemovalOutcome(
            output=None,
            present=False,
            score=detection.score,
            info=detection.info,
        )

    cleaned = engine.remove_watermark(image)
    return RemovalOutcome(
        output=encode_png_bytes(cleaned),
        present=True,
        score=detection.score,
        info=detection.info,
    )


def remove_watermark_base64(text: str, engine: Optional[Engine] = None) -> RemovalOutcome:
    """Like remove_watermark_bytes(), but takes and returns base64 text."""
    outcome = remove_watermark_bytes(_decode_base64(text), engine)
    if outcome.output is None:
        return outcome
    return replace(outcome, output=base64.b64encode(outcome.output).decode("ascii"))
