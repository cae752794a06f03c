"""
Watermark Engine
================
Composes placement, the alpha mask cache, detection and removal into
single-call operations on PIL images.

Technical Notes:
- Every image is normalized to an 8-bit RGBA array first; for removal,
  16-bit grayscale samples are reduced to their high byte
- Detection scores 16-bit grayscale at full precision (sample / 257)
- Removal always returns a NEW image; the caller's image is never touched
- Output mode is RGBA when the source carried transparency, RGB otherwise
- A process-wide default engine is built lazily on first use. Tests and
  hosts needing isolation construct their own Engine instead
"""

import logging
import threading
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from ..errors import InvalidInputError
from .alpha_mask import AlphaMaskCache
from .detector import DetectionResult, score_region
from .placement import Rectangle, WatermarkConfig, resolve_config, resolve_rectangle
from .remover import apply_reverse_alpha

logger = logging.getLogger(__name__)

_ALPHA_MODES = {"RGBA", "RGBa", "LA", "La", "PA"}
_SIXTEEN_BIT_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N"}


def has_transparency(image: Image.Image) -> bool:
    """True if the image carries an alpha channel or a transparency key."""
    return image.mode in _ALPHA_MODES or "transparency" in image.info


def _check_image(image: Image.Image) -> None:
    if image is None:
        raise InvalidInputError("No image provided")

    width, height = image.size
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Invalid image dimensions {width}x{height}")


def _sixteen_bit_samples(image: Image.Image) -> np.ndarray:
    return np.clip(np.asarray(image, dtype=np.int64), 0, 65535)


def image_to_pixels(image: Image.Image) -> np.ndarray:
    """
    Convert a PIL image into an 8-bit (H, W, 4) RGBA array.

    Raises:
        InvalidInputError: If the image is None or has no pixels.
    """
    _check_image(image)
    width, height = image.size

    if image.mode in _SIXTEEN_BIT_MODES:
        gray = (_sixteen_bit_samples(image) >> 8).astype(np.uint8)
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[:, :, :3] = gray[:, :, np.newaxis]
        rgba[:, :, 3] = 255
        return rgba

    return np.array(image.convert("RGBA"), dtype=np.uint8)


def image_to_detection_pixels(image: Image.Image) -> np.ndarray:
    """
    Pixels for scoring: 16-bit grayscale becomes float (H, W, 3) scaled by
    1/257 so luma keeps its fractional part; other modes as image_to_pixels().

    Raises:
        InvalidInputError: If the image is None or has no pixels.
    """
    _check_image(image)

    if image.mode in _SIXTEEN_BIT_MODES:
        gray = _sixteen_bit_samples(image).astype(np.float64) / 257.0
        return np.repeat(gray[:, :, np.newaxis], 3, axis=2)

    return image_to_pixels(image)


def pixels_to_image(pixels: np.ndarray, keep_alpha: bool) -> Image.Image:
    """Convert an RGBA array back to a PIL image (RGBA or RGB)."""
    if keep_alpha:
        return Image.fromarray(np.ascontiguousarray(pixels[:, :, :4]))
    return Image.fromarray(np.ascontiguousarray(pixels[:, :, :3]))


class Engine:
    """
    Detects and removes the corner watermark.

    Holds its own AlphaMaskCache, so separate engines never share state.
    """

    def __init__(self, cache: Optional[AlphaMaskCache] = None):
        """
        Initialize the engine.

        Args:
            cache: Alpha mask cache to use. A new one backed by the
                   packaged assets is created if None.
        """
        self._cache = cache if cache is not None else AlphaMaskCache()

    @property
    def cache(self) -> AlphaMaskCache:
        return self._cache

    def _placement(self, pixels: np.ndarray) -> Tuple[WatermarkConfig, Rectangle]:
        height, width = pixels.shape[:2]
        config = resolve_config(width, height)
        rect = resolve_rectangle(Rectangle.from_size(width, height), config)
        return config, rect

    def detect_pixels(self, pixels: np.ndarray) -> DetectionResult:
        """Run detection on an (H, W, C>=3) array of uint8 or 0..255 floats."""
        config, rect = self._placement(pixels)
        mask = self._cache.get_mask(config.logo_size)
        return score_region(pixels, rect, mask)

    def remove_pixels(self, pixels: np.ndarray) -> np.ndarray:
        """Remove the watermark from an 8-bit (H, W, C>=3) array; returns a new array."""
        config, rect = self._placement(pixels)
        mask = self._cache.get_mask(config.logo_size)
        cleaned = apply_reverse_alpha(pixels, mask, rect)
        logger.info(
            "Removed %dx%d watermark at %s",
            config.logo_size, config.logo_size, rect
        )
        return cleaned

    def detect_watermark(self, image: Image.Image) -> DetectionResult:
        """
        Estimate whether the watermark is present in an image.

        Args:
            image: PIL Image in any mode.

        Returns:
            DetectionResult; ``info`` is populated even when not present.

        Raises:
            InvalidInputError: If image is None or empty.
            OutOfBoundsError: If the image is too small for its preset.
            UnsupportedSizeError, AssetLoadError: From the mask cache.
            InsufficientPixelsError, NoOpaqueSignalError: Degenerate input.
        """
        return self.detect_pixels(image_to_detection_pixels(image))

    def remove_watermark(self, image: Image.Image) -> Image.Image:
        """
        Remove the watermark by reverse alpha blending.

        No detection is performed; call detect_watermark() first to avoid
        altering images that never had the mark.

        Args:
            image: PIL Image in any mode.

        Returns:
            New PIL Image (RGBA if the source had transparency, else RGB).
        """
        pixels = image_to_pixels(image)
        cleaned = self.remove_pixels(pixels)
        return pixels_to_image(cleaned, keep_alpha=has_transparency(image))


# Process-wide default engine, created on first use and kept for the
# lifetime of the interpreter.
_default_engine: Optional[Engine] = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> Engine:
    """Get the shared default engine, creating it on first call."""
    global _default_engine
    engine = _default_engine
    if engine is None:
        with _default_engine_lock:
            if _default_engine is None:
                _default_engine = Engine()
            engine = _default_engine
    return engine


def reset_default_engine() -> None:
    """Drop the shared default engine so the next call builds a fresh one."""
    global _default_engine
    with _default_engine_lock:
        _default_engine = None


def detect_watermark(image: Image.Image) -> DetectionResult:
    """Detect the watermark using the default engine."""
    return get_default_engine().detect_watermark(image)


def remove_watermark(image: Image.Image) -> Image.Image:
    """Remove the watermark using the default engine."""
    return get_default_engine().remove_watermark(image)
