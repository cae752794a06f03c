"""
Reverse Alpha Blending
======================
Removes the watermark by inverting the composite it was applied with.

Technical Notes:
- Assumed composite: watermarked = alpha * 255 + (1 - alpha) * original
- Inverse: original = (watermarked - alpha * 255) / (1 - alpha)
- Pixels with alpha below ALPHA_THRESHOLD are left untouched
- Alpha is capped at MAX_ALPHA so quantization noise is not blown up
- Only the RGB channels are restored; an alpha channel passes through
"""

import numpy as np

from ..errors import InvalidInputError, OutOfBoundsError, SizeMismatchError
from .placement import Rectangle

ALPHA_THRESHOLD = 0.002
MAX_ALPHA = 0.99
LOGO_VALUE = 255.0


def check_pixels(pixels: np.ndarray, allow_float: bool = False) -> None:
    """
    Raise InvalidInputError unless pixels is an (H, W, C>=3) array of
    8-bit samples. With allow_float, float arrays on the same 0..255
    scale are accepted too.
    """
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise InvalidInputError(
            f"Expected an (H, W, C>=3) pixel array, got shape {pixels.shape}"
        )
    if pixels.dtype != np.uint8 and not (allow_float and np.issubdtype(pixels.dtype, np.floating)):
        raise InvalidInputError(f"Expected uint8 pixels, got {pixels.dtype}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise InvalidInputError("Pixel array has no pixels")


def check_mask(mask: np.ndarray, rect: Rectangle) -> np.ndarray:
    """
    Validate a flat alpha mask against a rectangle.

    Returns:
        The mask as float64, shaped (rect.height, rect.width).

    Raises:
        SizeMismatchError: If the mask length differs from the rectangle area.
    """
    mask = np.asarray(mask)
    expected = rect.area
    if expected == 0 or mask.size != expected:
        raise SizeMismatchError(
            f"Alpha map size mismatch: have {mask.size}, want {expected}"
        )
    return mask.astype(np.float64).reshape(rect.height, rect.width)


def apply_reverse_alpha(
        pixels: np.ndarray,
        mask: np.ndarray,
        rect: Rectangle
) -> np.ndarray:
    """
    Invert the watermark composite inside a rectangle.

    Args:
        pixels: uint8 array of shape (H, W, C) with C >= 3.
        mask: Flat alpha mask of length rect.width * rect.height.
        rect: Watermark rectangle in image coordinates.

    Returns:
        New array with the watermark removed. The input is not modified.

    Raises:
        SizeMismatchError: If the mask does not match the rectangle.
        OutOfBoundsError: If the rectangle does not fit the pixel array.
        InvalidInputError: If pixels is not an 8-bit colour array.
    """
    check_pixels(pixels)
    alpha = check_mask(mask, rect)

    height, width = pixels.shape[:2]
    if not Rectangle.from_size(width, height).contains(rect):
        raise OutOfBoundsError(
            f"Watermark rectangle {rect} out of bounds {width}x{height}"
        )

    result = pixels.copy()
    window = (slice(rect.min_y, rect.max_y), slice(rect.min_x, rect.max_x))

    active = (alpha >= ALPHA_THRESHOLD)[:, :, np.newaxis]
    alpha = np.minimum(alpha, MAX_ALPHA)[:, :, np.newaxis]

    region = result[window][:, :, :3].astype(np.float64)
    restored = (region - alpha * LOGO_VALUE) / (1.0 - alpha)

    # Round half away from zero; values are already non-negative
    restored = np.floor(np.clip(restored, 0.0, 255.0) + 0.5)

    result[window[0], window[1], :3] = np.where(active, restored, region).astype(np.uint8)
    return result
