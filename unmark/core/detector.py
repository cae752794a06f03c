"""
Watermark Detection
===================
Decides whether the watermark is actually present before anything is
"restored", so clean images are never damaged.

Technical Notes:
- The watermark is white on darker content, so the rectangle should be
  brighter than a surrounding band of background pixels
- Brightness alone is not enough (bright corners are common), so the
  per-pixel brightness excess must also correlate with the alpha mask
- Luma uses Rec. 709 weights on channel values scaled to 0..255; pixels
  may be uint8 or float (16-bit sources scored without truncation)
- Both gates must pass: luma delta > 6.0 AND correlation > 0.20
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..errors import InsufficientPixelsError, NoOpaqueSignalError, OutOfBoundsError
from .placement import Info, Rectangle
from .remover import check_mask, check_pixels

logger = logging.getLogger(__name__)

# Brightness excess (in 8-bit luma units) required inside the rectangle.
DETECTION_LUMA_THRESHOLD = 6.0
# Minimum correlation between brightness excess and the watermark shape.
DETECTION_CORRELATION_THRESHOLD = 0.20
# Mask pixels below this opacity count as "clear" (no watermark ink).
CLEAR_ALPHA_CUTOFF = 0.02
# Background band width is max(logo_size // 3, MIN_BAND).
MIN_BAND = 8

LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of watermark detection."""
    present: bool
    score: float  # mask-weighted luma excess, clear-pixel bias removed
    correlation: float
    info: Info


def luma(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel luma of an (H, W, C>=3) array as float64."""
    return pixels[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


def mean_luma(
        pixels: np.ndarray,
        region: Rectangle,
        exclude: Optional[Rectangle] = None
) -> Tuple[float, int]:
    """
    Average luma over a region, optionally skipping an inner rectangle.

    Returns:
        Tuple of (mean, pixel_count). Mean is 0.0 when no pixel was sampled.
    """
    if region.is_empty():
        return 0.0, 0

    values = luma(pixels[region.min_y:region.max_y, region.min_x:region.max_x])
    keep = np.ones(values.shape, dtype=bool)

    if exclude is not None:
        hole = exclude.intersect(region)
        if not hole.is_empty():
            keep[
                hole.min_y - region.min_y:hole.max_y - region.min_y,
                hole.min_x - region.min_x:hole.max_x - region.min_x
            ] = False

    count = int(keep.sum())
    if count == 0:
        return 0.0, 0
    return float(values[keep].sum() / count), count


def score_watermark(
        pixels: np.ndarray,
        rect: Rectangle,
        mask: np.ndarray,
        background_mean: float
) -> Tuple[float, float]:
    """
    Compare the expected watermark shape with the observed brightness.

    Args:
        pixels: uint8 array of shape (H, W, C>=3).
        rect: Watermark rectangle.
        mask: Flat alpha mask for the rectangle.
        background_mean: Mean luma of the surrounding band.

    Returns:
        Tuple of (luma_delta, correlation).

    Raises:
        SizeMismatchError: If the mask does not match the rectangle.
        InsufficientPixelsError: If the mask has no clear pixels.
        NoOpaqueSignalError: If the mask has no opacity at all.
    """
    alpha = check_mask(mask, rect).reshape(-1)
    window = pixels[rect.min_y:rect.max_y, rect.min_x:rect.max_x]
    residuals = luma(window).reshape(-1) - background_mean

    clear = alpha < CLEAR_ALPHA_CUTOFF
    if not clear.any():
        raise InsufficientPixelsError("Alpha map missing clear pixels for scoring")

    sum_alpha = float(alpha.sum())
    if sum_alpha == 0:
        raise NoOpaqueSignalError("Alpha map missing opaque pixels for scoring")

    clear_mean = float(residuals[clear].mean())
    delta = float((residuals * alpha).sum() / sum_alpha) - clear_mean

    if np.ptp(alpha) == 0 or np.ptp(residuals) == 0:
        return delta, 0.0

    alpha_dev = alpha - alpha.mean()
    residual_dev = residuals - residuals.mean()

    denominator = float(np.sqrt((alpha_dev ** 2).sum() * (residual_dev ** 2).sum()))
    if denominator == 0:
        return delta, 0.0

    correlation = float((alpha_dev * residual_dev).sum() / denominator)
    return delta, correlation


def score_region(
        pixels: np.ndarray,
        rect: Rectangle,
        mask: np.ndarray
) -> DetectionResult:
    """
    Run detection for an already resolved rectangle and mask.

    Pixels are uint8, or float on the same 0..255 scale.

    The background is sampled from a band around the rectangle, clipped to
    the image and excluding the rectangle itself.

    Raises:
        InsufficientPixelsError: If the rectangle or the band is empty.
    """
    check_pixels(pixels, allow_float=True)
    height, width = pixels.shape[:2]
    bounds = Rectangle.from_size(width, height)
    if not bounds.contains(rect):
        raise OutOfBoundsError(f"Watermark rectangle {rect} out of bounds {bounds}")

    band = max(rect.width // 3, MIN_BAND)
    outer = rect.expand(band).intersect(bounds)

    _, inner_count = mean_luma(pixels, rect)
    background_mean, outer_count = mean_luma(pixels, outer, exclude=rect)

    if inner_count == 0 or outer_count == 0:
        raise InsufficientPixelsError("Insufficient pixels to evaluate watermark")

    delta, correlation = score_watermark(pixels, rect, mask, background_mean)

    present = (
        delta > DETECTION_LUMA_THRESHOLD
        and correlation > DETECTION_CORRELATION_THRESHOLD
    )
    logger.debug(
        "Watermark score at %s: delta=%.2f corr=%.3f present=%s",
        rect, delta, correlation, present
    )

    return DetectionResult(
        present=present,
        score=delta,
        correlation=correlation,
        info=Info(size=rect.width, position=rect),
    )
