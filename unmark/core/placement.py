"""
Watermark Placement
===================
Maps image dimensions to the watermark preset and its pixel rectangle.

Technical Notes:
- Exactly two presets exist: 48px logo with 32px margins, and 96px logo
  with 64px margins for images larger than 1024px on BOTH axes
- The logo is anchored to the bottom-right corner, inset by the margins
- Rectangles are half-open: [min_x, max_x) x [min_y, max_y)
"""

from dataclasses import dataclass
from typing import Optional

from ..errors import OutOfBoundsError

# Images must exceed this on both axes to get the large preset
LARGE_IMAGE_THRESHOLD = 1024


@dataclass(frozen=True)
class WatermarkConfig:
    """Logo size and margins for one preset."""
    logo_size: int
    margin_right: int
    margin_bottom: int


SMALL_PRESET = WatermarkConfig(logo_size=48, margin_right=32, margin_bottom=32)
LARGE_PRESET = WatermarkConfig(logo_size=96, margin_right=64, margin_bottom=64)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned integer box, half-open on the max edges."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @classmethod
    def from_size(cls, width: int, height: int) -> "Rectangle":
        return cls(0, 0, width, height)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    @property
    def area(self) -> int:
        if self.is_empty():
            return 0
        return self.width * self.height

    def is_empty(self) -> bool:
        return self.min_x >= self.max_x or self.min_y >= self.max_y

    def contains(self, other: "Rectangle") -> bool:
        """True if ``other`` lies entirely inside this rectangle."""
        if other.is_empty():
            return True
        return (
            self.min_x <= other.min_x
            and self.min_y <= other.min_y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )

    def expand(self, amount: int) -> "Rectangle":
        """Grow the rectangle by ``amount`` pixels on every side."""
        return Rectangle(
            self.min_x - amount,
            self.min_y - amount,
            self.max_x + amount,
            self.max_y + amount,
        )

    def intersect(self, other: "Rectangle") -> "Rectangle":
        result = Rectangle(
            max(self.min_x, other.min_x),
            max(self.min_y, other.min_y),
            min(self.max_x, other.max_x),
            min(self.max_y, other.max_y),
        )
        if result.is_empty():
            return Rectangle(0, 0, 0, 0)
        return result

    def as_box(self) -> tuple:
        """PIL-style ``(left, upper, right, lower)`` box."""
        return self.min_x, self.min_y, self.max_x, self.max_y

    def __str__(self) -> str:
        return f"({self.min_x},{self.min_y})-({self.max_x},{self.max_y})"


@dataclass(frozen=True)
class Info:
    """Watermark size and placement, reported for display."""
    size: int
    position: Optional[Rectangle]


def resolve_config(width: int, height: int) -> WatermarkConfig:
    """
    Select the watermark preset for an image.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        LARGE_PRESET if both dimensions exceed 1024, else SMALL_PRESET.
    """
    if width > LARGE_IMAGE_THRESHOLD and height > LARGE_IMAGE_THRESHOLD:
        return LARGE_PRESET
    return SMALL_PRESET


def resolve_rectangle(bounds: Rectangle, config: WatermarkConfig) -> Rectangle:
    """
    Compute the watermark rectangle in image coordinates.

    Args:
        bounds: Image bounds.
        config: Preset from resolve_config().

    Returns:
        Rectangle of logo_size x logo_size inset from the bottom-right corner.

    Raises:
        OutOfBoundsError: If the image is too small to hold the rectangle.
    """
    x = bounds.max_x - config.margin_right - config.logo_size
    y = bounds.max_y - config.margin_bottom - config.logo_size

    rect = Rectangle(x, y, x + config.logo_size, y + config.logo_size)
    if not bounds.contains(rect):
        raise OutOfBoundsError(
            f"Watermark rectangle {rect} out of bounds {bounds}"
        )
    return rect


def watermark_info(width: int, height: int) -> Info:
    """Report the expected watermark size and position; position is None if it does not fit."""
    config = resolve_config(width, height)
    try:
        rect = resolve_rectangle(Rectangle.from_size(width, height), config)
    except OutOfBoundsError:
        rect = None
    return Info(size=config.logo_size, position=rect)
