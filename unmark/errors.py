"""
Error Types
===========
Exceptions raised by the watermark engine and its collaborators.

A negative detection is not an error: it is reported as ``present=False``.
Everything below means the operation could not be carried out at all.
"""


class WatermarkError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(WatermarkError, ValueError):
    """Missing image, zero-sized image or empty payload."""


class OutOfBoundsError(WatermarkError, ValueError):
    """The watermark rectangle does not fit inside the image."""


class UnsupportedSizeError(WatermarkError, ValueError):
    """An alpha mask was requested for a logo size with no preset."""


class AssetLoadError(WatermarkError):
    """A reference capture could not be read or decoded."""


class SizeMismatchError(WatermarkError, ValueError):
    """Alpha mask length does not match the watermark rectangle area."""


class InsufficientPixelsError(WatermarkError):
    """Not enough pixels to score the watermark region."""


class NoOpaqueSignalError(WatermarkError):
    """The alpha mask carries no opacity at all."""


class DecodeError(WatermarkError):
    """Image payload could not be decoded."""


class EncodeError(WatermarkError):
    """Image could not be encoded."""
