"""
Alpha Mask Cache
================
Loads the reference captures of the watermark and turns them into
per-pixel opacity masks.

Technical Notes:
- A reference capture is the logo rendered over pure black. Alpha blending
  white over black gives pixel = alpha * 255, so alpha = max(R, G, B) / 255
- Masks are flat row-major float32 arrays of length size * size, marked
  read-only and shared between all callers
- Each size is loaded at most once per cache. Failures are remembered and
  re-raised; there is no retry
- A per-size lock guards only the first load; resolved entries are read
  without taking any lock
"""

import io
import logging
import threading
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..config import get_settings
from ..errors import AssetLoadError, UnsupportedSizeError

logger = logging.getLogger(__name__)

# Logo sizes with a placement preset. bg_64.png ships upstream too but is
# not wired to any preset.
SUPPORTED_SIZES = (48, 96)

_SIXTEEN_BIT_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N"}


class AssetStore(Protocol):
    """Source of reference-capture bytes, keyed by logo size."""

    def read_asset(self, size: int) -> bytes:
        """Return the encoded capture, or raise FileNotFoundError."""
        ...


def asset_name(size: int) -> str:
    return f"bg_{size}.png"


class PackageAssetStore:
    """
    Reads reference captures from disk.

    Looks in ``Settings.assets_dir`` when configured, otherwise in the
    ``assets`` directory shipped inside the package.
    """

    def __init__(self, assets_dir: Optional[Path] = None):
        if assets_dir is None:
            assets_dir = get_settings().assets_dir
        self._assets_dir = Path(assets_dir) if assets_dir is not None else None

    def read_asset(self, size: int) -> bytes:
        name = asset_name(size)
        if self._assets_dir is not None:
            return (self._assets_dir / name).read_bytes()
        return (resources.files("unmark") / "assets" / name).read_bytes()


def compute_alpha_mask(image: Image.Image) -> np.ndarray:
    """
    Derive an opacity mask from a decoded reference capture.

    Args:
        image: Capture of the logo over a black background.

    Returns:
        Flat float32 array of max-channel values scaled to [0, 1].
    """
    if image.mode in _SIXTEEN_BIT_MODES:
        # Single channel, 16 bits per sample
        values = np.asarray(image, dtype=np.float64)
        channel_max = 65535.0
    else:
        values = np.asarray(image.convert("RGB"), dtype=np.float64).max(axis=2)
        channel_max = 255.0

    alpha = np.clip(values / channel_max, 0.0, 1.0).astype(np.float32)
    return alpha.reshape(-1)


@dataclass
class _MaskEntry:
    mask: Optional[np.ndarray] = None
    error_message: str = ""
    cause: Optional[BaseException] = None


class AlphaMaskCache:
    """
    Lazily loaded, memoized alpha masks, one per supported logo size.

    Safe to share between threads. Concurrent first requests for a size
    trigger a single load and all callers get the same array (or the same
    error).
    """

    def __init__(
            self,
            store: Optional[AssetStore] = None,
            sizes: Iterable[int] = SUPPORTED_SIZES
    ):
        """
        Initialize the cache.

        Args:
            store: Where reference captures come from. Defaults to
                   PackageAssetStore.
            sizes: Logo sizes this cache will serve.
        """
        self._store = store if store is not None else PackageAssetStore()
        self._locks: Dict[int, threading.Lock] = {
            size: threading.Lock() for size in sizes
        }
        self._entries: Dict[int, _MaskEntry] = {}

    @property
    def sizes(self) -> List[int]:
        return sorted(self._locks)

    def get_mask(self, size: int) -> np.ndarray:
        """
        Get the alpha mask for a logo size, loading it on first use.

        Args:
            size: Logo size in pixels.

        Returns:
            Read-only float32 array of length size * size.

        Raises:
            UnsupportedSizeError: If size is not served by this cache.
            AssetLoadError: If the capture could not be read or decoded.
        """
        lock = self._locks.get(size)
        if lock is None:
            raise UnsupportedSizeError(f"Unsupported watermark size {size}")

        entry = self._entries.get(size)
        if entry is None:
            with lock:
                entry = self._entries.get(size)
                if entry is None:
                    entry = self._load(size)
                    self._entries[size] = entry

        if entry.mask is None:
            raise AssetLoadError(entry.error_message) from entry.cause
        return entry.mask

    def loaded_sizes(self) -> List[int]:
        """Sizes whose mask has been loaded successfully."""
        return sorted(
            size for size, entry in self._entries.items()
            if entry.mask is not None
        )

    def _load(self, size: int) -> _MaskEntry:
        name = asset_name(size)

        try:
            data = self._store.read_asset(size)
        except OSError as e:
            logger.warning("Cannot read alpha asset %s: %s", name, e)
            return _MaskEntry(error_message=f"read {name}: {e}", cause=e)

        try:
            with Image.open(io.BytesIO(data)) as capture:
                mask = compute_alpha_mask(capture)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning("Cannot decode alpha asset %s: %s", name, e)
            return _MaskEntry(error_message=f"decode {name}: {e}", cause=e)

        mask.flags.writeable = False
        logger.debug("Loaded alpha mask %s (%d values)", name, mask.size)
        return _MaskEntry(mask=mask)
