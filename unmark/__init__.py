"""
unmark Package
==============
Detects and removes the fixed-position corner logo watermark from images
by reverse alpha blending.

Modules:
    - core: Pure algorithm logic (no UI dependencies)
    - workers: QThread workers for batch processing

Usage:
    from unmark.core import Engine, detect_watermark, remove_watermark
    from unmark.workers import RemoveWorker, DetectWorker

Only the core is imported here, so the package works without Qt installed.

Reference captures:
    The alpha masks come from bg_48.png and bg_96.png, which are NOT
    bundled. Place them in unmark/assets/ or point UNMARK_ASSETS_DIR at
    a directory holding them. Without them get_default_engine() still
    builds, but every detect/remove call raises AssetLoadError. Pass an
    Engine(AlphaMaskCache(store)) with a custom AssetStore to supply
    captures from elsewhere.
"""

__version__ = "1.0.0"
__author__ = "NightCat"
__app_name__ = "unmark"

# Core exports
from .core import (
    AlphaMaskCache,
    DetectionResult,
    Engine,
    Info,
    Rectangle,
    RemovalOutcome,
    detect_watermark,
    detect_watermark_bytes,
    get_default_engine,
    remove_watermark,
    remove_watermark_base64,
    remove_watermark_bytes,
)
from .errors import WatermarkError

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__app_name__",

    # Core
    "AlphaMaskCache",
    "DetectionResult",
    "Engine",
    "Info",
    "Rectangle",
    "RemovalOutcome",
    "detect_watermark",
    "detect_watermark_bytes",
    "get_default_engine",
    "remove_watermark",
    "remove_watermark_base64",
    "remove_watermark_bytes",

    # Errors
    "WatermarkError",
]
