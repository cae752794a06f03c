"""
Core Module - Pure Algorithm Logic
==================================
This module contains no UI dependencies.
Placement, alpha masks, detection and reverse alpha blending live here.
"""

from .alpha_mask import AlphaMaskCache, AssetStore, PackageAssetStore, compute_alpha_mask
from .codec import (
    RemovalOutcome,
    decode_base64_image,
    decode_image_bytes,
    detect_watermark_bytes,
    encode_png_base64,
    encode_png_bytes,
    remove_watermark_base64,
    remove_watermark_bytes,
)
from .detector import DetectionResult
from .engine import (
    Engine,
    detect_watermark,
    get_default_engine,
    remove_watermark,
    reset_default_engine,
)
from .placement import Info, Rectangle, WatermarkConfig, resolve_config, resolve_rectangle, watermark_info
from .remover import apply_reverse_alpha

__all__ = [
    "AlphaMaskCache",
    "AssetStore",
    "PackageAssetStore",
    "compute_alpha_mask",
    "RemovalOutcome",
    "decode_base64_image",
    "decode_image_bytes",
    "detect_watermark_bytes",
    "encode_png_base64",
    "encode_png_bytes",
    "remove_watermark_base64",
    "remove_watermark_bytes",
    "DetectionResult",
    "Engine",
    "detect_watermark",
    "get_default_engine",
    "remove_watermark",
    "reset_default_engine",
    "Info",
    "Rectangle",
    "WatermarkConfig",
    "resolve_config",
    "resolve_rectangle",
    "watermark_info",
    "apply_reverse_alpha",
]
