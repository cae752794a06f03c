"""
Workers Module - Async Thread Management
========================================
Contains QThread workers for non-blocking watermark operations.

All heavy computations run in separate threads so a Qt event loop stays
responsive. Workers share the default engine (and its alpha mask cache)
unless one is passed in explicitly.

Components:
- RemoveWorker: Batch watermark removal with progress tracking
- DetectWorker: Single image detection
- BatchDetectWorker: Detection over many images
"""

from .detect_worker import BatchDetectWorker, DetectConfig, DetectResult, DetectWorker
from .remove_worker import RemoveConfig, RemoveResult, RemoveWorker

__all__ = [
    # Remove
    "RemoveWorker",
    "RemoveConfig",
    "RemoveResult",
    # Detect
    "DetectWorker",
    "DetectConfig",
    "DetectResult",
    "BatchDetectWorker",
]
