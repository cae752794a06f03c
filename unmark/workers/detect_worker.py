"""
Detect Worker - Async Watermark Detection
=========================================
QThread workers that report whether images carry the corner watermark,
without modifying them.

Workflow:
1. Load the image bytes and decode them
2. Score the expected watermark rectangle
3. Emit result signal with presence, score and placement
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QThread, pyqtSignal

from unmark.core.codec import detect_watermark_bytes
from unmark.core.engine import Engine, get_default_engine
from unmark.core.placement import Info
from unmark.errors import WatermarkError

logger = logging.getLogger(__name__)


@dataclass
class DetectConfig:
    """Configuration for watermark detection."""
    image_path: Path


@dataclass
class DetectResult:
    """Result of detection for one image."""
    source_path: Path
    present: bool = False
    score: float = 0.0
    correlation: float = 0.0
    info: Optional[Info] = None
    success: bool = False
    error_message: str = ""


def _detect_file(engine: Engine, image_path: Path) -> DetectResult:
    result = DetectResult(source_path=image_path)

    detection = detect_watermark_bytes(image_path.read_bytes(), engine)
    result.present = detection.present
    result.score = detection.score
    result.correlation = detection.correlation
    result.info = detection.info
    result.success = True

    return result


class DetectWorker(QThread):
    """
    Worker thread for checking a single image.

    Signals:
        started_detection(str): Emitted when detection starts (filename)
        result_ready(DetectResult): Emitted with detection result
        error(str): Emitted on errors
    """

    # Signals
    started_detection = pyqtSignal(str)  # filename
    result_ready = pyqtSignal(object)  # DetectResult
    error = pyqtSignal(str)  # Error message

    def __init__(self, config: DetectConfig, engine: Optional[Engine] = None, parent=None):
        """
        Initialize the detect worker.

        Args:
            config: DetectConfig naming the image.
            engine: Engine to use. The shared default engine if None.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self.config = config
        self._engine = engine

    def run(self):
        image_path = Path(self.config.image_path)
        result = DetectResult(source_path=image_path)

        try:
            if not image_path.exists():
                raise FileNotFoundError(f"Image not found: {image_path}")

            self.started_detection.emit(image_path.name)

            engine = self._engine if self._engine is not None else get_default_engine()
            result = _detect_file(engine, image_path)

        except (WatermarkError, OSError) as e:
            result.success = False
            result.error_message = str(e)
            self.error.emit(str(e))

        except Exception as e:
            result.success = False
            result.error_message = f"Detection failed: {str(e)}"
            self.error.emit(result.error_message)
            logger.exception("Detection failed for %s", image_path)

        self.result_ready.emit(result)


class BatchDetectWorker(QThread):
    """
    Worker thread for checking many images.

    Signals:
        progress(int, int, str): (current, total, filename)
        image_completed(DetectResult): Emitted for each image
        finished_all(list[DetectResult]): Emitted when all done
        error(str): Emitted on critical errors
    """

    # Signals
    progress = pyqtSignal(int, int, str)  # current, total, filename
    image_completed = pyqtSignal(object)  # DetectResult
    finished_all = pyqtSignal(list)  # List[DetectResult]
    error = pyqtSignal(str)  # Error message

    def __init__(self, image_paths: List[Path], engine: Optional[Engine] = None, parent=None):
        super().__init__(parent)
        self.image_paths = image_paths
        self._engine = engine
        self._is_cancelled = False

    def cancel(self):
        """Request cancellation of the worker."""
        self._is_cancelled = True

    def run(self):
        results: List[DetectResult] = []
        total = len(self.image_paths)

        if total == 0:
            self.error.emit("No images to process")
            self.finished_all.emit(results)
            return

        try:
            engine = self._engine if self._engine is not None else get_default_engine()

            for idx, image_path in enumerate(self.image_paths):
                if self._is_cancelled:
                    break

                image_path = Path(image_path)
                self.progress.emit(idx + 1, total, image_path.name)

                try:
                    result = _detect_file(engine, image_path)
                except (WatermarkError, OSError) as e:
                    result = DetectResult(source_path=image_path, error_message=str(e))
                    logger.warning("Detection failed for %s: %s", image_path.name, e)
                except Exception as e:
                    result = DetectResult(
                        source_path=image_path,
                        error_message=f"Detection failed: {str(e)}"
                    )
                    logger.exception("Detection failed for %s", image_path)

                results.append(result)
                self.image_completed.emit(result)

        except Exception as e:
            self.error.emit(f"Critical error: {str(e)}")
            logger.exception("Batch detect worker aborted")

        self.finished_all.emit(results)
