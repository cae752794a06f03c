"""
Remove Worker - Async Watermark Removal
=======================================
QThread worker for removing the corner watermark from a batch of images.

Workflow:
1. For each image in the queue:
   a. Decode the file (format detected from content)
   b. Run detection; skip the image if no watermark is found
   c. Reverse the alpha blend and save a PNG to the output directory
2. Emit progress signals during processing
3. Emit finished signal with results

Naming Convention:
- filename<output_suffix>.png (suffix from settings, "_unwatermarked")
- filename_<ext><output_suffix>.png when another source in the same
  batch already took that name, then a numeric counter
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from PyQt6.QtCore import QThread, pyqtSignal

from unmark.config import get_settings
from unmark.core.codec import decode_image_bytes, encode_png_bytes
from unmark.core.engine import Engine, get_default_engine
from unmark.core.placement import Info
from unmark.errors import WatermarkError

logger = logging.getLogger(__name__)


@dataclass
class RemoveConfig:
    """Configuration for batch watermark removal."""
    image_paths: List[Path] = field(default_factory=list)
    output_dir: Path = field(default_factory=lambda: Path.cwd() / "output")

    # Remove even when detection says the watermark is absent
    force: bool = False

    # None = Settings.output_suffix
    output_suffix: Optional[str] = None


@dataclass
class RemoveResult:
    """Result of removal for a single image."""
    source_path: Path
    output_path: Optional[Path] = None
    present: bool = False
    score: float = 0.0
    info: Optional[Info] = None
    skipped: bool = False  # True when no watermark was detected
    success: bool = False
    error_message: str = ""


class RemoveWorker(QThread):
    """
    Worker thread for removing watermarks from images.

    Signals:
        progress(int, int, str): (current, total, current_file_name)
        image_completed(RemoveResult): Emitted when each image is processed
        finished_all(list[RemoveResult]): Emitted when all images are done
        error(str): Emitted on critical errors
    """

    # Signals
    progress = pyqtSignal(int, int, str)  # current, total, filename
    image_completed = pyqtSignal(object)  # RemoveResult
    finished_all = pyqtSignal(list)  # List[RemoveResult]
    error = pyqtSignal(str)  # Error message

    def __init__(self, config: RemoveConfig, engine: Optional[Engine] = None, parent=None):
        """
        Initialize the remove worker.

        Args:
            config: RemoveConfig with input files and output settings.
            engine: Engine to use. The shared default engine if None.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self.config = config
        self._engine = engine
        self._is_cancelled = False
        self._used_names: Set[str] = set()

    def cancel(self):
        """Request cancellation of the worker."""
        self._is_cancelled = True

    def _generate_output_filename(self, source_path: Path) -> str:
        """
        Build the output name, unique within this run.

        Sources sharing a stem (pic.png, pic.jpg) would map to the same
        name, so later ones get the source extension and then a counter.
        """
        suffix = self.config.output_suffix
        if suffix is None:
            suffix = get_settings().output_suffix

        name = f"{source_path.stem}{suffix}.png"
        if name in self._used_names:
            ext = source_path.suffix.lstrip(".").lower()
            base = f"{source_path.stem}_{ext}" if ext else source_path.stem
            name = f"{base}{suffix}.png"
            counter = 2
            while name in self._used_names:
                name = f"{base}{suffix}_{counter}.png"
                counter += 1

        self._used_names.add(name)
        return name

    def _process_single_image(self, engine: Engine, image_path: Path) -> RemoveResult:
        """
        Detect and remove the watermark from one file.

        Args:
            engine: Engine doing the work.
            image_path: Path to the source image.

        Returns:
            RemoveResult with processing outcome.
        """
        result = RemoveResult(source_path=image_path)

        try:
            image, format_name = decode_image_bytes(image_path.read_bytes())

            detection = engine.detect_watermark(image)
            result.present = detection.present
            result.score = detection.score
            result.info = detection.info

            if not detection.present and not self.config.force:
                logger.info(
                    "No watermark in %s (%s, score %.2f), skipping",
                    image_path.name, format_name, detection.score
                )
                result.skipped = True
                result.success = True
                return result

            cleaned = engine.remove_watermark(image)

            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self.config.output_dir / self._generate_output_filename(image_path)
            output_path.write_bytes(encode_png_bytes(cleaned))

            result.output_path = output_path
            result.success = True

        except (WatermarkError, OSError) as e:
            result.success = False
            result.error_message = str(e)
            logger.exception("Failed to process %s", image_path)

        except Exception as e:
            result.success = False
            result.error_message = f"Processing failed: {str(e)}"
            logger.exception("Failed to process %s", image_path)

        return result

    def run(self):
        """
        Main worker execution.

        Processes all images in the config and emits progress signals.
        """
        results: List[RemoveResult] = []
        total = len(self.config.image_paths)
        self._used_names.clear()

        if total == 0:
            self.error.emit("No images to process")
            self.finished_all.emit(results)
            return

        try:
            engine = self._engine if self._engine is not None else get_default_engine()

            for idx, image_path in enumerate(self.config.image_paths):
                if self._is_cancelled:
                    break

                image_path = Path(image_path)

                # Emit progress
                self.progress.emit(idx + 1, total, image_path.name)

                result = self._process_single_image(engine, image_path)
                results.append(result)

                # Emit individual result
                self.image_completed.emit(result)

        except Exception as e:
            self.error.emit(f"Critical error: {str(e)}")
            logger.exception("Remove worker aborted")

        # Emit final results
        self.finished_all.emit(results)
