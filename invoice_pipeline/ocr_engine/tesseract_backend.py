"""
Tesseract OCR Backend.

This module wraps one Tesseract engine (through pytesseract) behind
the recognize(image, psm) primitive used by the OCR session.

Features:
    - Word-level bounding box extraction
    - Confidence scores for each word
    - Line grouping by (block, paragraph, line)
    - Classification of engine faults into transient and permanent

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package

Author: ML Engineering Team
"""

import time
from typing import List, Dict, Tuple
from PIL import Image

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    OCREngineNotAvailableError,
    OCRProcessingError,
    TransientEngineError
)
from .ocr_result import OCRResult, OCRWord, OCRLine

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_TRANSIENT_MARKERS = ['setvariable', 'parameter', 'state', 'timeout', 'worker']


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    One instance stands for one engine; the OCR session owns it and
    recreates it after a transient fault.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command-line configuration
        timeout: Per-call timeout in seconds (0 disables it)

    Example:
        >>> backend = TesseractBackend()
        >>> result = backend.recognize(image, psm=6)
        >>> print(f"Found {result.word_count} words")
    """

    def __init__(self) -> None:
        """Initialize the Tesseract backend with configuration."""
        self.language = get_config("ocr.tesseract.lang", "eng")
        self.oem = get_config("ocr.tesseract.oem", 1)
        self.extra_config = get_config("ocr.tesseract.config", "")
        self.timeout = get_config("ocr.tesseract.timeout", 0)
        self.transient_markers = [
            marker.lower()
            for marker in get_config("ocr.transient_markers", DEFAULT_TRANSIENT_MARKERS)
        ]

        self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, oem={self.oem})"
        )

    def _check_dependencies(self) -> None:
        """
        Check if Tesseract is available.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        try:
            import pytesseract
            self._pytesseract = pytesseract

            version = pytesseract.get_tesseract_version()
            self.version = str(version)
            logger.info(f"Tesseract version: {version}")

        except ImportError:
            raise OCREngineNotAvailableError(
                "pytesseract (install with: pip install pytesseract)"
            )
        except Exception as e:
            raise OCREngineNotAvailableError(
                f"Tesseract OCR (not installed or not in PATH): {e}"
            )

    def _build_config(self, psm: int) -> str:
        """
        Build Tesseract configuration string for one segmentation mode.

        Args:
            psm: Page Segmentation Mode (1-13).

        Returns:
            Configuration string for Tesseract.
        """
        config_parts = [
            f"--psm {psm}",
            f"--oem {self.oem}"
        ]

        if self.extra_config:
            config_parts.append(self.extra_config)

        return ' '.join(config_parts)

    def recognize(self, image: Image.Image, psm: int) -> OCRResult:
        """
        Recognize text on an image with the given segmentation mode.

        Args:
            image: PIL Image to process.
            psm: Page Segmentation Mode.

        Returns:
            OCRResult containing words, lines, and bounding boxes.

        Raises:
            TransientEngineError: If the engine reports a fault that a
                fresh engine is expected to clear.
            OCRProcessingError: For any other recognition failure.
        """
        start_time = time.time()
        config = self._build_config(psm)
        logger.debug(f"Running Tesseract OCR (config: {config})")

        try:
            data = self._pytesseract.image_to_data(
                image,
                lang=self.language,
                config=config,
                timeout=self.timeout,
                output_type=self._pytesseract.Output.DICT
            )
        except (self._pytesseract.TesseractError, RuntimeError) as e:
            if self.is_transient(e):
                raise TransientEngineError(str(e)) from e
            raise OCRProcessingError(f"psm {psm}", str(e)) from e
        except Exception as e:
            raise OCRProcessingError(f"psm {psm}", str(e)) from e

        words = self._parse_tesseract_output(data)
        lines = self._group_into_lines(words)

        result = OCRResult(
            words=words,
            lines=lines,
            psm=psm,
            image_width=image.width,
            image_height=image.height,
            processing_time=time.time() - start_time
        )

        logger.debug(
            f"OCR psm={psm}: {result.word_count} words, "
            f"avg confidence {result.confidence:.1f}% "
            f"({result.processing_time:.2f}s)"
        )
        return result

    def is_transient(self, error: Exception) -> bool:
        """Check whether an engine error message names a transient fault."""
        message = str(error).lower()
        return any(marker in message for marker in self.transient_markers)

    def _parse_tesseract_output(self, data: Dict[str, List]) -> List[OCRWord]:
        """
        Parse Tesseract output into OCRWord objects.

        Entries with confidence -1 are layout nodes (blocks, paragraphs,
        lines) rather than words and are skipped.

        Args:
            data: Dictionary output from image_to_data.

        Returns:
            List of OCRWord objects.
        """
        words = []

        for i in range(len(data['text'])):
            text = data['text'][i]
            if not text or not text.strip():
                continue

            conf = float(data['conf'][i])
            if conf < 0:
                continue

            x = data['left'][i]
            y = data['top'][i]
            w = data['width'][i]
            h = data['height'][i]

            words.append(OCRWord(
                text=text.strip(),
                bbox=(x, y, x + w, y + h),
                confidence=conf,
                line_key=(data['block_num'][i], data['par_num'][i], data['line_num'][i])
            ))

        return words

    def _group_into_lines(self, words: List[OCRWord]) -> List[OCRLine]:
        """
        Group words into lines using the engine's own line numbering.

        Args:
            words: List of OCRWord objects in reading order.

        Returns:
            List of OCRLine objects.
        """
        line_groups: Dict[Tuple[int, int, int], List[OCRWord]] = {}

        for word in words:
            line_groups.setdefault(word.line_key, []).append(word)

        lines = []
        for key in sorted(line_groups.keys()):
            line_words = sorted(line_groups[key], key=lambda w: w.x1)
            lines.append(OCRLine(words=line_words))

        return lines

    def close(self) -> None:
        """Release the engine. Tesseract runs per call, so nothing is held."""
        logger.debug("Tesseract backend released")


def create_tesseract_backend() -> TesseractBackend:
    """Engine factory used by the OCR session."""
    return TesseractBackend()


__all__ = ['TesseractBackend', 'create_tesseract_backend']
