"""
Text Acquisition Module.

This module turns a SourceDocument into raw text. PDFs are read for
embedded text first; when that yields too little text (a scanned PDF)
every page is rendered to an image and OCRed. Images go straight to OCR.

Each page image is OCRed with a fixed, ordered sweep of page
segmentation modes. The sweep stops early on a result that is both
confident and long; otherwise the most confident sufficiently long
result wins. A failing mode is skipped, and a page where every mode
fails contributes no text.

Usage:
    from invoice_pipeline.input_handler import TextAcquisition, SourceDocument

    acquisition = TextAcquisition(session=OcrSession.get_session())
    result = await acquisition.acquire(SourceDocument.from_path("scan.pdf"))
    print(result.used_ocr, result.confidence)

Author: ML Engineering Team
"""

import asyncio
import shutil
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from PIL import Image

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import safe_filename, elapsed_ms, ensure_directory
from invoice_pipeline.utils.exceptions import OCRError, CorruptedFileError
from invoice_pipeline.ocr_engine.ocr_result import OCRResult
from invoice_pipeline.extraction.invoice_data import ExtractionMethod, ExtractionAttempt
from .document import SourceDocument
from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_SWEEP_MODES = [
    {'psm': 6, 'name': 'UNIFORM_BLOCK'},
    {'psm': 3, 'name': 'FULLY_AUTO'},
    {'psm': 1, 'name': 'AUTO_OSD'},
    {'psm': 4, 'name': 'SINGLE_COLUMN_VARIABLE'}
]


@dataclass
class PageText:
    """Text chosen for one page by the segmentation sweep."""
    page_number: int
    text: str = ""
    confidence: float = 0.0
    mode_name: Optional[str] = None
    early_stop: bool = False
    modes_tried: int = 0


@dataclass
class AcquisitionResult:
    """
    Output of TextAcquisition.acquire().

    Attributes:
        text: Recovered text
        page_count: Pages that were processed
        used_ocr: Whether the OCR sub-path produced the text
        method: Tag of the attempt whose text is returned
        confidence: 0-100 confidence of that attempt
        attempts: Every attempt made, in order
        pages: Per-page OCR outcomes (empty for native text)
    """
    text: str
    page_count: int
    used_ocr: bool
    method: ExtractionMethod
    confidence: float = 0.0
    attempts: List[ExtractionAttempt] = field(default_factory=list)
    pages: List[PageText] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'pageCount': self.page_count,
            'usedOcr': self.used_ocr
        }


class TextAcquisition:
    """
    Chooses between native PDF text and OCR, and drives the OCR sweep.

    The OCR session is injected; it is the only shared resource touched.

    Attributes:
        session: OcrSession (or any object with async recognize(image, psm, mode_name))
        min_native_text_length: Below this, a PDF is treated as scanned
        modes: Ordered segmentation modes of the sweep

    Example:
        >>> acquisition = TextAcquisition(session)
        >>> result = await acquisition.acquire(document)
    """

    def __init__(
        self,
        session: Any,
        pdf_processor: Optional[PDFProcessor] = None,
        image_processor: Optional[ImageProcessor] = None
    ) -> None:
        self.session = session
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.image_processor = image_processor or ImageProcessor()

        self.min_native_text_length = get_config("acquisition.min_native_text_length", 50)
        self.native_confidence = get_config("metrics.native_text_confidence", 95)
        self.temp_dir = get_config("acquisition.temp_dir")

        self.modes = get_config("ocr.sweep.modes", DEFAULT_SWEEP_MODES)
        self.min_text_length = get_config("ocr.sweep.min_text_length", 50)
        self.fallback_min_text_length = get_config("ocr.sweep.fallback_min_text_length", 10)
        self.early_stop_confidence = get_config("ocr.sweep.early_stop_confidence", 85)
        self.early_stop_length = get_config("ocr.sweep.early_stop_length", 100)

        logger.debug(
            f"TextAcquisition initialized (modes={[m['psm'] for m in self.modes]}, "
            f"native threshold={self.min_native_text_length})"
        )

    async def acquire(self, document: SourceDocument, progress: Any = None) -> AcquisitionResult:
        """
        Recover the text of a document.

        Args:
            document: Document to read.
            progress: Optional reporter with async report(stage, percent, message).

        Returns:
            AcquisitionResult; its text may be empty.

        Raises:
            UnrecoverableInputError: If the document cannot be read at all.
        """
        if document.is_pdf:
            return await self._acquire_pdf(document, progress)
        return await self._acquire_image(document, progress)

    async def _acquire_pdf(self, document: SourceDocument, progress: Any) -> AcquisitionResult:
        start = time.perf_counter()
        await self._report(progress, 'pdf_text_extraction', 10, 'Extracting embedded PDF text')

        try:
            text = await asyncio.to_thread(self.pdf_processor.extract_native_text, document.data)
        except CorruptedFileError as e:
            logger.warning(f"Native text extraction failed for {document.document_id}: {e}")
            text = ""

        native = ExtractionAttempt(
            method=ExtractionMethod.NATIVE_TEXT,
            raw_text=text,
            confidence=self.native_confidence,
            elapsed_ms=elapsed_ms(start)
        )

        text_length = len(text.strip())
        if text_length >= self.min_native_text_length:
            logger.info(f"Using native PDF text ({text_length} characters)")
            return AcquisitionResult(
                text=text,
                page_count=document.page_count,
                used_ocr=False,
                method=ExtractionMethod.NATIVE_TEXT,
                confidence=native.confidence,
                attempts=[native]
            )

        logger.info(
            f"Native PDF text too short ({text_length} < {self.min_native_text_length}); "
            f"converting pages for OCR"
        )
        await self._report(progress, 'pdf_conversion', 20, 'Converting PDF pages to images')

        start = time.perf_counter()
        with self._page_workspace(document) as workspace:
            page_paths = await asyncio.to_thread(
                self.pdf_processor.render_pages, document.data, workspace
            )
            pages = []
            for index, page_path in enumerate(page_paths):
                await self._report(
                    progress, 'ocr_processing', self._ocr_percent(index, len(page_paths)),
                    f"Running OCR on page {index + 1} of {len(page_paths)}"
                )
                pages.append(await self._ocr_page_file(page_path, index + 1))

        return self._ocr_result(pages, [native], start)

    async def _acquire_image(self, document: SourceDocument, progress: Any) -> AcquisitionResult:
        start = time.perf_counter()
        image = await asyncio.to_thread(
            self.image_processor.load, document.data, document.filename or document.document_id
        )

        await self._report(progress, 'ocr_processing', 30, 'Running OCR on image')
        try:
            prepared = await asyncio.to_thread(self.image_processor.prepare, image)
            page = await self._sweep(prepared, 1)
        finally:
            image.close()

        return self._ocr_result([page], [], start)

    async def _ocr_page_file(self, page_path: Path, page_number: int) -> PageText:
        """Load one rendered page, prepare it and sweep it."""
        try:
            image = await asyncio.to_thread(self.image_processor.load, page_path, page_path.name)
        except CorruptedFileError as e:
            logger.warning(f"Skipping page {page_number}: {e}")
            return PageText(page_number=page_number)

        try:
            prepared = await asyncio.to_thread(self.image_processor.prepare, image)
            return await self._sweep(prepared, page_number)
        finally:
            image.close()

    async def _sweep(self, image: Image.Image, page_number: int) -> PageText:
        """
        Run the segmentation-mode sweep on one page image.

        Selection rules, in order:
            1. The first mode whose confidence and length both clear the
               early-stop bars is taken immediately.
            2. Otherwise the most confident result of at least
               min_text_length characters (earliest mode wins ties).
            3. Otherwise the most confident result of at least
               fallback_min_text_length characters.
            4. Otherwise the page has no text.
        """
        best: Optional[OCRResult] = None
        fallback: Optional[OCRResult] = None
        tried = 0

        for mode in self.modes:
            psm = mode['psm']
            name = mode.get('name', f"PSM_{psm}")
            tried += 1
            try:
                result = await self.session.recognize(image, psm, name)
            except OCRError as e:
                logger.warning(f"Page {page_number}: OCR mode {name} failed, skipping: {e}")
                continue

            text_length = len(result.text.strip())
            logger.debug(
                f"Page {page_number}: {name} -> {text_length} chars, "
                f"confidence {result.confidence:.1f}%"
            )

            if result.confidence > self.early_stop_confidence and text_length > self.early_stop_length:
                logger.info(f"Page {page_number}: early stop on {name} ({result.confidence:.1f}%)")
                return self._page_text(page_number, result, tried, early_stop=True)

            if text_length >= self.min_text_length:
                if best is None or result.confidence > best.confidence:
                    best = result
            elif text_length >= self.fallback_min_text_length:
                if fallback is None or result.confidence > fallback.confidence:
                    fallback = result

        chosen = best or fallback
        if chosen is None:
            logger.warning(f"Page {page_number}: no OCR mode produced usable text")
            return PageText(page_number=page_number, modes_tried=tried)

        logger.info(
            f"Page {page_number}: selected {chosen.mode_name} ({chosen.confidence:.1f}%)"
        )
        return self._page_text(page_number, chosen, tried)

    @staticmethod
    def _page_text(page_number: int, result: OCRResult, tried: int, early_stop: bool = False) -> PageText:
        return PageText(
            page_number=page_number,
            text=result.text.strip(),
            confidence=result.confidence,
            mode_name=result.mode_name,
            early_stop=early_stop,
            modes_tried=tried
        )

    def _ocr_result(
        self,
        pages: List[PageText],
        attempts: List[ExtractionAttempt],
        start: float
    ) -> AcquisitionResult:
        """Combine per-page sweeps into the OCR attempt."""
        with_text = [p for p in pages if p.text]
        text = '\n\n'.join(p.text for p in with_text)
        confidence = (
            sum(p.confidence for p in with_text) / len(with_text) if with_text else 0.0
        )

        attempt = ExtractionAttempt(
            method=ExtractionMethod.OCR_PSM_SWEEP,
            raw_text=text,
            confidence=confidence,
            elapsed_ms=elapsed_ms(start)
        )
        logger.info(
            f"OCR complete: {len(with_text)}/{len(pages)} page(s) with text, "
            f"confidence {confidence:.1f}%"
        )

        return AcquisitionResult(
            text=text,
            page_count=len(pages),
            used_ocr=True,
            method=ExtractionMethod.OCR_PSM_SWEEP,
            confidence=confidence,
            attempts=attempts + [attempt],
            pages=pages
        )

    @contextmanager
    def _page_workspace(self, document: SourceDocument) -> Iterator[Path]:
        """
        Per-document directory for rendered pages.

        The directory and everything in it is removed on every exit path,
        including cancellation.
        """
        if self.temp_dir:
            ensure_directory(self.temp_dir)
        prefix = f"invoice-{safe_filename(document.document_id)}-"
        workspace = Path(tempfile.mkdtemp(prefix=prefix, dir=self.temp_dir))
        logger.debug(f"Created page workspace {workspace}")
        try:
            yield workspace
        finally:
            try:
                shutil.rmtree(workspace)
                logger.debug(f"Removed page workspace {workspace}")
            except OSError as e:
                logger.warning(f"Failed to remove page workspace {workspace}: {e}")

    @staticmethod
    def _ocr_percent(index: int, total: int) -> int:
        """Spread page progress over 30-70%."""
        if total <= 0:
            return 30
        return 30 + int(40 * index / total)

    @staticmethod
    async def _report(progress: Any, stage: str, percent: int, message: str) -> None:
        if progress is not None:
            await progress.report(stage, percent, message)


__all__ = ['TextAcquisition', 'AcquisitionResult', 'PageText']
