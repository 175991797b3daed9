"""
PDF Processor Module.

This module handles PDF processing for text acquisition:
    - Native (embedded) text extraction with layout-aware line breaks
    - Page rasterization for OCR, written to a caller-owned directory

Uses pdfplumber for text runs, PyMuPDF for rendering, and pdf2image
(Poppler) as the alternative renderer selected in configuration.

Author: ML Engineering Team
"""

import io
from pathlib import Path
from typing import List, Dict, Any

import fitz  # PyMuPDF
import pdfplumber
from pdf2image import convert_from_bytes
from PIL import Image

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import CorruptedFileError

# Initialize module logger
logger = get_logger(__name__)

# PDF user space unit is 1/72 inch
PDF_POINTS_PER_INCH = 72.0


class PDFProcessor:
    """
    Processor for PDF documents held in memory.

    Attributes:
        dpi: Resolution for page rendering
        max_dimension: Upper bound on the longest rendered side in pixels
        max_pages: Maximum number of pages rendered for OCR
        line_tolerance: Vertical delta (points) that starts a new text line
        renderer: 'pymupdf' or 'pdf2image'

    Example:
        >>> processor = PDFProcessor()
        >>> text = processor.extract_native_text(pdf_bytes)
        >>> pages = processor.render_pages(pdf_bytes, Path("/tmp/doc-1"))
    """

    RENDERERS = ('pymupdf', 'pdf2image')

    def __init__(self) -> None:
        """Initialize the PDF processor with configuration."""
        self.dpi = get_config("acquisition.pdf.dpi", 300)
        self.max_dimension = get_config("acquisition.pdf.max_dimension", 4000)
        self.max_pages = get_config("acquisition.pdf.max_pages", 20)
        self.line_tolerance = get_config("acquisition.pdf.line_tolerance", 5)
        self.renderer = get_config("acquisition.pdf.renderer", "pymupdf")

        if self.renderer not in self.RENDERERS:
            logger.warning(f"Unknown PDF renderer '{self.renderer}', using pymupdf")
            self.renderer = 'pymupdf'

        logger.debug(
            f"PDFProcessor initialized (DPI={self.dpi}, renderer={self.renderer}, "
            f"max_dimension={self.max_dimension})"
        )

    def extract_native_text(self, data: bytes) -> str:
        """
        Extract the text embedded in the PDF content streams.

        Words are joined with spaces; a vertical jump larger than the line
        tolerance between consecutive words starts a new line. Pages are
        separated by a blank line.

        Args:
            data: PDF bytes.

        Returns:
            Extracted text, possibly empty for image-only PDFs.

        Raises:
            CorruptedFileError: If the PDF cannot be opened.
        """
        page_texts = []

        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                for page_number, page in enumerate(pdf.pages, start=1):
                    try:
                        words = page.extract_words()
                    except Exception as e:
                        logger.warning(f"Native text extraction failed on page {page_number}: {e}")
                        continue
                    page_texts.append(self._join_words(words))
        except Exception as e:
            raise CorruptedFileError("pdf", str(e)) from e

        text = '\n\n'.join(t for t in page_texts if t)
        logger.debug(f"Native text: {len(text.strip())} characters from {len(page_texts)} page(s)")
        return text

    def _join_words(self, words: List[Dict[str, Any]]) -> str:
        parts = []
        last_top = None

        for word in words:
            top = word['top']
            if last_top is not None:
                parts.append('\n' if abs(top - last_top) > self.line_tolerance else ' ')
            parts.append(word['text'])
            last_top = top

        return ''.join(parts)

    def render_pages(self, data: bytes, output_dir: Path) -> List[Path]:
        """
        Render PDF pages to PNG files for OCR.

        A page that fails to render is logged and skipped.

        Args:
            data: PDF bytes.
            output_dir: Existing directory that receives page images.

        Returns:
            Paths of the rendered page images, in page order.

        Raises:
            CorruptedFileError: If the PDF cannot be opened at all.
        """
        if self.renderer == 'pdf2image':
            pages = self._render_with_pdf2image(data, output_dir)
        else:
            pages = self._render_with_pymupdf(data, output_dir)

        logger.info(f"Converted PDF to {len(pages)} image(s) at {self.dpi} DPI")
        return pages

    def _zoom_for(self, width_pt: float, height_pt: float) -> float:
        """Zoom factor for the target DPI, reduced to respect max_dimension."""
        zoom = self.dpi / PDF_POINTS_PER_INCH
        longest = max(width_pt, height_pt) * zoom
        if self.max_dimension and longest > self.max_dimension:
            zoom = self.max_dimension / max(width_pt, height_pt)
        return zoom

    def _render_with_pymupdf(self, data: bytes, output_dir: Path) -> List[Path]:
        """
        Render pages using PyMuPDF.

        Args:
            data: PDF bytes.
            output_dir: Destination directory.

        Returns:
            List of written image paths.
        """
        logger.debug("Using PyMuPDF for PDF conversion")
        pages = []

        try:
            doc = fitz.open(stream=data, filetype='pdf')
        except Exception as e:
            raise CorruptedFileError("pdf", str(e)) from e

        with doc:
            page_total = min(doc.page_count, self.max_pages)
            if doc.page_count > page_total:
                logger.warning(f"PDF has {doc.page_count} pages, limiting to {page_total}")

            for page_index in range(page_total):
                try:
                    page = doc.load_page(page_index)
                    zoom = self._zoom_for(page.rect.width, page.rect.height)
                    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                    path = output_dir / f"page_{page_index + 1:03d}.png"
                    pix.save(str(path))
                    pages.append(path)
                    logger.debug(f"Rendered page {page_index + 1}: {pix.width}x{pix.height}")
                except Exception as e:
                    logger.warning(f"Failed to render page {page_index + 1}: {e}")

        return pages

    def _render_with_pdf2image(self, data: bytes, output_dir: Path) -> List[Path]:
        """
        Render pages using pdf2image (Poppler-based).

        Args:
            data: PDF bytes.
            output_dir: Destination directory.

        Returns:
            List of written image paths.
        """
        logger.debug("Using pdf2image for PDF conversion")

        try:
            images = convert_from_bytes(
                data,
                dpi=self.dpi,
                first_page=1,
                last_page=self.max_pages,
                fmt='png'
            )
        except Exception as e:
            raise CorruptedFileError("pdf", str(e)) from e

        pages = []
        for page_index, image in enumerate(images):
            try:
                if self.max_dimension and max(image.size) > self.max_dimension:
                    image.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)
                path = output_dir / f"page_{page_index + 1:03d}.png"
                image.save(path, format='PNG')
                pages.append(path)
            except Exception as e:
                logger.warning(f"Failed to write page {page_index + 1}: {e}")
            finally:
                image.close()

        return pages


__all__ = ['PDFProcessor']
