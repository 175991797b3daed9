"""
Input Handler Module.

This module turns incoming invoice files into text:
    - SourceDocument: bytes, resolved MIME type and page count
    - PDFProcessor: native PDF text and page rendering
    - ImageProcessor: image decoding and OCR preprocessing
    - TextAcquisition: native-text-or-OCR decision and the OCR sweep
"""

from .document import SourceDocument, SUPPORTED_MIME_TYPES
from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor
from .acquisition import TextAcquisition, AcquisitionResult, PageText

__all__ = [
    'SourceDocument',
    'SUPPORTED_MIME_TYPES',
    'PDFProcessor',
    'ImageProcessor',
    'TextAcquisition',
    'AcquisitionResult',
    'PageText'
]
