"""
OCR Engine Module.

This module drives the OCR engine: one lazily started Tesseract
instance per process, shared by every document through OcrSession.

Classes:
    OcrSession: Singleton owner of the engine (queueing, init, recovery)
    TesseractBackend: pytesseract wrapper exposing recognize(image, psm)
    OCRResult: Container for OCR output
"""

from .ocr_result import OCRResult, OCRWord, OCRLine
from .tesseract_backend import TesseractBackend, create_tesseract_backend
from .session import OcrSession

__all__ = [
    'OcrSession',
    'TesseractBackend',
    'create_tesseract_backend',
    'OCRResult',
    'OCRWord',
    'OCRLine'
]
