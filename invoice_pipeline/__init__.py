"""
Invoice Extraction Pipeline - Source Package.

This package turns an invoice (PDF or image) into a structured,
confidence-scored invoice record. Each module has a single
responsibility.

Modules:
    - input_handler: document intake, native PDF text, page rendering, OCR sweep
    - ocr_engine: the shared Tesseract session
    - postprocessor: text normalization, field normalization and validation
    - extraction: invoice record, rule-based field and line-item extraction,
      remote Document AI adapter
    - pipeline: strategy orchestration, progress and metrics
    - utils: logging, exceptions, helpers

Architecture:
    Document → Remote AI ─┐
             └→ Native text / OCR → Normalize → Field extraction
                                                ↓
                              Post-processing → Metrics → Output
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'postprocessor',
    'extraction',
    'pipeline',
    'utils'
]
