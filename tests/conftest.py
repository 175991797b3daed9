"""Shared fixtures for the invoice pipeline tests.

Every test starts from the packaged settings.yaml, a fresh OCR session
and an environment without remote-service variables.
"""

import io
from typing import Callable, Dict, List, Optional

import fitz  # PyMuPDF
import pytest
from PIL import Image

from config import ConfigurationManager
from invoice_pipeline.ocr_engine.ocr_result import OCRLine, OCRResult, OCRWord
from invoice_pipeline.ocr_engine.session import OcrSession

REMOTE_ENV = (
    "GOOGLE_CLOUD_PROJECT_ID",
    "GOOGLE_CLOUD_LOCATION",
    "GOOGLE_DOCUMENT_AI_PROCESSOR_ID",
    "GOOGLE_DOCUMENT_AI_PROCESSOR_VERSION",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "INVOICE_PIPELINE_CONFIG",
)

SAMPLE_INVOICE_TEXT = (
    "Invoice #INV-2024-001\n"
    "Date: 03/15/2024\n"
    "Acme Corp\n"
    "Widget A  2  25.00  50.00\n"
    "Subtotal: $50.00\n"
    "Tax: $4.00\n"
    "Total: $54.00"
)


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch):
    """Reset configuration, the OCR session and remote variables around each test."""
    for name in REMOTE_ENV:
        monkeypatch.delenv(name, raising=False)
    ConfigurationManager.reset()
    yield
    OcrSession.reset_session()
    ConfigurationManager.reset()


def make_ocr_result(text: str, confidence: float, psm: Optional[int] = None) -> OCRResult:
    """Build an OCRResult whose lines are the lines of text, every word at one confidence."""
    words: List[OCRWord] = []
    lines: List[OCRLine] = []
    for line_number, line_text in enumerate(text.split("\n")):
        line_words = [
            OCRWord(
                text=token,
                bbox=(10 * index, 20 * line_number, 10 * index + 8, 20 * line_number + 12),
                confidence=confidence,
                line_key=(1, 1, line_number),
            )
            for index, token in enumerate(line_text.split())
        ]
        if line_words:
            words.extend(line_words)
            lines.append(OCRLine(words=line_words))
    return OCRResult(words=words, lines=lines, psm=psm)


class FakeEngine:
    """
    Stand-in OCR engine.

    Results and errors are keyed by segmentation mode; every call is
    recorded as its psm.
    """

    def __init__(
        self,
        results: Optional[Dict[int, OCRResult]] = None,
        errors: Optional[Dict[int, Exception]] = None
    ) -> None:
        self.results = results or {}
        self.errors = errors or {}
        self.calls: List[int] = []
        self.closed = False

    def recognize(self, image: Image.Image, psm: int) -> OCRResult:
        self.calls.append(psm)
        if psm in self.errors:
            raise self.errors[psm]
        return self.results.get(psm, OCRResult(psm=psm))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def ocr_result_factory() -> Callable[..., OCRResult]:
    return make_ocr_result


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_INVOICE_TEXT


def build_pdf(lines: List[str], pages: int = 1) -> bytes:
    """Small PDF with the given lines drawn as real text on every page."""
    doc = fitz.open()
    for _ in range(pages):
        page = doc.new_page(width=300, height=300)
        y = 30
        for line in lines:
            page.insert_text((20, y), line, fontsize=9)
            y += 14
    data = doc.tobytes()
    doc.close()
    return data


def build_png(width: int = 200, height: int = 100) -> bytes:
    """Blank white PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def text_pdf_bytes() -> bytes:
    return build_pdf(SAMPLE_INVOICE_TEXT.split("\n"))


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    return build_pdf([])


@pytest.fixture
def blank_png_bytes() -> bytes:
    return build_png()
