"""Integration tests for the extraction orchestrator.

Tests cover:
- Local extraction of native PDFs and blank images
- Remote extraction and fallback when the remote service fails
- Progress events from start to completion
- Method comparison and its tie rule
- Custom strategy lists
"""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from conftest import FakeEngine
from invoice_pipeline.extraction.invoice_data import ExtractionMethod, InvoiceData
from invoice_pipeline.extraction.remote_adapter import RemoteExtractionAdapter
from invoice_pipeline.input_handler.document import SourceDocument
from invoice_pipeline.ocr_engine.session import OcrSession
from invoice_pipeline.pipeline.metrics import compute_metrics
from invoice_pipeline.pipeline.orchestrator import ExtractionOrchestrator, ExtractionOutput
from invoice_pipeline.pipeline.strategies import ExtractionStrategy, StrategyOutput
from invoice_pipeline.utils.exceptions import CorruptedFileError


@pytest.fixture
def remote_environ(tmp_path: Path) -> Dict[str, str]:
    credentials = tmp_path / "service-account.json"
    credentials.write_text(json.dumps({
        "type": "service_account",
        "project_id": "demo-project",
        "client_email": "extractor@demo-project.iam.gserviceaccount.com",
    }), encoding="utf-8")
    return {
        "GOOGLE_CLOUD_PROJECT_ID": "demo-project",
        "GOOGLE_DOCUMENT_AI_PROCESSOR_ID": "abc123def456",
        "GOOGLE_APPLICATION_CREDENTIALS": str(credentials),
    }


def _remote_document() -> SimpleNamespace:
    entities = [
        SimpleNamespace(type_="invoice_id", mention_text="INV-2024-001", confidence=0.9),
        SimpleNamespace(type_="supplier_name", mention_text="Acme Corp", confidence=0.9),
        SimpleNamespace(type_="invoice_date", mention_text="03/15/2024", confidence=0.9),
        SimpleNamespace(type_="total_amount", mention_text="54.00", confidence=0.9),
    ]
    return SimpleNamespace(text="Invoice #INV-2024-001", entities=entities, pages=[])


def make_remote_adapter(environ: Dict[str, str], failure: Optional[Exception] = None) -> RemoteExtractionAdapter:
    client = MagicMock()
    if failure is not None:
        client.process_document.side_effect = failure
    else:
        client.process_document.return_value = SimpleNamespace(document=_remote_document())
    return RemoteExtractionAdapter(client_factory=lambda: client, environ=environ)


def make_orchestrator(
    engine: Optional[FakeEngine] = None,
    remote_adapter: Optional[RemoteExtractionAdapter] = None
) -> ExtractionOrchestrator:
    engine = engine or FakeEngine()
    return ExtractionOrchestrator(
        session=OcrSession(engine_factory=lambda: engine),
        remote_adapter=remote_adapter,
        use_remote=remote_adapter is not None
    )


@pytest.fixture
def native_pdf(text_pdf_bytes: bytes) -> SourceDocument:
    return SourceDocument.from_bytes(text_pdf_bytes, filename="invoice.pdf", document_id="pdf-1")


@pytest.mark.asyncio
async def test_local_extraction_of_native_pdf(native_pdf: SourceDocument) -> None:
    """Test the local path end to end on a PDF with embedded text."""
    engine = FakeEngine()
    events: List[Dict[str, Any]] = []

    output = await make_orchestrator(engine).extract(native_pdf, progress_sink=events.append)

    assert engine.calls == []
    assert output.extraction_methods == [ExtractionMethod.NATIVE_TEXT]
    assert output.invoice_data.invoice_number == "INV-2024-001"
    assert output.invoice_data.amounts.total == 54.0
    assert output.metrics.pages_processed == 1

    progress = [event["progress"] for event in events]
    assert progress[0] == 0
    assert progress[-1] == 100
    assert progress == sorted(progress)
    assert [event["stage"] for event in events] == [
        "started", "pdf_text_extraction", "data_extraction", "completed"
    ]
    assert all(event["documentId"] == "pdf-1" for event in events)


@pytest.mark.asyncio
async def test_blank_image_yields_empty_record(blank_png_bytes: bytes) -> None:
    """Test that an image without text is not an error."""
    document = SourceDocument.from_bytes(blank_png_bytes, filename="blank.png")

    output = await make_orchestrator().extract(document)

    assert output.extracted_text == ""
    assert output.invoice_data.is_empty()
    assert output.invoice_data.items == []
    assert output.metrics.average_confidence == 0.0
    assert output.metrics.consensus_score == 0.0
    assert output.extraction_methods == [ExtractionMethod.OCR_PSM_SWEEP]


@pytest.mark.asyncio
async def test_remote_extraction_is_preferred(
    remote_environ: Dict[str, str],
    native_pdf: SourceDocument
) -> None:
    adapter = make_remote_adapter(remote_environ)

    output = await make_orchestrator(remote_adapter=adapter).extract(native_pdf)

    assert output.extraction_methods == [ExtractionMethod.REMOTE_AI]
    assert output.invoice_data.invoice_number == "INV-2024-001"
    assert output.invoice_data.date == "2024-03-15"
    assert output.to_dict()["extractionMethods"] == ["RemoteAI"]


@pytest.mark.asyncio
async def test_remote_failure_falls_back_to_local(
    remote_environ: Dict[str, str],
    native_pdf: SourceDocument
) -> None:
    """Test that a failing remote service never fails the extraction."""
    adapter = make_remote_adapter(remote_environ, failure=TimeoutError("deadline exceeded"))

    output = await make_orchestrator(remote_adapter=adapter).extract(native_pdf)

    assert output.extraction_methods == [ExtractionMethod.NATIVE_TEXT]
    assert output.invoice_data.invoice_number == "INV-2024-001"
    assert adapter.is_healthy() is False


@pytest.mark.asyncio
async def test_unconfigured_remote_is_skipped(native_pdf: SourceDocument) -> None:
    adapter = RemoteExtractionAdapter(environ={})

    output = await make_orchestrator(remote_adapter=adapter).extract(native_pdf)

    assert output.extraction_methods == [ExtractionMethod.NATIVE_TEXT]


@pytest.mark.asyncio
async def test_compare_without_remote_returns_local(native_pdf: SourceDocument) -> None:
    output = await make_orchestrator(remote_adapter=RemoteExtractionAdapter(environ={})).compare(native_pdf)

    assert output.method_comparison is None
    assert "methodComparison" not in output.to_dict()
    assert output.extraction_methods == [ExtractionMethod.NATIVE_TEXT]


@pytest.mark.asyncio
async def test_compare_with_both_methods(
    remote_environ: Dict[str, str],
    native_pdf: SourceDocument
) -> None:
    """Test that both methods run and the comparison is attached."""
    adapter = make_remote_adapter(remote_environ)
    events: List[Dict[str, Any]] = []

    output = await make_orchestrator(remote_adapter=adapter).compare(native_pdf, events.append)

    comparison = output.to_dict()["methodComparison"]
    assert output.extraction_methods == [ExtractionMethod.REMOTE_AI]
    assert set(comparison) == {"confidence", "fieldsExtracted", "lineItems"}
    assert comparison["confidence"]["remote"] == 90.0
    assert comparison["confidence"]["local"] == 95.0
    assert comparison["confidence"]["winner"] == "NativeText"
    assert comparison["lineItems"]["remote"] == 0
    assert events[-1]["progress"] == 100


def _output(methods: List[ExtractionMethod], data: InvoiceData, confidence: float) -> ExtractionOutput:
    return ExtractionOutput(
        document_id="doc",
        extracted_text="",
        invoice_data=data,
        metrics=compute_metrics(data, confidence, 1, 0),
        extraction_methods=methods
    )


def test_compare_results_ties_go_to_local() -> None:
    """Test per-criterion winners."""
    remote = _output([ExtractionMethod.REMOTE_AI], InvoiceData(invoice_number="A", date="2024-01-01"), 80.0)
    local = _output([ExtractionMethod.OCR_PSM_SWEEP], InvoiceData(invoice_number="A"), 80.0)

    comparison = ExtractionOrchestrator.compare_results(remote, local)

    assert comparison["confidence"]["winner"] == "OcrPsmSweep"
    assert comparison["fieldsExtracted"] == {"remote": 2, "local": 1, "winner": "RemoteAI"}
    assert comparison["lineItems"]["winner"] == "OcrPsmSweep"


class SkippingStrategy(ExtractionStrategy):
    name = "skipping"

    def is_available(self) -> bool:
        return False

    async def attempt(self, document: SourceDocument, progress: Any = None) -> Optional[StrategyOutput]:
        return None


class BrokenInputStrategy(ExtractionStrategy):
    name = "broken"

    def is_available(self) -> bool:
        return True

    async def attempt(self, document: SourceDocument, progress: Any = None) -> Optional[StrategyOutput]:
        raise CorruptedFileError("page tree missing")


@pytest.mark.asyncio
async def test_no_strategy_output_gives_empty_record(native_pdf: SourceDocument) -> None:
    orchestrator = ExtractionOrchestrator(strategies=[SkippingStrategy()])

    output = await orchestrator.extract(native_pdf)

    assert output.invoice_data.is_empty()
    assert output.extraction_methods == []
    assert output.metrics.pages_processed == 0


@pytest.mark.asyncio
async def test_unrecoverable_input_propagates(native_pdf: SourceDocument) -> None:
    orchestrator = ExtractionOrchestrator(strategies=[BrokenInputStrategy()])

    with pytest.raises(CorruptedFileError):
        await orchestrator.extract(native_pdf)


@pytest.mark.asyncio
async def test_extract_file(tmp_path: Path, text_pdf_bytes: bytes) -> None:
    path = tmp_path / "invoice.pdf"
    path.write_bytes(text_pdf_bytes)

    output = await make_orchestrator().extract_file(path)

    assert output.invoice_data.invoice_number == "INV-2024-001"
    assert output.document_id
