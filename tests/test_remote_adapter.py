"""Unit tests for the Document AI adapter.

Tests cover:
- Configuration validation without network access
- Status reporting with masked identifiers
- Entity and table mapping onto InvoiceData
- Malformed entities and later tables are skipped
- Failure wrapping and the unhealthy cooldown
"""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import ConfigurationManager
from invoice_pipeline.extraction.remote_adapter import RemoteExtractionAdapter
from invoice_pipeline.input_handler.document import SourceDocument
from invoice_pipeline.utils.exceptions import ConfigurationError, RemoteExtractionError

REMOTE_TEXT = "ACME CORP\nInvoice INV-9\nCloud hosting 120.00\nSetup fee 30.00\nTotal 150.00\n"


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    path = tmp_path / "service-account.json"
    path.write_text(json.dumps({
        "type": "service_account",
        "project_id": "demo-project",
        "client_email": "extractor@demo-project.iam.gserviceaccount.com",
    }), encoding="utf-8")
    return path


@pytest.fixture
def environ(credentials_file: Path) -> Dict[str, str]:
    return {
        "GOOGLE_CLOUD_PROJECT_ID": "demo-project",
        "GOOGLE_DOCUMENT_AI_PROCESSOR_ID": "abc123def456",
        "GOOGLE_APPLICATION_CREDENTIALS": str(credentials_file),
    }


@pytest.fixture
def document(blank_png_bytes: bytes) -> SourceDocument:
    return SourceDocument.from_bytes(blank_png_bytes, document_id="remote-1")


def _cell(text: str, fragment: str) -> SimpleNamespace:
    start = text.index(fragment)
    segment = SimpleNamespace(start_index=start, end_index=start + len(fragment))
    return SimpleNamespace(layout=SimpleNamespace(text_anchor=SimpleNamespace(text_segments=[segment])))


def _row(*fragments: str) -> SimpleNamespace:
    return SimpleNamespace(cells=[_cell(REMOTE_TEXT, fragment) for fragment in fragments])


def _entity(type_: str, mention: str, confidence: float) -> SimpleNamespace:
    return SimpleNamespace(type_=type_, mention_text=mention, confidence=confidence)


@pytest.fixture
def remote_document() -> SimpleNamespace:
    """Document AI response document with entities and one table."""
    entities: List[SimpleNamespace] = [
        _entity("invoice_id", "INV-9", 0.9),
        _entity("supplier_name", "ACME CORP", 0.8),
        _entity("supplier_name", "Another Name", 0.6),
        _entity("total_amount", "$150.00", 0.7),
        _entity("currency", "USD", 1.0),
    ]
    table = SimpleNamespace(body_rows=[
        _row("Cloud hosting", "120.00"),
        _row("Setup fee", "30.00"),
        _row("Total", "150.00"),
        _row("Cloud hosting"),
    ])
    return SimpleNamespace(
        text=REMOTE_TEXT,
        entities=entities,
        pages=[SimpleNamespace(tables=[table])]
    )


def test_missing_settings_leave_adapter_unconfigured() -> None:
    """Test that missing variables are reported, not raised."""
    adapter = RemoteExtractionAdapter(environ={})

    assert adapter.is_configured() is False
    status = adapter.get_status()
    assert status["configured"] is False
    assert "GOOGLE_CLOUD_PROJECT_ID" in status["error"]
    assert status["processorName"] is None


def test_missing_credentials_file(environ: Dict[str, str], tmp_path: Path) -> None:
    environ["GOOGLE_APPLICATION_CREDENTIALS"] = str(tmp_path / "absent.json")

    adapter = RemoteExtractionAdapter(environ=environ)

    assert adapter.is_configured() is False
    assert "not found" in adapter.get_status()["error"]


def test_incomplete_credentials_file(environ: Dict[str, str], credentials_file: Path) -> None:
    credentials_file.write_text(json.dumps({"type": "service_account"}), encoding="utf-8")

    with pytest.raises(ConfigurationError) as exc_info:
        RemoteExtractionAdapter(environ=environ).validate_configuration()

    assert exc_info.value.details["missing"] == ["project_id", "client_email"]


def test_unreadable_credentials_file(environ: Dict[str, str], credentials_file: Path) -> None:
    credentials_file.write_text("{not json", encoding="utf-8")

    assert RemoteExtractionAdapter(environ=environ).is_configured() is False


def test_disabled_by_settings(environ: Dict[str, str], tmp_path: Path) -> None:
    settings = tmp_path / "settings.yaml"
    settings.write_text("remote:\n  enabled: false\n", encoding="utf-8")
    ConfigurationManager(str(settings))

    adapter = RemoteExtractionAdapter(environ=environ)

    assert adapter.is_configured() is False
    assert "disabled" in adapter.get_status()["error"]


def test_configured_status(environ: Dict[str, str]) -> None:
    """Test processor coordinates and identifier masking."""
    adapter = RemoteExtractionAdapter(environ=environ)

    assert adapter.is_configured() is True
    assert adapter.processor_name == (
        "projects/demo-project/locations/us/processors/abc123def456/processorVersions/rc"
    )
    status = adapter.get_status()
    assert status["isInitialized"] is False
    assert status["healthy"] is True
    assert status["processorId"] == "abc123de..."
    assert status["error"] is None


@pytest.mark.asyncio
async def test_extract_requires_configuration(document: SourceDocument) -> None:
    with pytest.raises(ConfigurationError):
        await RemoteExtractionAdapter(environ={}).extract(document)


def test_map_document(environ: Dict[str, str], remote_document: SimpleNamespace) -> None:
    """Test entity mapping, first-value-wins and table items."""
    result = RemoteExtractionAdapter(environ=environ).map_document(remote_document)
    data = result.invoice_data

    assert data.invoice_number == "INV-9"
    assert data.vendor.name == "ACME CORP"
    assert data.amounts.total == 150.0
    assert data.amounts.currency == "USD"
    assert result.text == REMOTE_TEXT
    assert result.confidence == pytest.approx(80.0)
    assert data.confidence == pytest.approx(80.0)

    assert [(item.description, item.amount, item.line_number) for item in data.items] == [
        ("Cloud hosting", 120.0, 1),
        ("Setup fee", 30.0, 2),
    ]
    assert data.items[0].category == "Hosting"


@pytest.mark.asyncio
async def test_extract_with_client(
    environ: Dict[str, str],
    document: SourceDocument,
    remote_document: SimpleNamespace
) -> None:
    """Test a full remote call through an injected client."""
    client = MagicMock()
    client.process_document.return_value = SimpleNamespace(document=remote_document)
    adapter = RemoteExtractionAdapter(client_factory=lambda: client, environ=environ)
    progress = MagicMock()
    progress.report = AsyncMock()

    result = await adapter.extract(document, progress)

    assert result.invoice_data.invoice_number == "INV-9"
    request = client.process_document.call_args.kwargs["request"]
    assert request["name"] == adapter.processor_name
    assert request["raw_document"]["mime_type"] == "image/png"
    assert [call.args[1] for call in progress.report.await_args_list] == [10, 30, 70, 90]
    assert adapter.get_status()["isInitialized"] is True


@pytest.mark.asyncio
async def test_remote_failure_is_wrapped(environ: Dict[str, str], document: SourceDocument) -> None:
    client = MagicMock()
    client.process_document.side_effect = ConnectionError("network unreachable")
    adapter = RemoteExtractionAdapter(client_factory=lambda: client, environ=environ)

    with pytest.raises(RemoteExtractionError) as exc_info:
        await adapter.extract(document)

    assert not isinstance(exc_info.value, ConfigurationError)
    assert exc_info.value.details["reason"] == "network unreachable"
    assert exc_info.value.details["document_id"] == "remote-1"


def test_unhealthy_cooldown(environ: Dict[str, str]) -> None:
    adapter = RemoteExtractionAdapter(environ=environ)

    adapter.mark_unhealthy("timeout")
    assert adapter.is_healthy() is False

    adapter.cooldown_seconds = 0
    adapter.mark_unhealthy("timeout")
    assert adapter.is_healthy() is True


def test_malformed_entity_is_skipped(environ: Dict[str, str]) -> None:
    """Test that one unreadable entity does not discard the others."""
    document = SimpleNamespace(
        text=REMOTE_TEXT,
        entities=[
            _entity("invoice_id", "INV-9", 0.9),
            _entity("total_amount", "$150.00", "n/a"),
            _entity("supplier_name", 42, 0.7),
            _entity("currency", "USD", 0.8),
        ],
        pages=[]
    )

    result = RemoteExtractionAdapter(environ=environ).map_document(document)

    assert result.invoice_data.invoice_number == "INV-9"
    assert result.invoice_data.amounts.currency == "USD"
    assert result.invoice_data.amounts.total is None
    assert result.invoice_data.vendor.name is None
    assert result.confidence == pytest.approx(85.0)


def test_only_first_table_is_read(environ: Dict[str, str], remote_document: SimpleNamespace) -> None:
    second = SimpleNamespace(body_rows=[_row("Setup fee", "30.00")])
    remote_document.pages[0].tables.append(second)
    remote_document.pages[0].tables[0].body_rows = [_row("Cloud hosting", "120.00")]

    items = RemoteExtractionAdapter(environ=environ).table_items(remote_document)

    assert [item.description for item in items] == ["Cloud hosting"]
