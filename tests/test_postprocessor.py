"""Unit tests for record post-processing.

Tests cover:
- The input record is left untouched
- Date, contact and amount canonicalization
- Currency inference from the source text
- Line item cleanup, restated totals and renumbering
"""

import pytest

from invoice_pipeline.extraction.invoice_data import InvoiceData, LineItem
from invoice_pipeline.postprocessor.processor import PostProcessor


@pytest.fixture
def processor() -> PostProcessor:
    return PostProcessor()


@pytest.fixture
def raw_record() -> InvoiceData:
    data = InvoiceData(
        invoice_number="#INV 2024/001",
        date="March 15, 2024",
        due_date="not a date",
        confidence=140.0
    )
    data.vendor.name = "  Acme   Corp, "
    data.vendor.phone = "555.123.4567"
    data.vendor.email = "Billing@Acme.com"
    data.vendor.website = "not a website"
    data.amounts.subtotal = 50.004
    data.amounts.discount = -5.0
    data.amounts.tax = -1.0
    data.amounts.total = "54.00"
    data.items = [
        LineItem(description="  Widget   A ", quantity=2.0, unit_price=None, amount=50.0),
        LineItem(description="ab", amount=10.0),
        LineItem(description="Widget B", quantity=0, amount=20.0),
    ]
    return data


def test_input_record_is_not_modified(processor: PostProcessor, raw_record: InvoiceData) -> None:
    """Test that processing returns a copy."""
    processor.process(raw_record)

    assert raw_record.invoice_number == "#INV 2024/001"
    assert len(raw_record.items) == 3


def test_scalar_fields_are_canonicalized(processor: PostProcessor, raw_record: InvoiceData) -> None:
    """Test identifiers, dates and contact data."""
    data = processor.process(raw_record)

    assert data.invoice_number == "INV2024001"
    assert data.date == "2024-03-15"
    assert data.due_date is None
    assert data.vendor.name == "Acme Corp"
    assert data.vendor.phone == "(555) 123-4567"
    assert data.vendor.email == "billing@acme.com"
    assert data.vendor.website is None
    assert data.confidence == 100.0


def test_amounts_are_validated(processor: PostProcessor, raw_record: InvoiceData) -> None:
    """Test rounding, discount sign and rejection of negative amounts."""
    data = processor.process(raw_record, text="Total: €54.00")

    assert data.amounts.subtotal == 50.0
    assert data.amounts.discount == 5.0
    assert data.amounts.tax is None
    assert data.amounts.total == 54.0
    assert data.amounts.currency == "EUR"


def test_currency_code_is_normalized(processor: PostProcessor) -> None:
    data = InvoiceData()
    data.amounts.currency = "gbp"

    assert processor.process(data).amounts.currency == "GBP"


def test_items_are_cleaned_and_renumbered(processor: PostProcessor, raw_record: InvoiceData) -> None:
    """Test description cleanup, quantity defaulting and numbering."""
    data = processor.process(raw_record)

    assert [(item.description, item.quantity, item.unit_price, item.line_number) for item in data.items] == [
        ("Widget A", 2.0, 25.0, 1),
        ("Widget B", 1.0, 20.0, 2),
    ]


def test_restated_total_item_is_dropped(processor: PostProcessor) -> None:
    """Test that items from any source lose a row restating the others' sum."""
    data = InvoiceData(items=[
        LineItem(description="Hosting plan", amount=30.0),
        LineItem(description="Domain renewal", amount=15.0),
        LineItem(description="Invoice amount", amount=45.0),
    ])

    processed = processor.process(data)

    assert [item.description for item in processed.items] == ["Hosting plan", "Domain renewal"]


def test_empty_record_stays_empty(processor: PostProcessor) -> None:
    data = processor.process(InvoiceData(), text="")

    assert data.is_empty()
    assert data.amounts.currency == "USD"
    assert data.confidence == 0.0
