"""Unit tests for rule-based field extraction.

Tests cover:
- The reference invoice text end to end
- Vendor and bill-to sections kept apart
- Dates, order data, payment data and summary amounts
- Empty input and the declarative field table
"""

import re

import pytest

from invoice_pipeline.extraction.field_extractor import (
    FieldExtractor,
    FieldSpec,
    regex_finder,
    split_sections
)
from invoice_pipeline.postprocessor.text_normalizer import normalize_text

BILL_TO_TEXT = "\n".join([
    "Acme Corp",
    "123 Main Street",
    "Springfield, IL 62704",
    "Phone: (555) 123-4567",
    "Email: billing@acme.com",
    "Invoice #INV-7781",
    "Bill To:",
    "Globex Corporation",
    "42 Elm Road",
    "Shelbyville, IL 62565",
    "ap@globex.com",
    "",
    "Description Qty Price Amount",
    "Widget A 2 25.00 50.00",
    "Total: $50.00",
])

DETAILED_TEXT = "\n".join([
    "Northwind Traders Ltd",
    "Website: www.northwind.example.com",
    "VAT No: GB123456789",
    "Invoice Number: NW-20931",
    "Invoice Date: January 15, 2024",
    "Due Date: 02/14/2024",
    "PO Number: PO-5521",
    "Payment Terms: Net 30",
    "Item | Quantity | Unit Price | Total",
    "Consulting hours 10 x 150.00 = 1,500.00",
    "Subtotal: £1,500.00",
    "Discount: -£100.00",
    "VAT (20%): £280.00",
    "Total: £1,680.00",
    "Amount Paid: £500.00",
    "Balance Due: £1,180.00",
    "Notes: Thank you for your business",
])


@pytest.fixture
def extractor() -> FieldExtractor:
    return FieldExtractor()


def test_reference_invoice(extractor: FieldExtractor, sample_text: str) -> None:
    """Test the reference invoice text field by field."""
    data = extractor.extract(normalize_text(sample_text), confidence=95.0)

    assert data.invoice_number == "INV-2024-001"
    assert data.date == "2024-03-15"
    assert data.vendor.name == "Acme Corp"
    assert data.amounts.subtotal == 50.0
    assert data.amounts.tax == 4.0
    assert data.amounts.total == 54.0
    assert data.amounts.currency == "USD"
    assert data.confidence == 95.0

    assert len(data.items) == 1
    item = data.items[0]
    assert (item.description, item.quantity, item.unit_price, item.amount) == (
        "Widget A", 2.0, 25.0, 50.0
    )


def test_bill_to_block_is_separated(extractor: FieldExtractor) -> None:
    """Test that customer data is not read as vendor data."""
    data = extractor.extract(normalize_text(BILL_TO_TEXT))

    assert data.vendor.name == "Acme Corp"
    assert data.vendor.address == "123 Main Street, Springfield, IL 62704"
    assert data.vendor.phone == "(555) 123-4567"
    assert data.vendor.email == "billing@acme.com"

    assert data.bill_to.name == "Globex Corporation"
    assert data.bill_to.address == "42 Elm Road, Shelbyville, IL 62565"
    assert data.bill_to.email == "ap@globex.com"

    assert data.invoice_number == "INV-7781"
    assert [item.description for item in data.items] == ["Widget A"]


def test_split_sections() -> None:
    """Test the bill-to block boundaries."""
    vendor_text, bill_to_text = split_sections(BILL_TO_TEXT)

    assert bill_to_text.split("\n") == [
        "Globex Corporation",
        "42 Elm Road",
        "Shelbyville, IL 62565",
        "ap@globex.com",
    ]
    assert "Globex" not in vendor_text
    assert "Acme Corp" in vendor_text


def test_split_sections_inline_label() -> None:
    """Test a label whose customer name sits on the same line."""
    _, bill_to_text = split_sections("Sold To: Initech LLC\n500 Oak Avenue\nDate: 01/02/2024")

    assert bill_to_text == "Initech LLC\n500 Oak Avenue"


def test_detailed_invoice(extractor: FieldExtractor) -> None:
    """Test dates, order data, payment data and every summary amount."""
    data = extractor.extract(normalize_text(DETAILED_TEXT))

    assert data.invoice_number == "NW-20931"
    assert data.date == "2024-01-15"
    assert data.due_date == "2024-02-14"
    assert data.vendor.name == "Northwind Traders Ltd"
    assert data.vendor.website == "www.northwind.example.com"
    assert data.vendor.tax_id == "GB123456789"
    assert data.order_info.order_number == "PO-5521"
    assert data.payment_details.terms == "Net 30"
    assert data.notes == "Thank you for your business"

    amounts = data.amounts
    assert amounts.subtotal == 1500.0
    assert amounts.discount == 100.0
    assert amounts.tax == 280.0
    assert amounts.tax_rate == 20.0
    assert amounts.total == 1680.0
    assert amounts.amount_paid == 500.0
    assert amounts.balance_due == 1180.0
    assert amounts.currency == "GBP"

    assert [item.description for item in data.items] == ["Consulting hours"]


def test_tax_line_is_not_confused_with_tax_services(extractor: FieldExtractor) -> None:
    """Test that an item mentioning tax does not fill the tax amount."""
    text = "Corporate tax consulting 1 200.00 200.00\nTax: $16.00\nTotal: $216.00"

    data = extractor.extract(text)

    assert data.amounts.tax == 16.0
    assert [item.description for item in data.items] == ["Corporate tax consulting"]


def test_empty_text(extractor: FieldExtractor) -> None:
    """Test that empty text yields an empty record with the default currency."""
    data = extractor.extract("   ")

    assert data.is_empty()
    assert data.items == []
    assert data.amounts.currency == "USD"


def test_field_spec_tries_finders_in_order() -> None:
    """Test that a rejected candidate falls through to the next finder."""
    spec = FieldSpec(
        "order_info.reference",
        [
            regex_finder(re.compile(r"ref: (\w+)")),
            regex_finder(re.compile(r"job (\d+)")),
        ],
        postprocess=lambda raw: raw if raw.isdigit() else None
    )

    assert spec.find("ref: abc\njob 42") == "42"
    assert spec.find("") is None
