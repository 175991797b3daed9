"""Unit tests for value normalizers and validators.

Tests cover:
- Date parsing in numeric, ISO and written forms
- Amount parsing with symbols, codes and European separators
- Currency detection and the configurable fallback
- Invoice number, e-mail, website and phone cleanup
"""

import pytest

from config import ConfigurationManager
from invoice_pipeline.postprocessor.normalizers import (
    AmountNormalizer,
    CurrencyDetector,
    DateNormalizer
)
from invoice_pipeline.postprocessor.validators import AmountValidator, FieldValidator


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("03/15/2024", "2024-03-15"),
        ("15/03/2024", "2024-03-15"),
        ("2024-03-15", "2024-03-15"),
        ("January 15, 2026", "2026-01-15"),
        ("15th Jan. 2024", "2024-01-15"),
        ("Invoice Date: 03/15/2024", "2024-03-15"),
        ("Net 30", None),
        ("1850-01-01", None),
        ("", None),
    ],
)
def test_date_normalizer(raw: str, expected: str) -> None:
    """Test date parsing and range checks."""
    assert DateNormalizer().normalize(raw) == expected


def test_date_normalizer_day_first(tmp_path) -> None:
    """Test the day-first reading of ambiguous numeric dates."""
    settings = tmp_path / "settings.yaml"
    settings.write_text("postprocessing:\n  date:\n    dayfirst: true\n", encoding="utf-8")
    ConfigurationManager(str(settings))

    assert DateNormalizer().normalize("03/04/2024") == "2024-04-03"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("$1,234.56", 1234.56),
        ("€ 1.234,56", 1234.56),
        ("12,50", 12.5),
        ("USD 99", 99.0),
        ("1,234", 1234.0),
        ("n/a", None),
        (None, None),
    ],
)
def test_amount_normalizer(raw: str, expected: float) -> None:
    """Test amount parsing."""
    assert AmountNormalizer().to_float(raw) == expected


def test_amount_normalizer_text_form() -> None:
    assert AmountNormalizer().normalize("$1,234.5") == "1234.50"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Total: EUR 120.00", "EUR"),
        ("Total: £120.00", "GBP"),
        ("Total: C$120.00", "CAD"),
        ("Total: $120.00", "USD"),
        ("Total: 120.00", "USD"),
        (None, "USD"),
    ],
)
def test_currency_detection(text: str, expected: str) -> None:
    """Test codes, symbols and the default."""
    assert CurrencyDetector().detect(text) == expected


def test_currency_fallback_is_configurable(tmp_path) -> None:
    """Test that the deployment default replaces USD."""
    settings = tmp_path / "settings.yaml"
    settings.write_text("extraction:\n  default_currency: CAD\n", encoding="utf-8")
    ConfigurationManager(str(settings))
    detector = CurrencyDetector()

    assert detector.detect("Total: 120.00") == "CAD"
    assert detector.detect("Total: $120.00") == "CAD"
    assert detector.detect("Total: 120.00", fallback="gbp") == "GBP"


def test_currency_code_normalization() -> None:
    detector = CurrencyDetector()

    assert detector.normalize_code("eur") == "EUR"
    assert detector.normalize_code("€") == "EUR"
    assert detector.normalize_code(None) == "USD"


def test_field_validator() -> None:
    """Test identifier and contact cleanup."""
    validator = FieldValidator()

    assert validator.clean_invoice_number("#INV 2024/001") == "INV2024001"
    assert validator.clean_invoice_number("---") is None
    assert validator.validate_email(" Billing@Acme.COM. ") == "billing@acme.com"
    assert validator.validate_email("not-an-email") is None
    assert validator.validate_website("www.acme.com") == "www.acme.com"
    assert validator.validate_website("billing@acme.com") is None
    assert validator.format_phone("555.123.4567") == "(555) 123-4567"
    assert validator.format_phone("+1 555 123 4567") == "(555) 123-4567"
    assert validator.format_phone("+44 20 7946 0958") == "+44 20 7946 0958"
    assert validator.format_phone("12345") is None


def test_amount_validator() -> None:
    validator = AmountValidator(max_amount=1_000_000)

    assert validator.validate(10.0) == (True, "Valid amount")
    assert validator.validate(-1.0)[0] is False
    assert validator.validate(2_000_000.0)[0] is False
    assert validator.validate(None)[0] is False
