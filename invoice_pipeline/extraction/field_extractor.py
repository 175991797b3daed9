"""
Field Extractor Module.

Rule-based extraction of structured invoice fields from normalized text.

Every field is described by a FieldSpec: the dotted path it fills, an
ordered list of finders (regex or heuristic) producing candidate values,
and a post-processing function. The first candidate that survives its
post-processing wins, so adding a field means adding a row to the table
rather than writing another method.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.postprocessor.normalizers import (
    DateNormalizer,
    AmountNormalizer,
    CurrencyDetector
)
from invoice_pipeline.postprocessor.validators import FieldValidator
from .invoice_data import InvoiceData
from .line_items import LineItemExtractor
from . import patterns

# Initialize module logger
logger = get_logger(__name__)

# A finder yields candidate raw values from a text, best first
Finder = Callable[[str], Iterator[str]]


def regex_finder(*compiled: re.Pattern) -> Finder:
    """Finder yielding group 1 of every match of each pattern, pattern by pattern."""
    def find(text: str) -> Iterator[str]:
        for pattern in compiled:
            for match in pattern.finditer(text):
                yield match.group(1)
    return find


@dataclass
class FieldSpec:
    """
    Declarative description of one extracted field.

    Attributes:
        path: Dotted InvoiceData path, e.g. "vendor.email"
        finders: Candidate producers, tried in order
        postprocess: Maps a raw candidate to a value, or None to reject it
        scope: Part of the document searched: "document", "vendor" or "bill_to"
    """
    path: str
    finders: List[Finder]
    postprocess: Optional[Callable[[str], Any]] = None
    scope: str = 'document'

    def find(self, text: str) -> Any:
        """Return the first accepted candidate value, or None."""
        if not text:
            return None
        for finder in self.finders:
            for raw in finder(text):
                if raw is None:
                    continue
                value = self.postprocess(raw) if self.postprocess else clean_text(raw)
                if value not in (None, ''):
                    return value
        return None


def clean_text(value: str, max_length: int = 200) -> Optional[str]:
    """Collapse whitespace and trim separators; reject empty or overlong values."""
    cleaned = ' '.join(value.split()).strip(' ,;:-|')
    if not cleaned or len(cleaned) > max_length:
        return None
    return cleaned


def with_digit(value: str) -> Optional[str]:
    """Identifier that contains at least one digit."""
    cleaned = value.strip(' .,;:/')
    if len(cleaned) < 3 or not re.search(r'\d', cleaned):
        return None
    return cleaned


def split_sections(text: str) -> Tuple[str, str]:
    """
    Separate the bill-to block from the rest of the document.

    The block starts at a "Bill To"/"Customer:" label (its remainder on
    the same line counts as the first line) and runs until a blank line,
    another section label, or five lines.

    Returns:
        Tuple of (text without the block, block text).
    """
    lines = text.split('\n')

    for index, line in enumerate(lines):
        label = patterns.BILL_TO_LABEL.match(line)
        if not label:
            continue

        block = []
        if label.group(1).strip():
            block.append(label.group(1).strip())

        end = index + 1
        while end < len(lines) and len(block) < 5:
            candidate = lines[end].strip()
            if (not candidate or patterns.SECTION_END.match(candidate)
                    or patterns.BILL_TO_LABEL.match(candidate)):
                break
            block.append(candidate)
            end += 1

        return '\n'.join(lines[:index] + lines[end:]), '\n'.join(block)

    return text, ''


def _is_contact_line(line: str) -> bool:
    return bool(
        '@' in line
        or patterns.PHONE_FIELD[1].search(line)
        or re.search(r'\b(?:phone|tel|email|fax|www)\b', line, re.IGNORECASE)
    )


def company_lines(text: str) -> Iterator[str]:
    """
    Lines near the top that look like a company name.

    Skips titles, labels, amounts, contact data and street addresses.
    """
    for line in text.split('\n')[:10]:
        line = line.strip()
        if not patterns.COMPANY_LINE.match(line):
            continue
        if patterns.VENDOR_STOPWORDS.search(line) or patterns.AMOUNT_LIKE.search(line):
            continue
        if patterns.STREET_LINE.match(line) or patterns.CITY_LINE.match(line):
            continue
        if not re.search(r'[A-Za-z]{2,}', line):
            continue
        if sum(char.isdigit() for char in line) * 3 > len(line):
            continue
        yield line


def company_suffix_lines(text: str) -> Iterator[str]:
    for match in patterns.COMPANY_SUFFIX.finditer(text):
        yield match.group(1)


def street_addresses(text: str) -> Iterator[str]:
    """Street lines, joined with a following "City, ST 12345" line."""
    lines = [line.strip() for line in text.split('\n')]
    for index, line in enumerate(lines):
        match = patterns.STREET_LINE.match(line)
        if not match:
            continue
        address = match.group(1)
        if index + 1 < len(lines) and patterns.CITY_LINE.match(lines[index + 1]):
            address = f"{address}, {lines[index + 1]}"
        yield address


def first_line(text: str) -> Iterator[str]:
    for line in text.split('\n'):
        if line.strip() and not _is_contact_line(line):
            yield line
            return


def block_address(text: str) -> Iterator[str]:
    """Every line of a block after its first, minus contact lines."""
    lines = [line.strip() for line in text.split('\n') if line.strip()]
    address_lines = [line for line in lines[1:] if not _is_contact_line(line)]
    if address_lines:
        yield ', '.join(address_lines)


class FieldExtractor:
    """
    Rule-based invoice field extractor.

    Example:
        >>> extractor = FieldExtractor()
        >>> data = extractor.extract("Invoice #INV-001\\nTotal: $54.00")
        >>> data.invoice_number, data.amounts.total
        ('INV-001', 54.0)
    """

    def __init__(self) -> None:
        self.date_normalizer = DateNormalizer()
        self.amount_normalizer = AmountNormalizer()
        self.currency_detector = CurrencyDetector()
        self.field_validator = FieldValidator()
        self.line_item_extractor = LineItemExtractor()

        self.field_specs = self._build_field_specs()
        logger.debug(f"FieldExtractor initialized with {len(self.field_specs)} field specs")

    def _build_field_specs(self) -> List[FieldSpec]:
        date = self.date_normalizer.normalize
        amount = self._amount
        validator = self.field_validator

        return [
            FieldSpec('invoice_number', [regex_finder(*patterns.INVOICE_NUMBER)], with_digit),
            FieldSpec('date', [regex_finder(*patterns.INVOICE_DATE)], date),
            FieldSpec('due_date', [regex_finder(*patterns.DUE_DATE)], date),

            FieldSpec('vendor.name', [
                regex_finder(*patterns.VENDOR_NAME_LABELED),
                company_lines,
                company_suffix_lines
            ], self._name, scope='vendor'),
            FieldSpec('vendor.address', [
                regex_finder(*patterns.ADDRESS_LABELED),
                street_addresses
            ], scope='vendor'),
            FieldSpec('vendor.email', [regex_finder(*patterns.EMAIL_FIELD)], validator.validate_email, scope='vendor'),
            FieldSpec('vendor.phone', [regex_finder(*patterns.PHONE_FIELD)], validator.format_phone, scope='vendor'),
            FieldSpec('vendor.website', [regex_finder(*patterns.WEBSITE)], validator.validate_website, scope='vendor'),
            FieldSpec('vendor.tax_id', [regex_finder(*patterns.TAX_ID)], with_digit, scope='vendor'),

            FieldSpec('bill_to.name', [first_line], self._name, scope='bill_to'),
            FieldSpec('bill_to.address', [block_address], scope='bill_to'),
            FieldSpec('bill_to.email', [regex_finder(*patterns.EMAIL_FIELD)], validator.validate_email, scope='bill_to'),
            FieldSpec('bill_to.phone', [regex_finder(*patterns.PHONE_FIELD)], validator.format_phone, scope='bill_to'),

            FieldSpec('amounts.subtotal', [regex_finder(*patterns.SUBTOTAL)], amount),
            FieldSpec('amounts.tax', [regex_finder(*patterns.TAX)], amount),
            FieldSpec('amounts.tax_rate', [regex_finder(*patterns.TAX_RATE)], self._percent),
            FieldSpec('amounts.discount', [regex_finder(*patterns.DISCOUNT)], amount),
            FieldSpec('amounts.total', [regex_finder(*patterns.TOTAL)], amount),
            FieldSpec('amounts.amount_paid', [regex_finder(*patterns.AMOUNT_PAID)], amount),
            FieldSpec('amounts.balance_due', [regex_finder(*patterns.BALANCE_DUE)], amount),

            FieldSpec('payment_details.method', [regex_finder(*patterns.PAYMENT_METHOD)]),
            FieldSpec('payment_details.terms', [regex_finder(*patterns.PAYMENT_TERMS)]),
            FieldSpec('payment_details.bank_details', [regex_finder(*patterns.BANK_DETAILS)]),

            FieldSpec('order_info.order_number', [regex_finder(*patterns.ORDER_NUMBER)], with_digit),
            FieldSpec('order_info.order_date', [regex_finder(*patterns.ORDER_DATE)], date),
            FieldSpec('order_info.reference', [regex_finder(*patterns.REFERENCE)], with_digit),

            FieldSpec('notes', [regex_finder(*patterns.NOTES)], lambda raw: clean_text(raw, 500)),
        ]

    def extract(self, text: str, confidence: float = 0.0) -> InvoiceData:
        """
        Extract an invoice record from normalized text.

        Args:
            text: Normalized document text.
            confidence: Confidence of the text acquisition, copied to the record.

        Returns:
            InvoiceData; fields that were not found stay None.
        """
        data = InvoiceData(confidence=confidence)
        if not text or not text.strip():
            data.amounts.currency = self.currency_detector.detect(None)
            return data

        vendor_text, bill_to_text = split_sections(text)
        scopes: Dict[str, str] = {
            'document': text,
            'vendor': vendor_text,
            'bill_to': bill_to_text
        }

        for spec in self.field_specs:
            value = spec.find(scopes[spec.scope])
            if value is not None:
                data.set_value(spec.path, value)

        data.amounts.currency = self.currency_detector.detect(text)
        data.items = self.line_item_extractor.extract(text)

        logger.info(
            f"Extracted {data.populated_field_count()} fields and "
            f"{len(data.items)} line items from text"
        )
        return data

    def _amount(self, raw: str) -> Optional[float]:
        value = self.amount_normalizer.to_float(raw)
        if value is None or value < 0:
            return None
        return value

    @staticmethod
    def _percent(raw: str) -> Optional[float]:
        try:
            value = float(raw)
        except ValueError:
            return None
        return value if 0 < value <= 100 else None

    @staticmethod
    def _name(raw: str) -> Optional[str]:
        name = clean_text(raw, max_length=100)
        if name is None or len(name) < 2 or not re.search(r'[A-Za-z]', name):
            return None
        return name


__all__ = ['FieldExtractor', 'FieldSpec', 'regex_finder', 'split_sections']
