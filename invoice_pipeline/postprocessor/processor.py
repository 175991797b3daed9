"""
Main Post-Processor Module.

This module provides the PostProcessor class that validates and
canonicalizes an InvoiceData record, whichever strategy produced it.

Operations:
    - Clean the invoice number
    - Normalize dates to ISO with a sanity range
    - Validate e-mails and websites, format phone numbers
    - Round amounts to cents and default the currency
    - Clean line items and renumber them densely
    - Log all transformations

Author: ML Engineering Team
"""

import copy
from typing import Optional

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.extraction.invoice_data import InvoiceData, LineItem, Party
from invoice_pipeline.extraction.line_items import drop_restated_totals
from .normalizers import DateNormalizer, CurrencyDetector
from .validators import FieldValidator, AmountValidator, ValidationResult

# Initialize module logger
logger = get_logger(__name__)

AMOUNT_FIELDS = ('subtotal', 'tax', 'tax_rate', 'discount', 'total', 'amount_paid', 'balance_due')
DATE_FIELDS = ('date', 'due_date', 'order_info.order_date')


class PostProcessor:
    """
    Post-processor for extracted invoice records.

    The input record is never modified; a processed copy is returned.

    Example:
        >>> processor = PostProcessor()
        >>> cleaned = processor.process(invoice_data, text=raw_text)
        >>> print(cleaned.date)           # ISO date
        >>> print(cleaned.vendor.phone)   # (555) 123-4567
    """

    def __init__(self) -> None:
        """Initialize the post-processor with all sub-components."""
        self.date_normalizer = DateNormalizer()
        self.currency_detector = CurrencyDetector()
        self.field_validator = FieldValidator()

        self.max_item_amount = get_config("extraction.max_item_amount", 1_000_000)
        self.max_quantity = get_config("extraction.max_quantity", 10_000)
        self.max_line_items = get_config("extraction.max_line_items", 20)
        self.amount_validator = AmountValidator()

        logger.debug("PostProcessor initialized")

    def process(self, data: InvoiceData, text: Optional[str] = None) -> InvoiceData:
        """
        Validate and canonicalize a record.

        Args:
            data: Record from either extraction strategy.
            text: Source text, used to infer a missing currency.

        Returns:
            Processed copy of the record.
        """
        processed = copy.deepcopy(data)
        validation = ValidationResult()

        self._clean_invoice_number(processed, validation)
        self._normalize_dates(processed, validation)
        self._clean_party(processed.vendor, 'vendor', validation)
        self._clean_party(processed.bill_to, 'bill_to', validation)
        self._normalize_amounts(processed, text, validation)
        self._clean_items(processed, validation)

        processed.confidence = max(0.0, min(100.0, float(processed.confidence or 0.0)))

        self._log_processing_summary(validation)
        return processed

    def _clean_invoice_number(self, data: InvoiceData, validation: ValidationResult) -> None:
        original = data.invoice_number
        if original is None:
            return
        data.invoice_number = self.field_validator.clean_invoice_number(original)
        if data.invoice_number != original:
            validation.add_correction(f"invoice_number: '{original}' -> '{data.invoice_number}'")

    def _normalize_dates(self, data: InvoiceData, validation: ValidationResult) -> None:
        """
        Normalize all date fields.

        A date that cannot be parsed, or lies outside the accepted year
        range, is cleared.
        """
        for path in DATE_FIELDS:
            original = data.get_value(path)
            if not original:
                continue

            normalized = self.date_normalizer.normalize(original)
            data.set_value(path, normalized)

            if normalized is None:
                validation.add_warning(f"Could not normalize {path}: '{original}'")
            elif normalized != original:
                validation.add_correction(f"{path}: '{original}' -> '{normalized}'")

        if data.date and data.due_date and data.due_date < data.date:
            validation.add_warning("Due date is before invoice date")

    def _clean_party(self, party: Party, label: str, validation: ValidationResult) -> None:
        for name in ('name', 'address', 'tax_id'):
            value = getattr(party, name)
            if value is not None:
                setattr(party, name, ' '.join(value.split()).strip(' ,;:') or None)

        if party.email is not None:
            email = self.field_validator.validate_email(party.email)
            if email is None:
                validation.add_warning(f"{label}.email rejected: '{party.email}'")
            party.email = email

        if party.phone is not None:
            phone = self.field_validator.format_phone(party.phone)
            if phone != party.phone:
                validation.add_correction(f"{label}.phone: '{party.phone}' -> '{phone}'")
            party.phone = phone

        if party.website is not None:
            party.website = self.field_validator.validate_website(party.website)

    def _normalize_amounts(
        self,
        data: InvoiceData,
        text: Optional[str],
        validation: ValidationResult
    ) -> None:
        amounts = data.amounts

        for name in AMOUNT_FIELDS:
            value = getattr(amounts, name)
            if value is None:
                continue
            value = float(value)
            if name == 'discount':
                value = abs(value)
            if name != 'tax_rate':
                valid, message = self.amount_validator.validate(value)
                if not valid:
                    validation.add_warning(f"amounts.{name}: {message}")
                    setattr(amounts, name, None)
                    continue
            setattr(amounts, name, round(value, 2))

        original = amounts.currency
        if original:
            amounts.currency = self.currency_detector.normalize_code(original)
        else:
            amounts.currency = self.currency_detector.detect(text)
        if amounts.currency != original:
            validation.add_correction(f"amounts.currency: '{original}' -> '{amounts.currency}'")

    def _clean_items(self, data: InvoiceData, validation: ValidationResult) -> None:
        """
        Clean line items.

        Descriptions are whitespace-collapsed and bounded to 200
        characters, quantities default to 1, prices are rounded to cents,
        invalid items are dropped and the rest renumbered from 1.
        """
        cleaned = []

        for item in data.items:
            description = ' '.join((item.description or '').split())[:200].strip()
            if len(description) < 3:
                validation.add_warning(f"Dropped item with short description: '{item.description}'")
                continue

            amount = item.amount
            if amount is None or not 0 < amount <= self.max_item_amount:
                validation.add_warning(f"Dropped item with invalid amount: {description} ({amount})")
                continue

            quantity = item.quantity
            if quantity is None or not 0 < quantity <= self.max_quantity:
                quantity = 1.0

            unit_price = item.unit_price
            if unit_price is None or unit_price < 0:
                unit_price = amount / quantity

            cleaned.append(LineItem(
                description=description,
                quantity=quantity,
                unit_price=round(unit_price, 2),
                amount=round(amount, 2),
                category=item.category,
                reference=item.reference
            ))

        cleaned = drop_restated_totals(cleaned[:self.max_line_items])
        for number, item in enumerate(cleaned, start=1):
            item.line_number = number

        if len(cleaned) != len(data.items):
            validation.add_correction(f"items: {len(data.items)} -> {len(cleaned)}")
        data.items = cleaned

    def _log_processing_summary(self, validation: ValidationResult) -> None:
        logger.info(
            f"Post-processing complete: "
            f"{len(validation.corrections)} corrections, "
            f"{len(validation.warnings)} warnings"
        )

        for correction in validation.corrections:
            logger.debug(f"Correction: {correction}")

        for warning in validation.warnings[:5]:  # Limit logging
            logger.debug(f"Validation warning: {warning}")


__all__ = ['PostProcessor']
