"""
Data Validators Module.

This module provides validation and canonical formatting for:
    - Invoice numbers
    - Contact data (e-mail, phone, website)
    - Amount fields

Author: ML Engineering Team
"""

import re
from typing import Optional, List, Dict, Any, Tuple

from invoice_pipeline.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class AmountValidator:
    """
    Validates amount fields.

    Example:
        >>> validator = AmountValidator(max_amount=1_000_000)
        >>> validator.validate(-100.0)
        (False, "Amount cannot be negative")
    """

    def __init__(self, max_amount: float = 1_000_000_000) -> None:
        self.max_amount = max_amount

    def validate(self, value: Optional[float]) -> Tuple[bool, str]:
        """
        Validate an amount with detailed feedback.

        Args:
            value: Amount to validate.

        Returns:
            Tuple of (is_valid, message).
        """
        if value is None:
            return False, "Amount is empty"
        if value < 0:
            return False, "Amount cannot be negative"
        if value > self.max_amount:
            return False, f"Amount {value} exceeds maximum"
        return True, "Valid amount"


class FieldValidator:
    """
    Validation and canonical formatting of scalar invoice fields.

    Example:
        >>> validator = FieldValidator()
        >>> validator.format_phone("555.123.4567")
        "(555) 123-4567"
        >>> validator.clean_invoice_number("#INV 2024/001")
        "INV2024001"
    """

    EMAIL_PATTERN = re.compile(r'^[\w.+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$')
    WEBSITE_PATTERN = re.compile(r'^(https?://)?(www\.)?[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}(/\S*)?$')

    def clean_invoice_number(self, value: Optional[str]) -> Optional[str]:
        """
        Keep only word characters and dashes of an invoice number.

        Returns:
            Cleaned number, or None if nothing usable remains.
        """
        if not value:
            return None
        cleaned = re.sub(r'[^\w-]', '', value.strip()).strip('-')
        return cleaned or None

    def validate_email(self, value: Optional[str]) -> Optional[str]:
        """Return the lower-cased e-mail if well-formed, else None."""
        if not value:
            return None
        candidate = value.strip().strip('.,;').lower()
        if self.EMAIL_PATTERN.match(candidate):
            return candidate
        logger.debug(f"Rejected e-mail: {value}")
        return None

    def validate_website(self, value: Optional[str]) -> Optional[str]:
        """Return the website if it looks like a host name or URL, else None."""
        if not value:
            return None
        candidate = value.strip().strip('.,;')
        if self.WEBSITE_PATTERN.match(candidate) and '@' not in candidate:
            return candidate
        return None

    def format_phone(self, value: Optional[str]) -> Optional[str]:
        """
        Format a phone number.

        Ten-digit numbers (optionally with a leading country code 1) are
        written as (XXX) XXX-XXXX; other numbers are kept as written.
        Strings with fewer than 7 digits are rejected.
        """
        if not value:
            return None

        digits = re.sub(r'\D', '', value)
        if len(digits) == 11 and digits.startswith('1'):
            digits = digits[1:]
        if len(digits) == 10:
            return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
        if len(digits) < 7:
            return None
        return ' '.join(value.split())


class ValidationResult:
    """
    Collects the changes and warnings of one post-processing run.

    Attributes:
        corrections: Human-readable list of applied changes
        warnings: List of warning messages
    """

    def __init__(self) -> None:
        self.corrections: List[str] = []
        self.warnings: List[str] = []

    def add_correction(self, message: str) -> None:
        self.corrections.append(message)

    def add_warning(self, message: str) -> None:
        """Add a warning (doesn't affect the record)."""
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'corrections': self.corrections,
            'warnings': self.warnings
        }


__all__ = ['AmountValidator', 'FieldValidator', 'ValidationResult']
