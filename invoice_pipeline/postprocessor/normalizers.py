"""
Data Normalizers Module.

This module provides normalization functions for:
    - Date formats (explicit formats first, dateutil as fallback)
    - Currency/amount values
    - Currency code detection

Author: ML Engineering Team
"""

import re
from datetime import datetime
from typing import Optional, List
from dateutil import parser as date_parser

from config import get_config
from invoice_pipeline.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class DateNormalizer:
    """
    Normalizes date strings to a standard format.

    Numeric dates are read month-first unless postprocessing.date.dayfirst
    is set; an ordering that cannot be valid (month 15) falls through to
    the other ordering. Years outside the configured range are rejected.

    Attributes:
        output_format: Target date format string
        dayfirst: Prefer day/month/year for ambiguous numeric dates
        input_formats: Explicit format strings, tried in order

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("03/15/2024")
        "2024-03-15"
        >>> normalizer.normalize("January 15, 2026")
        "2026-01-15"
    """

    # Common date patterns for extraction from free text
    DATE_PATTERNS = [
        # MM/DD/YYYY or DD/MM/YYYY
        r'\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b',
        # YYYY-MM-DD
        r'\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b',
        # Month DD, YYYY
        r'\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{2,4})\b',
        # DD Month YYYY
        r'\b(\d{1,2})(?:st|nd|rd|th)?\s+((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?),?\s+(\d{2,4})\b',
    ]

    MONTH_FIRST_FORMATS = ["%m/%d/%Y", "%m-%d-%Y", "%m/%d/%y", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y"]
    DAY_FIRST_FORMATS = ["%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%m/%d/%Y", "%m-%d-%Y", "%m/%d/%y"]
    COMMON_FORMATS = [
        "%Y-%m-%d",
        "%Y/%m/%d",
        "%d.%m.%Y",
        "%B %d, %Y",
        "%b %d, %Y",
        "%B %d %Y",
        "%b %d %Y",
        "%d %B %Y",
        "%d %b %Y",
        "%d-%b-%Y",
        "%d-%b-%y"
    ]

    # dateutil fills missing components from this; year 1 marks "no year found"
    _NO_YEAR = datetime(1, 1, 1)

    def __init__(self) -> None:
        """Initialize the date normalizer with configuration."""
        self.output_format = get_config("postprocessing.date.output_format", "%Y-%m-%d")
        self.dayfirst = bool(get_config("postprocessing.date.dayfirst", False))
        self.min_year = get_config("postprocessing.date.min_year", 1900)
        self.max_year = get_config("postprocessing.date.max_year", 2100)

        ordered = self.DAY_FIRST_FORMATS if self.dayfirst else self.MONTH_FIRST_FORMATS
        self.input_formats = ordered + self.COMMON_FORMATS

        logger.debug(
            f"DateNormalizer initialized (output: {self.output_format}, dayfirst={self.dayfirst})"
        )

    def normalize(self, date_str: Optional[str]) -> Optional[str]:
        """
        Normalize a date string to the configured output format.

        Args:
            date_str: Input date string in any recognized format.

        Returns:
            Normalized date string, or None if parsing fails.
        """
        if not date_str:
            return None

        date_str = self._clean_date_string(date_str)
        if not re.search(r'\d', date_str):
            return None

        parsed_date = self._try_explicit_formats(date_str)
        if parsed_date is None:
            parsed_date = self._try_dateutil_parser(date_str)

        if parsed_date is None:
            logger.debug(f"Could not parse date: {date_str}")
            return None

        if not self.min_year <= parsed_date.year <= self.max_year:
            logger.debug(f"Date out of range: {date_str}")
            return None

        return parsed_date.strftime(self.output_format)

    def _clean_date_string(self, date_str: str) -> str:
        """
        Clean and prepare date string for parsing.

        Args:
            date_str: Raw date string.

        Returns:
            Cleaned date string.
        """
        date_str = ' '.join(date_str.split())

        prefixes = ['invoice date:', 'due date:', 'dated:', 'date:']
        for prefix in prefixes:
            if date_str.lower().startswith(prefix):
                date_str = date_str[len(prefix):].strip()

        # Remove ordinal suffixes (1st, 2nd, 3rd, 4th, etc.)
        date_str = re.sub(r'(\d+)(st|nd|rd|th)\b', r'\1', date_str, flags=re.IGNORECASE)
        # "Jan. 5" -> "Jan 5"
        date_str = re.sub(r'\b([A-Za-z]{3})\.', r'\1', date_str)

        return date_str.strip(' ,.')

    def _try_explicit_formats(self, date_str: str) -> Optional[datetime]:
        for fmt in self.input_formats:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
        return None

    def _try_dateutil_parser(self, date_str: str) -> Optional[datetime]:
        """
        Try to parse date using dateutil's fuzzy parser.

        Results without a year are rejected so that strings such as
        "Net 30" are not read as dates.
        """
        try:
            parsed = date_parser.parse(
                date_str, dayfirst=self.dayfirst, fuzzy=True, default=self._NO_YEAR
            )
        except (ValueError, OverflowError):
            return None

        if parsed.year == 1:
            return None
        return parsed

    def extract_date(self, text: str) -> Optional[str]:
        """
        Extract and normalize the first date found in free text.

        Args:
            text: Text that may contain a date.

        Returns:
            Normalized date string or None.
        """
        for pattern in self.DATE_PATTERNS:
            for match in re.finditer(pattern, text, re.IGNORECASE):
                normalized = self.normalize(match.group(0))
                if normalized:
                    return normalized

        return self.normalize(text)


class AmountNormalizer:
    """
    Normalizes currency/amount strings to floats.

    Handles currency symbols and codes, thousand separators, and the
    European decimal comma.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.to_float("$1,234.56")
        1234.56
        >>> normalizer.to_float("€ 1.234,56")
        1234.56
    """

    CURRENCY_SYMBOLS = ['C$', 'A$', '$', '€', '£', '¥', '₹']
    CURRENCY_CODES = [
        'USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD', 'CNY',
        'CHF', 'NZD', 'SGD', 'HKD', 'ZAR', 'MXN', 'SEK', 'NOK', 'DKK'
    ]

    def _clean_amount_string(self, amount_str: str) -> str:
        amount_str = ' '.join(amount_str.split())

        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        # Keep only digits, comma, dot, and minus
        amount_str = re.sub(r'[^\d,.\-]', '', amount_str)

        return amount_str.strip('.,')

    def _handle_european_format(self, amount_str: str) -> str:
        """
        Convert European format (comma decimal) to US format (dot decimal).

        "1.234,56" and "12,50" use a decimal comma; "1,234" does not.
        """
        if amount_str.count(',') == 1:
            comma_pos = amount_str.rfind(',')
            dot_pos = amount_str.rfind('.')

            if comma_pos > dot_pos:
                after_comma = amount_str[comma_pos + 1:]
                if len(after_comma) <= 2 and after_comma.isdigit():
                    amount_str = amount_str.replace('.', '')
                    amount_str = amount_str.replace(',', '.')

        return amount_str

    def to_float(self, amount_str: Optional[str]) -> Optional[float]:
        """
        Convert an amount string to float.

        Args:
            amount_str: Amount string such as "$1,234.56".

        Returns:
            Float value or None if the string holds no number.
        """
        if not amount_str:
            return None

        cleaned = self._clean_amount_string(str(amount_str))
        if not cleaned:
            return None

        cleaned = self._handle_european_format(cleaned)
        cleaned = cleaned.replace(',', '')

        try:
            return float(cleaned)
        except ValueError:
            logger.debug(f"Could not parse amount: {amount_str}")
            return None

    def normalize(self, amount_str: Optional[str]) -> Optional[str]:
        """
        Normalize an amount string to two-decimal text.

        Example:
            >>> normalizer.normalize("$1,234.5")
            "1234.50"
        """
        value = self.to_float(amount_str)
        return None if value is None else f"{value:.2f}"


class CurrencyDetector:
    """
    Infers the 3-letter currency code of a document.

    Explicit codes win over symbols. A bare "$" is read as USD unless the
    configured fallback is itself a dollar currency.

    Example:
        >>> CurrencyDetector().detect("Total: EUR 120.00")
        "EUR"
        >>> CurrencyDetector().detect("Total: 120.00", fallback="GBP")
        "GBP"
    """

    CODES = [
        'USD', 'EUR', 'GBP', 'INR', 'CAD', 'AUD', 'JPY', 'CNY', 'CHF',
        'NZD', 'SGD', 'HKD', 'ZAR', 'MXN', 'SEK', 'NOK', 'DKK', 'AED'
    ]
    # Checked in order; prefixed dollars before the bare "$"
    SYMBOLS = [
        ('C$', 'CAD'),
        ('A$', 'AUD'),
        ('€', 'EUR'),
        ('£', 'GBP'),
        ('₹', 'INR'),
        ('¥', 'JPY'),
    ]
    DOLLAR_CURRENCIES = ['USD', 'CAD', 'AUD', 'NZD', 'SGD', 'HKD']

    def __init__(self) -> None:
        self.default_currency = get_config("extraction.default_currency", "USD")
        self._code_pattern = re.compile(r'\b(' + '|'.join(self.CODES) + r')\b')

    def detect(self, text: Optional[str], fallback: Optional[str] = None) -> str:
        """
        Detect the currency code of a text.

        Args:
            text: Document text.
            fallback: Code used when nothing is found; defaults to the
                configured extraction.default_currency.

        Returns:
            3-letter currency code.
        """
        fallback = (fallback or self.default_currency).upper()
        if not text:
            return fallback

        match = self._code_pattern.search(text)
        if match:
            return match.group(1)

        for symbol, code in self.SYMBOLS:
            if symbol in text:
                return code

        if '$' in text:
            return fallback if fallback in self.DOLLAR_CURRENCIES else 'USD'

        return fallback

    def normalize_code(self, value: Optional[str], fallback: Optional[str] = None) -> str:
        """Map a code or symbol (e.g. from a remote entity) to a 3-letter code."""
        if value:
            value = value.strip()
            if value.upper() in self.CODES:
                return value.upper()
        return self.detect(value, fallback)


__all__ = ['DateNormalizer', 'AmountNormalizer', 'CurrencyDetector']
