"""
Text Normalizer Module.

Deterministic cleanup of recovered invoice text before field parsing:
    - Line endings unified to "\\n"
    - Horizontal whitespace runs collapsed, lines trimmed
    - Runs of blank lines collapsed to one
    - OCR character-confusion corrections

normalize() is idempotent: normalizing normalized text returns it unchanged.
Every correction only rewrites characters inside a single line and its
output is a fixed point of the same correction.

Author: ML Engineering Team
"""

import re
from typing import List, Tuple

from invoice_pipeline.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class TextNormalizer:
    """
    Pure text normalizer.

    Example:
        >>> TextNormalizer().normalize("Tota1: $ 1O0.00\\r\\n\\r\\n\\r\\nlnvoice")
        'Tota1: $100.00\\n\\nInvoice'
    """

    # (name, pattern, replacement), applied in order
    CORRECTIONS: List[Tuple[str, re.Pattern, str]] = [
        # Letter O between digits is a zero: "1O0" -> "100"
        ('o_in_number', re.compile(r'(?<=\d)[Oo](?=\d)'), '0'),
        # l or I between digits is a one: "2l5" -> "215"
        ('l_in_number', re.compile(r'(?<=\d)[lI](?=\d)'), '1'),
        # Zero between letters is an O: "F0RM" -> "FORM"
        ('zero_in_word', re.compile(r'(?<=[A-Za-z])0(?=[A-Za-z])'), 'O'),
        # Misread capital I in "Invoice"
        ('invoice_word', re.compile(r'\b[lI1](?=nvoice\b)'), 'I'),
        # "$ 100" -> "$100"
        ('currency_spacing', re.compile(r'([$€£¥₹]) +(?=\d)'), r'\1'),
        # "03 / 15 / 2024" -> "03/15/2024"
        ('date_rejoin', re.compile(r'(?<![\d/])(\d{1,2}) ?/ ?(\d{1,2}) ?/ ?(\d{4}|\d{2})\b'), r'\1/\2/\3'),
        # "555 - 123 - 4567" -> "555-123-4567"
        ('phone_rejoin', re.compile(r'(?<![\d.])(\d{3}) ?[-.] ?(\d{3}) ?[-.] ?(\d{4})(?![\d.])'), r'\1-\2-\3'),
        # "billing @ acme . com" -> "billing@acme.com"
        ('email_rejoin', re.compile(r'([\w.+-]+) ?@ ?([A-Za-z0-9-]+) ?\. ?([a-z]{2,6})\b'), r'\1@\2.\3'),
    ]

    _HORIZONTAL_SPACE = re.compile(r'[^\S\n]+')
    _BLANK_RUNS = re.compile(r'\n{3,}')

    def normalize(self, text: str) -> str:
        """
        Normalize text.

        Args:
            text: Raw text (may be empty or None).

        Returns:
            Normalized text.
        """
        if not text:
            return ""

        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = self._HORIZONTAL_SPACE.sub(' ', text)
        text = '\n'.join(line.strip() for line in text.split('\n'))
        text = self._BLANK_RUNS.sub('\n\n', text)
        text = text.strip()

        for name, pattern, replacement in self.CORRECTIONS:
            text, count = pattern.subn(replacement, text)
            if count:
                logger.debug(f"Correction {name}: {count} replacement(s)")

        return text


def normalize_text(text: str) -> str:
    """Convenience wrapper around TextNormalizer.normalize()."""
    return TextNormalizer().normalize(text)


__all__ = ['TextNormalizer', 'normalize_text']
