"""
Line Item Extraction Module.

Turns the body lines of an invoice into LineItem records. Each line is
matched against a small set of item shapes, most specific first; every
shape is paired with its own parser so that the fields a shape captures
are read the same way every time.

Author: ML Engineering Team
"""

import math
import re
from typing import Callable, List, Optional, Tuple

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from .invoice_data import LineItem
from . import patterns

# Initialize module logger
logger = get_logger(__name__)

# Amounts within a cent of each other are considered equal
CENT = 0.01


def is_header_line(line: str) -> bool:
    """True for table headers, rules and document titles."""
    stripped = line.strip()
    if any(pattern.search(stripped) for pattern in patterns.HEADER_PATTERNS):
        return True

    words = [word for word in re.split(r'[\s|]+', stripped.lower()) if word]
    return bool(words) and all(word in patterns.COLUMN_WORDS for word in words)


def is_summary_line(line: str) -> bool:
    """
    True for subtotal, tax, shipping and similar lines.

    A summary keyword alone is not enough; the line must also start with
    it (after an optional row index), so "Premium Widget Tax Advisory"
    stays an item while "Tax Rate 8% 4.00" does not.
    """
    stripped = line.strip()
    lower = stripped.lower()
    if not any(keyword in lower for keyword in patterns.SUMMARY_KEYWORDS):
        return False
    return any(pattern.search(stripped) for pattern in patterns.SUMMARY_ANCHORS)


def clean_description(description: str) -> str:
    """
    Strip a leading row index and trailing currency amounts.

    Example:
        >>> clean_description("1. Widget A $25.00")
        'Widget A'
    """
    description = patterns.LEADING_INDEX.sub('', description.strip())
    description = patterns.TRAILING_AMOUNTS.sub('', description)
    return ' '.join(description.split()).strip(' -:|')


def infer_category(description: str) -> Optional[str]:
    """First category whose keyword starts a word of the description."""
    lower = description.lower()
    for category, keywords in patterns.CATEGORY_KEYWORDS.items():
        for keyword in keywords:
            if re.search(rf'\b{re.escape(keyword)}', lower):
                return category
    return None


def _is_restated(amount: float, others: float) -> bool:
    return math.isclose(amount, others, abs_tol=CENT)


def drop_restated_totals(items: List[LineItem]) -> List[LineItem]:
    """
    Remove items whose amount restates the sum of the remaining items.

    Such rows are totals that slipped through as items. The last
    offending item is dropped first, repeatedly, until no item equals
    the sum of the others.

    Args:
        items: Candidate line items.

    Returns:
        New list without restated totals.
    """
    kept = list(items)

    while len(kept) > 1:
        total = sum(item.amount for item in kept)
        for index in range(len(kept) - 1, -1, -1):
            if _is_restated(kept[index].amount, total - kept[index].amount):
                logger.debug(f"Dropping restated total: {kept[index].description} ({kept[index].amount})")
                del kept[index]
                break
        else:
            break

    return kept


class LineItemExtractor:
    """
    Extracts line items from normalized invoice text.

    Attributes:
        max_items: Cap on returned items
        max_amount: Largest plausible line amount
        max_quantity: Largest plausible quantity

    Example:
        >>> extractor = LineItemExtractor()
        >>> items = extractor.extract("Widget A 2 25.00 50.00\\nTotal: $50.00")
        >>> items[0].quantity, items[0].amount
        (2.0, 50.0)
    """

    def __init__(self) -> None:
        self.max_items = get_config("extraction.max_line_items", 20)
        self.max_amount = get_config("extraction.max_item_amount", 1_000_000)
        self.max_quantity = get_config("extraction.max_quantity", 10_000)

        # (name, shape, parser), tried in order
        self.shapes: List[Tuple[str, re.Pattern, Callable[[re.Match], Optional[LineItem]]]] = [
            ('full', patterns.ITEM_FULL, self._parse_priced),
            ('qty_times_price', patterns.ITEM_QTY_TIMES_PRICE, self._parse_priced),
            ('code_desc_amount', patterns.ITEM_CODE_DESC_AMOUNT, self._parse_coded),
            ('desc_amount', patterns.ITEM_DESC_AMOUNT, self._parse_amount_only),
        ]

    def extract(self, text: str) -> List[LineItem]:
        """
        Extract line items from text.

        Args:
            text: Normalized invoice text.

        Returns:
            Validated, de-duplicated items numbered from 1.
        """
        items: List[LineItem] = []

        for raw_line in (text or '').split('\n'):
            line = raw_line.strip()
            if len(line) < 5 or is_header_line(line) or is_summary_line(line):
                continue

            item = self._match_line(line)
            if item is not None:
                items.append(item)

        items = drop_restated_totals(items)
        items = drop_restated_totals(items[:self.max_items])

        for number, item in enumerate(items, start=1):
            item.line_number = number

        logger.debug(f"Extracted {len(items)} line items")
        return items

    def _match_line(self, line: str) -> Optional[LineItem]:
        for name, shape, parser in self.shapes:
            match = shape.match(line)
            if not match:
                continue
            item = parser(match)
            if item is not None and self.validate(item):
                logger.debug(f"Line item ({name}): {item.description} = {item.amount}")
                return item
        return None

    def _amount(self, match: re.Match, group: str) -> Optional[float]:
        value = match.group(group)
        return float(value.replace(",", "")) if value else None

    def _build(
        self,
        description: str,
        amount: Optional[float],
        quantity: float = 1.0,
        unit_price: Optional[float] = None,
        reference: Optional[str] = None
    ) -> Optional[LineItem]:
        if amount is None:
            return None
        description = clean_description(description)
        return LineItem(
            description=description,
            quantity=quantity,
            unit_price=unit_price if unit_price is not None else round(amount / quantity, 2),
            amount=amount,
            category=infer_category(description),
            reference=reference
        )

    def _parse_priced(self, match: re.Match) -> Optional[LineItem]:
        quantity = float(match.group('quantity'))
        if quantity <= 0:
            return None
        return self._build(
            match.group('description'),
            self._amount(match, 'amount'),
            quantity=quantity,
            unit_price=self._amount(match, 'unit_price')
        )

    def _parse_coded(self, match: re.Match) -> Optional[LineItem]:
        return self._build(
            match.group('description'),
            self._amount(match, 'amount'),
            reference=match.group('reference')
        )

    def _parse_amount_only(self, match: re.Match) -> Optional[LineItem]:
        return self._build(match.group('description'), self._amount(match, 'amount'))

    def validate(self, item: LineItem) -> bool:
        """
        Check that a parsed item is plausible.

        Upper-case descriptions are accepted; OCR of table rows often
        yields them.
        """
        description = item.description
        if not 3 <= len(description) <= 200:
            return False
        if not 0 < item.amount <= self.max_amount:
            return False
        if not 0 < item.quantity <= self.max_quantity:
            return False
        if any(pattern.search(description) for pattern in patterns.NON_ITEM_DESCRIPTIONS):
            return False
        return True


__all__ = [
    'LineItemExtractor',
    'drop_restated_totals',
    'is_header_line',
    'is_summary_line',
    'clean_description',
    'infer_category'
]
