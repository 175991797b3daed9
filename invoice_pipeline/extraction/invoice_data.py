"""
Invoice Data Classes.

This module defines the structured output of the pipeline. Every leaf
field is optional: None means "not found", never an error.

Python attributes are snake_case; to_dict() emits the camelCase keys of
the output contract so a record can be handed unchanged to persistence.

Classes:
    ExtractionMethod: Tags of the strategies that can produce text/data
    ExtractionAttempt: One completed strategy run
    Party: Vendor or bill-to contact block
    Amounts: Monetary totals and currency
    LineItem: One purchased item
    PaymentDetails, OrderInfo: Secondary blocks
    InvoiceData: The complete record

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


class ExtractionMethod(str, Enum):
    """Tag of the strategy that produced an attempt."""
    REMOTE_AI = "RemoteAI"
    NATIVE_TEXT = "NativeText"
    OCR_PSM_SWEEP = "OcrPsmSweep"


@dataclass
class ExtractionAttempt:
    """
    One completed strategy run.

    Attributes:
        method: Strategy tag
        raw_text: Text the strategy recovered
        confidence: 0-100
        elapsed_ms: Wall time of the run
    """
    method: ExtractionMethod
    raw_text: str = ""
    confidence: float = 0.0
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method.value,
            'textLength': len(self.raw_text),
            'confidence': round(self.confidence, 2),
            'elapsedMs': self.elapsed_ms
        }


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _to_camel_dict(obj: Any) -> Dict[str, Any]:
    return {_camel(f.name): getattr(obj, f.name) for f in fields(obj)}


@dataclass
class Party:
    """Contact block of the vendor or the bill-to customer."""
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    tax_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class Amounts:
    """Monetary totals. Currency is a 3-letter code."""
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    tax_rate: Optional[float] = None
    discount: Optional[float] = None
    total: Optional[float] = None
    amount_paid: Optional[float] = None
    balance_due: Optional[float] = None
    currency: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class LineItem:
    """
    One purchased item.

    Attributes:
        description: 3-200 characters
        quantity: > 0
        unit_price: >= 0
        amount: > 0, bounded by a sanity ceiling
        category: Inferred from description keywords, may be None
        line_number: Dense, 1-based position in the item list
        reference: Item code when the line carried one

    Example:
        >>> LineItem(description="Widget A", quantity=2, unit_price=25.0, amount=50.0)
    """
    description: str
    quantity: float = 1.0
    unit_price: Optional[float] = None
    amount: float = 0.0
    category: Optional[str] = None
    line_number: int = 0
    reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class PaymentDetails:
    method: Optional[str] = None
    terms: Optional[str] = None
    bank_details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class OrderInfo:
    order_number: Optional[str] = None
    order_date: Optional[str] = None
    reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class InvoiceData:
    """
    Structured invoice record.

    Scalar fields can be addressed by dotted path (for example
    "vendor.name" or "amounts.tax_rate") through get_value()/set_value(),
    which is how the declarative field table writes into it.

    Example:
        >>> data = InvoiceData()
        >>> data.set_value("vendor.name", "Acme Corp")
        >>> data.to_dict()["vendor"]["name"]
        'Acme Corp'
    """
    invoice_number: Optional[str] = None
    date: Optional[str] = None
    due_date: Optional[str] = None
    vendor: Party = field(default_factory=Party)
    bill_to: Party = field(default_factory=Party)
    amounts: Amounts = field(default_factory=Amounts)
    items: List[LineItem] = field(default_factory=list)
    payment_details: PaymentDetails = field(default_factory=PaymentDetails)
    order_info: OrderInfo = field(default_factory=OrderInfo)
    notes: Optional[str] = None
    confidence: float = 0.0

    # Paths that count as "populated data" when comparing records
    SCALAR_SECTIONS = ('vendor', 'bill_to', 'amounts', 'payment_details', 'order_info')

    def get_value(self, path: str) -> Any:
        """Read a field by dotted path."""
        target: Any = self
        for part in path.split('.'):
            target = getattr(target, part)
        return target

    def set_value(self, path: str, value: Any) -> None:
        """Write a field by dotted path."""
        *parents, leaf = path.split('.')
        target: Any = self
        for part in parents:
            target = getattr(target, part)
        if not hasattr(target, leaf):
            raise AttributeError(f"Unknown invoice field: {path}")
        setattr(target, leaf, value)

    def scalar_paths(self) -> List[str]:
        """Dotted paths of every scalar leaf field."""
        paths = ['invoice_number', 'date', 'due_date', 'notes']
        for section in self.SCALAR_SECTIONS:
            paths.extend(f"{section}.{f.name}" for f in fields(getattr(self, section)))
        return paths

    def populated_field_count(self) -> int:
        """
        Number of scalar fields holding a value.

        The currency is not counted because it is always defaulted.
        """
        return sum(
            1 for path in self.scalar_paths()
            if path != 'amounts.currency' and self.get_value(path) not in (None, '')
        )

    def is_empty(self) -> bool:
        """True when nothing but the defaulted currency is set."""
        return self.populated_field_count() == 0 and not self.items

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase output contract."""
        return {
            'invoiceNumber': self.invoice_number,
            'date': self.date,
            'dueDate': self.due_date,
            'vendor': self.vendor.to_dict(),
            'billTo': self.bill_to.to_dict(),
            'amounts': self.amounts.to_dict(),
            'items': [item.to_dict() for item in self.items],
            'paymentDetails': self.payment_details.to_dict(),
            'orderInfo': self.order_info.to_dict(),
            'notes': self.notes,
            'confidence': round(self.confidence, 2)
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"InvoiceData(number='{self.invoice_number}', vendor='{self.vendor.name}', "
            f"total={self.amounts.total}, items={len(self.items)}, "
            f"confidence={self.confidence:.1f})"
        )


__all__ = [
    'ExtractionMethod',
    'ExtractionAttempt',
    'Party',
    'Amounts',
    'LineItem',
    'PaymentDetails',
    'OrderInfo',
    'InvoiceData'
]
