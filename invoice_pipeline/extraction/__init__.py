"""
Extraction Module.

Turns text (or a remote processor's response) into InvoiceData:
    - InvoiceData and its parts: the structured record
    - FieldExtractor: declarative, rule-based field extraction
    - LineItemExtractor: line-item shapes, filters and validation
    - RemoteExtractionAdapter: Google Document AI invoice processor
"""

# invoice_data first: other packages import it while this one initializes
from .invoice_data import (
    ExtractionMethod,
    ExtractionAttempt,
    Party,
    Amounts,
    LineItem,
    PaymentDetails,
    OrderInfo,
    InvoiceData
)
from .line_items import LineItemExtractor, drop_restated_totals
from .field_extractor import FieldExtractor, FieldSpec
from .remote_adapter import RemoteExtractionAdapter, RemoteExtraction

__all__ = [
    'ExtractionMethod',
    'ExtractionAttempt',
    'Party',
    'Amounts',
    'LineItem',
    'PaymentDetails',
    'OrderInfo',
    'InvoiceData',
    'LineItemExtractor',
    'drop_restated_totals',
    'FieldExtractor',
    'FieldSpec',
    'RemoteExtractionAdapter',
    'RemoteExtraction'
]
