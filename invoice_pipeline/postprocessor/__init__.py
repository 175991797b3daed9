"""
Post-Processing Module for Invoice Extraction System.

This module provides functionality for:
    - Text normalization before field parsing
    - Date normalization and validation
    - Amount/currency normalization
    - Field validation and canonical formatting
    - Record cleanup shared by every extraction strategy

Author: ML Engineering Team
"""

from .text_normalizer import TextNormalizer, normalize_text
from .normalizers import DateNormalizer, AmountNormalizer, CurrencyDetector
from .validators import AmountValidator, FieldValidator, ValidationResult
from .processor import PostProcessor

__all__ = [
    'PostProcessor',
    'TextNormalizer',
    'normalize_text',
    'DateNormalizer',
    'AmountNormalizer',
    'CurrencyDetector',
    'AmountValidator',
    'FieldValidator',
    'ValidationResult'
]
