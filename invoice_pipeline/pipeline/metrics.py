"""
Processing Metrics Module.

Derived, read-only summary of one pipeline run.

Metrics Include:
    - Processing time and pages processed
    - Average extraction confidence
    - Data extraction score (weighted presence of invoice fields)
    - Consensus score (bounded blend of the two)

Author: ML Engineering Team
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.extraction.invoice_data import InvoiceData

# Initialize module logger
logger = get_logger(__name__)

# Field path -> weight; "items" stands for a non-empty item list.
# Required fields outweigh optional ones; weights sum to 100.
FIELD_WEIGHTS: Dict[str, int] = {
    'invoice_number': 20,
    'date': 15,
    'vendor.name': 20,
    'amounts.total': 15,
    'due_date': 5,
    'vendor.email': 5,
    'vendor.phone': 5,
    'amounts.subtotal': 5,
    'amounts.tax': 5,
    'items': 5,
}
REQUIRED_FIELDS = ('invoice_number', 'date', 'vendor.name', 'amounts.total')


@dataclass(frozen=True)
class ProcessingMetrics:
    """
    Metrics attached to a completed extraction.

    Attributes:
        processing_time_ms: Wall time of the whole run
        pages_processed: Pages read by the strategy that produced the record
        average_confidence: 0-100 confidence of that strategy
        data_extraction_score: 0-100 weighted field-presence score
        consensus_score: 0-100 blend of the two, capped
    """
    processing_time_ms: int
    pages_processed: int
    average_confidence: float
    data_extraction_score: float
    consensus_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processingTimeMs': self.processing_time_ms,
            'pagesProcessed': self.pages_processed,
            'averageConfidence': round(self.average_confidence, 2),
            'dataExtractionScore': round(self.data_extraction_score, 2),
            'consensusScore': round(self.consensus_score, 2)
        }


def _present(data: InvoiceData, path: str) -> bool:
    if path == 'items':
        return bool(data.items)
    return data.get_value(path) not in (None, '')


def data_extraction_score(data: InvoiceData) -> float:
    """
    Weighted presence score of the record's fields.

    Example:
        >>> data = InvoiceData(invoice_number="INV-1")
        >>> data_extraction_score(data)
        20.0
    """
    return float(sum(weight for path, weight in FIELD_WEIGHTS.items() if _present(data, path)))


def missing_required_fields(data: InvoiceData) -> List[str]:
    return [path for path in REQUIRED_FIELDS if not _present(data, path)]


def compute_metrics(
    data: InvoiceData,
    confidence: float,
    pages_processed: int,
    processing_time_ms: int
) -> ProcessingMetrics:
    """
    Compute the metrics of a completed run.

    Args:
        data: Final, post-processed record.
        confidence: 0-100 confidence of the strategy that produced it.
        pages_processed: Pages read by that strategy.
        processing_time_ms: Wall time of the run.

    Returns:
        ProcessingMetrics.
    """
    confidence = max(0.0, min(100.0, float(confidence or 0.0)))
    score = data_extraction_score(data)
    cap = get_config("metrics.consensus_cap", 95)
    consensus = min(cap, (score + confidence) / 2)

    missing = missing_required_fields(data)
    if missing:
        logger.info(f"Required fields not found: {', '.join(missing)}")

    return ProcessingMetrics(
        processing_time_ms=processing_time_ms,
        pages_processed=pages_processed,
        average_confidence=confidence,
        data_extraction_score=score,
        consensus_score=consensus
    )


__all__ = ['ProcessingMetrics', 'FIELD_WEIGHTS', 'data_extraction_score', 'compute_metrics']
