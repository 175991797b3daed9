"""
Pipeline Module.

Orchestration of one document extraction:
    - ExtractionOrchestrator: strategy selection, post-processing, metrics
    - RemoteStrategy / LocalStrategy: the ordered fallback chain
    - ProgressReporter: monotonic progress events to an injected sink
    - ProcessingMetrics: data-extraction and consensus scores
"""

from .progress import ProgressReporter, ProgressEvent
from .metrics import ProcessingMetrics, compute_metrics, data_extraction_score
from .strategies import ExtractionStrategy, StrategyOutput, RemoteStrategy, LocalStrategy
from .orchestrator import ExtractionOrchestrator, ExtractionOutput

__all__ = [
    'ExtractionOrchestrator',
    'ExtractionOutput',
    'ExtractionStrategy',
    'StrategyOutput',
    'RemoteStrategy',
    'LocalStrategy',
    'ProgressReporter',
    'ProgressEvent',
    'ProcessingMetrics',
    'compute_metrics',
    'data_extraction_score'
]
