"""
Extraction Strategies Module.

The orchestrator walks an ordered list of strategies and takes the first
one that produces an output. A strategy returns None to mean "skip me";
it raises only for input that cannot be read at all.

Classes:
    StrategyOutput: Text, record and bookkeeping of a successful strategy
    ExtractionStrategy: Abstract strategy interface
    RemoteStrategy: Document AI through RemoteExtractionAdapter
    LocalStrategy: TextAcquisition + TextNormalizer + FieldExtractor

Author: ML Engineering Team
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import elapsed_ms
from invoice_pipeline.utils.exceptions import ConfigurationError
from invoice_pipeline.input_handler.document import SourceDocument
from invoice_pipeline.input_handler.acquisition import TextAcquisition
from invoice_pipeline.postprocessor.text_normalizer import TextNormalizer
from invoice_pipeline.extraction.invoice_data import (
    InvoiceData,
    ExtractionMethod,
    ExtractionAttempt
)
from invoice_pipeline.extraction.field_extractor import FieldExtractor
from invoice_pipeline.extraction.remote_adapter import RemoteExtractionAdapter

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class StrategyOutput:
    """
    Output of a strategy that succeeded.

    Attributes:
        text: Text the record was read from
        invoice_data: Record before post-processing
        confidence: 0-100 confidence of the attempt that was used
        page_count: Pages read
        methods: Tags of the attempts actually used, in order
        attempts: Every attempt made, used or not
    """
    text: str
    invoice_data: InvoiceData
    confidence: float
    page_count: int
    methods: List[ExtractionMethod] = field(default_factory=list)
    attempts: List[ExtractionAttempt] = field(default_factory=list)


class ExtractionStrategy(ABC):
    """Interface of one way of turning a document into an InvoiceData record."""

    name: str = "strategy"

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the strategy can run right now."""

    @abstractmethod
    async def attempt(self, document: SourceDocument, progress: Any = None) -> Optional[StrategyOutput]:
        """
        Try to extract the document.

        Returns:
            StrategyOutput, or None to let the next strategy run.

        Raises:
            UnrecoverableInputError: If the document cannot be read.
        """


class RemoteStrategy(ExtractionStrategy):
    """
    Remote Document AI extraction.

    Every failure is logged and turned into a skip. A runtime failure
    also puts the adapter into its cooldown so that following documents
    do not wait on a service that is down.
    """

    name = "remote"

    def __init__(self, adapter: Optional[RemoteExtractionAdapter] = None) -> None:
        self.adapter = adapter or RemoteExtractionAdapter()

    def is_available(self) -> bool:
        return self.adapter.is_configured() and self.adapter.is_healthy()

    async def attempt(self, document: SourceDocument, progress: Any = None) -> Optional[StrategyOutput]:
        if not self.adapter.is_configured():
            logger.debug("Remote extraction not configured, skipping")
            return None
        if not self.adapter.is_healthy():
            logger.info("Remote extraction cooling down after a failure, skipping")
            return None

        start = time.perf_counter()
        try:
            result = await self.adapter.extract(document, progress)
        except ConfigurationError as e:
            logger.info(f"Remote extraction skipped: {e}")
            return None
        except Exception as e:
            logger.warning(f"Remote extraction failed, falling back to local extraction: {e}")
            self.adapter.mark_unhealthy(str(e))
            return None

        attempt = ExtractionAttempt(
            method=ExtractionMethod.REMOTE_AI,
            raw_text=result.text,
            confidence=result.confidence,
            elapsed_ms=elapsed_ms(start)
        )
        return StrategyOutput(
            text=result.text,
            invoice_data=result.invoice_data,
            confidence=result.confidence,
            page_count=document.page_count,
            methods=[ExtractionMethod.REMOTE_AI],
            attempts=[attempt]
        )


class LocalStrategy(ExtractionStrategy):
    """
    Local extraction: native PDF text or OCR, then rule-based parsing.

    Always produces an output; an unreadable page simply yields an
    emptier record.
    """

    name = "local"

    def __init__(
        self,
        acquisition: TextAcquisition,
        normalizer: Optional[TextNormalizer] = None,
        field_extractor: Optional[FieldExtractor] = None
    ) -> None:
        self.acquisition = acquisition
        self.normalizer = normalizer or TextNormalizer()
        self.field_extractor = field_extractor or FieldExtractor()

    def is_available(self) -> bool:
        return True

    async def attempt(self, document: SourceDocument, progress: Any = None) -> Optional[StrategyOutput]:
        acquired = await self.acquisition.acquire(document, progress)

        if progress is not None:
            await progress.report('data_extraction', 80, 'Extracting invoice fields')

        text = self.normalizer.normalize(acquired.text)
        data = self.field_extractor.extract(text, confidence=acquired.confidence)

        return StrategyOutput(
            text=text,
            invoice_data=data,
            confidence=acquired.confidence,
            page_count=acquired.page_count,
            methods=[acquired.method],
            attempts=list(acquired.attempts)
        )


__all__ = ['StrategyOutput', 'ExtractionStrategy', 'RemoteStrategy', 'LocalStrategy']
