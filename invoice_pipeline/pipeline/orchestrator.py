"""
Extraction Orchestrator Module.

Top-level controller of the pipeline:

    SourceDocument
        -> RemoteStrategy (when configured and healthy)
        -> LocalStrategy  (native PDF text or OCR sweep, then field parsing)
        -> PostProcessor
        -> ProcessingMetrics

Only UnrecoverableInputError escapes extract(); weak or empty
extractions are returned as records with null fields and low confidence.

Author: ML Engineering Team
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import elapsed_ms
from invoice_pipeline.ocr_engine.session import OcrSession
from invoice_pipeline.input_handler.document import SourceDocument
from invoice_pipeline.input_handler.acquisition import TextAcquisition
from invoice_pipeline.postprocessor.processor import PostProcessor
from invoice_pipeline.extraction.invoice_data import (
    InvoiceData,
    ExtractionMethod,
    ExtractionAttempt
)
from invoice_pipeline.extraction.remote_adapter import RemoteExtractionAdapter
from .metrics import ProcessingMetrics, compute_metrics
from .progress import ProgressReporter, ProgressSink
from .strategies import ExtractionStrategy, RemoteStrategy, LocalStrategy, StrategyOutput

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class ExtractionOutput:
    """
    Result of one pipeline run.

    Attributes:
        document_id: Id of the processed document
        extracted_text: Text the record was read from
        invoice_data: Post-processed record
        metrics: Processing metrics
        extraction_methods: Tags of the attempts actually used, in order
        attempts: Every attempt made, used or not
        method_comparison: Filled in by compare() only
    """
    document_id: str
    extracted_text: str
    invoice_data: InvoiceData
    metrics: ProcessingMetrics
    extraction_methods: List[ExtractionMethod] = field(default_factory=list)
    attempts: List[ExtractionAttempt] = field(default_factory=list)
    method_comparison: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase output contract."""
        result = {
            'extractedText': self.extracted_text,
            'invoiceData': self.invoice_data.to_dict(),
            'metrics': self.metrics.to_dict(),
            'extractionMethods': [method.value for method in self.extraction_methods]
        }
        if self.method_comparison is not None:
            result['methodComparison'] = self.method_comparison
        return result


class ExtractionOrchestrator:
    """
    Chooses an extraction strategy per document and assembles the output.

    Attributes:
        strategies: Ordered strategies; the first non-skipped output wins
        post_processor: Applied to the record of whichever strategy won

    Example:
        >>> orchestrator = ExtractionOrchestrator()
        >>> document = SourceDocument.from_path("invoice.pdf")
        >>> output = await orchestrator.extract(document, progress_sink=print)
        >>> output.to_dict()["invoiceData"]["invoiceNumber"]
    """

    def __init__(
        self,
        session: Optional[OcrSession] = None,
        remote_adapter: Optional[RemoteExtractionAdapter] = None,
        strategies: Optional[List[ExtractionStrategy]] = None,
        post_processor: Optional[PostProcessor] = None,
        use_remote: bool = True
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            session: OCR session; the process-wide session when omitted.
            remote_adapter: Remote adapter; built from the environment when omitted.
            strategies: Replaces the default remote-then-local list.
            post_processor: Replaces the default PostProcessor.
            use_remote: Leave the remote strategy out of the default list.
        """
        if strategies is None:
            strategies = []
            if use_remote:
                strategies.append(RemoteStrategy(remote_adapter))
            acquisition = TextAcquisition(session or OcrSession.get_session())
            strategies.append(LocalStrategy(acquisition))

        self.strategies = strategies
        self.post_processor = post_processor or PostProcessor()

        logger.info(
            f"ExtractionOrchestrator initialized with strategies: "
            f"{[strategy.name for strategy in self.strategies]}"
        )

    def _find_strategy(self, kind: type) -> Optional[ExtractionStrategy]:
        for strategy in self.strategies:
            if isinstance(strategy, kind):
                return strategy
        return None

    async def extract(
        self,
        document: SourceDocument,
        progress_sink: Optional[ProgressSink] = None
    ) -> ExtractionOutput:
        """
        Extract an invoice record from a document.

        Args:
            document: Validated source document.
            progress_sink: Callable (sync or async) receiving progress events.

        Returns:
            ExtractionOutput; fields that were not found are None.

        Raises:
            UnrecoverableInputError: If the document cannot be read at all.
        """
        start = time.perf_counter()
        progress = ProgressReporter(progress_sink, document.document_id)
        await progress.report('started', 0, 'Extraction started')

        logger.info(
            f"Extracting {document.document_id} "
            f"({document.mime_type}, {document.page_count} page(s))"
        )

        output: Optional[StrategyOutput] = None
        for strategy in self.strategies:
            output = await strategy.attempt(document, progress)
            if output is not None:
                logger.info(f"Strategy '{strategy.name}' produced the record")
                break
            logger.debug(f"Strategy '{strategy.name}' skipped")

        if output is None:
            logger.warning(f"No strategy produced a record for {document.document_id}")
            output = StrategyOutput(text='', invoice_data=InvoiceData(), confidence=0.0, page_count=0)

        result = self._finish(document, output, start)
        await progress.report('completed', 100, 'Extraction complete')
        return result

    def _finish(self, document: SourceDocument, output: StrategyOutput, start: float) -> ExtractionOutput:
        data = self.post_processor.process(output.invoice_data, output.text)
        metrics = compute_metrics(data, output.confidence, output.page_count, elapsed_ms(start))

        logger.info(
            f"Extraction of {document.document_id} complete: "
            f"methods={[method.value for method in output.methods]}, "
            f"fields={data.populated_field_count()}, items={len(data.items)}, "
            f"score={metrics.data_extraction_score:.0f}, consensus={metrics.consensus_score:.1f}"
        )

        return ExtractionOutput(
            document_id=document.document_id,
            extracted_text=output.text,
            invoice_data=data,
            metrics=metrics,
            extraction_methods=list(output.methods),
            attempts=list(output.attempts)
        )

    async def extract_file(
        self,
        filepath: Union[str, Path],
        mime_type: Optional[str] = None,
        progress_sink: Optional[ProgressSink] = None
    ) -> ExtractionOutput:
        """Load a file and extract it."""
        document = await asyncio.to_thread(SourceDocument.from_path, filepath, mime_type)
        return await self.extract(document, progress_sink)

    async def compare(
        self,
        document: SourceDocument,
        progress_sink: Optional[ProgressSink] = None
    ) -> ExtractionOutput:
        """
        Run the remote and the local strategy on the same document.

        The remote output is returned when it succeeded, the local one
        otherwise. When both succeeded, method_comparison holds the
        confidence, field count and line-item count of each method with a
        winner per criterion (ties go to the local method).

        Raises:
            UnrecoverableInputError: If the document cannot be read at all.
        """
        remote = self._find_strategy(RemoteStrategy)
        local = self._find_strategy(LocalStrategy)
        if local is None:
            raise ValueError("compare() needs a local strategy")

        if remote is None or not remote.is_available():
            logger.info("Remote extraction not available; returning the local extraction only")
            return await self.extract(document, progress_sink)

        start = time.perf_counter()
        progress = ProgressReporter(progress_sink, document.document_id)
        await progress.report('started', 0, 'Comparison started')

        remote_output, local_output = await asyncio.gather(
            remote.attempt(document, progress),
            local.attempt(document, progress)
        )

        local_result = self._finish(document, local_output, start)
        if remote_output is None:
            logger.warning("Remote extraction failed during comparison; using local result")
            await progress.report('completed', 100, 'Comparison complete')
            return local_result

        remote_result = self._finish(document, remote_output, start)
        remote_result.method_comparison = self.compare_results(remote_result, local_result)

        await progress.report('completed', 100, 'Comparison complete')
        return remote_result

    @staticmethod
    def compare_results(remote: ExtractionOutput, local: ExtractionOutput) -> Dict[str, Any]:
        """Per-criterion comparison of a remote and a local output."""
        remote_method = ExtractionMethod.REMOTE_AI.value
        local_method = local.extraction_methods[0].value if local.extraction_methods else 'Local'

        def criterion(remote_value: float, local_value: float) -> Dict[str, Any]:
            return {
                'remote': remote_value,
                'local': local_value,
                'winner': remote_method if remote_value > local_value else local_method
            }

        return {
            'confidence': criterion(
                round(remote.metrics.average_confidence, 2),
                round(local.metrics.average_confidence, 2)
            ),
            'fieldsExtracted': criterion(
                remote.invoice_data.populated_field_count(),
                local.invoice_data.populated_field_count()
            ),
            'lineItems': criterion(len(remote.invoice_data.items), len(local.invoice_data.items))
        }


__all__ = ['ExtractionOrchestrator', 'ExtractionOutput']
