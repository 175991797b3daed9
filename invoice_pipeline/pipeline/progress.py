"""
Progress Reporting Module.

Wraps the caller's progress sink. The sink receives one dictionary per
event, {documentId, stage, progress, message}, and may be a plain
callable or a coroutine function. Percentages never decrease.

Stages, in order:
    started 0, remote_extraction 10-90, pdf_text_extraction 10,
    pdf_conversion 20, ocr_processing 30-70, data_extraction 80,
    completed 100

Author: ML Engineering Team
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from invoice_pipeline.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

ProgressSink = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class ProgressEvent:
    document_id: str
    stage: str
    progress: int
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'documentId': self.document_id,
            'stage': self.stage,
            'progress': self.progress,
            'message': self.message
        }


class ProgressReporter:
    """
    Emits progress events for one document.

    A sink that raises is logged and ignored; progress reporting never
    fails an extraction.

    Example:
        >>> reporter = ProgressReporter(print, document_id="a1b2c3")
        >>> await reporter.report("started", 0, "Extraction started")
    """

    def __init__(self, sink: Optional[ProgressSink] = None, document_id: str = "") -> None:
        self.sink = sink
        self.document_id = document_id
        self.events: List[ProgressEvent] = []
        self._last_percent = 0

    async def report(self, stage: str, percent: int, message: str = "") -> ProgressEvent:
        """
        Emit one event.

        Args:
            stage: Stage name.
            percent: 0-100; raised to the last emitted value if lower.
            message: Human-readable detail.

        Returns:
            The emitted event.
        """
        percent = max(self._last_percent, min(100, max(0, int(percent))))
        self._last_percent = percent

        event = ProgressEvent(self.document_id, stage, percent, message)
        self.events.append(event)
        logger.debug(f"[{self.document_id}] {stage} {percent}% {message}")

        if self.sink is not None:
            try:
                result = self.sink(event.to_dict())
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Progress sink failed at stage '{stage}': {e}")

        return event


__all__ = ['ProgressReporter', 'ProgressEvent', 'ProgressSink']
