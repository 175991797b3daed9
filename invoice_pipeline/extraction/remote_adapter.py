"""
Remote Extraction Adapter Module.

Sends a document to a Google Document AI invoice processor and maps the
returned entities and tables onto an InvoiceData record.

Configuration comes from the environment (falling back to the remote.*
settings):
    GOOGLE_CLOUD_PROJECT_ID              required
    GOOGLE_DOCUMENT_AI_PROCESSOR_ID      required
    GOOGLE_APPLICATION_CREDENTIALS       required, service-account JSON
    GOOGLE_CLOUD_LOCATION                optional, default "us"
    GOOGLE_DOCUMENT_AI_PROCESSOR_VERSION optional, default "rc"

Configuration is validated before any network call; an unconfigured
adapter raises ConfigurationError from extract().

Author: ML Engineering Team
"""

import asyncio
import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import ConfigurationError, RemoteExtractionError
from invoice_pipeline.postprocessor.normalizers import AmountNormalizer
from invoice_pipeline.input_handler.document import SourceDocument
from .invoice_data import InvoiceData, LineItem
from .line_items import infer_category

# Initialize module logger
logger = get_logger(__name__)

REQUIRED_ENV = (
    'GOOGLE_CLOUD_PROJECT_ID',
    'GOOGLE_DOCUMENT_AI_PROCESSOR_ID',
    'GOOGLE_APPLICATION_CREDENTIALS'
)
REQUIRED_CREDENTIAL_KEYS = ('type', 'project_id', 'client_email')

# Remote entity type -> InvoiceData path. Unknown types are ignored.
ENTITY_FIELDS: Dict[str, str] = {
    'invoice_id': 'invoice_number',
    'invoice_number': 'invoice_number',
    'invoice_date': 'date',
    'due_date': 'due_date',
    'supplier_name': 'vendor.name',
    'vendor_name': 'vendor.name',
    'supplier_address': 'vendor.address',
    'vendor_address': 'vendor.address',
    'supplier_phone': 'vendor.phone',
    'vendor_phone': 'vendor.phone',
    'supplier_email': 'vendor.email',
    'vendor_email': 'vendor.email',
    'supplier_website': 'vendor.website',
    'supplier_tax_id': 'vendor.tax_id',
    'vendor_tax_id': 'vendor.tax_id',
    'customer_name': 'bill_to.name',
    'bill_to_name': 'bill_to.name',
    'customer_address': 'bill_to.address',
    'bill_to_address': 'bill_to.address',
    'total_amount': 'amounts.total',
    'invoice_total': 'amounts.total',
    'net_amount': 'amounts.subtotal',
    'subtotal_amount': 'amounts.subtotal',
    'total_tax_amount': 'amounts.tax',
    'tax_amount': 'amounts.tax',
    'currency': 'amounts.currency',
    'payment_terms': 'payment_details.terms',
    'purchase_order': 'order_info.order_number',
    'order_number': 'order_info.order_number',
}

TABLE_SUMMARY_WORDS = ('total', 'subtotal', 'tax', 'shipping', 'discount')
MAX_TABLE_ROWS = 20


@dataclass
class RemoteExtraction:
    """Mapped result of one remote call."""
    invoice_data: InvoiceData
    text: str
    confidence: float


def _mask(value: Optional[str]) -> Optional[str]:
    return f"{value[:8]}..." if value else None


def anchor_text(document: Any, layout: Any) -> str:
    """Text referenced by a layout's text anchor."""
    anchor = getattr(layout, 'text_anchor', None)
    if anchor is None:
        return ''
    text = document.text or ''
    parts = []
    for segment in anchor.text_segments:
        start = int(getattr(segment, 'start_index', 0) or 0)
        end = int(getattr(segment, 'end_index', 0) or 0)
        parts.append(text[start:end])
    return ''.join(parts).strip()


class RemoteExtractionAdapter:
    """
    Adapter around the Document AI invoice processor.

    Attributes:
        project_id, location, processor_id, processor_version: Processor coordinates
        credentials_path: Service-account JSON file
        cooldown_seconds: How long the adapter stays unhealthy after a failure

    Example:
        >>> adapter = RemoteExtractionAdapter()
        >>> if adapter.is_configured() and adapter.is_healthy():
        ...     result = await adapter.extract(document)
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> None:
        """
        Initialize the adapter.

        Args:
            client_factory: Callable returning a Document AI client; the
                real client is built from the credentials file when omitted.
            environ: Environment mapping, defaults to os.environ.
        """
        env = os.environ if environ is None else environ

        self.enabled = bool(get_config("remote.enabled", True))
        self.project_id = env.get('GOOGLE_CLOUD_PROJECT_ID') or get_config("remote.project_id")
        self.location = env.get('GOOGLE_CLOUD_LOCATION') or get_config("remote.location") or 'us'
        self.processor_id = env.get('GOOGLE_DOCUMENT_AI_PROCESSOR_ID') or get_config("remote.processor_id")
        self.processor_version = (
            env.get('GOOGLE_DOCUMENT_AI_PROCESSOR_VERSION')
            or get_config("remote.processor_version")
            or 'rc'
        )
        self.credentials_path = (
            env.get('GOOGLE_APPLICATION_CREDENTIALS') or get_config("remote.credentials_path")
        )
        self.timeout = get_config("remote.timeout", 120)
        self.cooldown_seconds = get_config("remote.cooldown_seconds", 60)

        self.amount_normalizer = AmountNormalizer()
        self._client_factory = client_factory or self._create_client
        self._client: Any = None
        self._unhealthy_until = 0.0
        self._error: Optional[str] = None

        try:
            self.validate_configuration()
        except ConfigurationError as e:
            self._error = e.message
            logger.info(f"Remote extraction unavailable: {e.message}")

    @property
    def processor_name(self) -> str:
        return (
            f"projects/{self.project_id}/locations/{self.location}/"
            f"processors/{self.processor_id}/processorVersions/{self.processor_version}"
        )

    def validate_configuration(self) -> None:
        """
        Check settings and the credentials file without touching the network.

        Raises:
            ConfigurationError: If disabled, a required value is missing,
                or the credentials file is unreadable or incomplete.
        """
        if not self.enabled:
            raise ConfigurationError("disabled by configuration")

        values = {
            'GOOGLE_CLOUD_PROJECT_ID': self.project_id,
            'GOOGLE_DOCUMENT_AI_PROCESSOR_ID': self.processor_id,
            'GOOGLE_APPLICATION_CREDENTIALS': self.credentials_path,
        }
        missing = [name for name in REQUIRED_ENV if not values[name]]
        if missing:
            raise ConfigurationError(f"missing {', '.join(missing)}", missing=missing)

        path = Path(self.credentials_path)
        if not path.is_file():
            raise ConfigurationError(f"credentials file not found: {path}")

        try:
            credentials = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"credentials file unreadable: {e}")

        if not isinstance(credentials, dict):
            raise ConfigurationError("credentials file is not a JSON object")

        absent = [key for key in REQUIRED_CREDENTIAL_KEYS if not credentials.get(key)]
        if absent:
            raise ConfigurationError(f"credentials file lacks {', '.join(absent)}", missing=absent)

        if credentials['project_id'] != self.project_id:
            logger.warning(
                f"Credentials project '{credentials['project_id']}' differs from "
                f"configured project '{self.project_id}'"
            )

    def is_configured(self) -> bool:
        return self._error is None

    def is_healthy(self) -> bool:
        """False while the adapter cools down after a failed call."""
        return time.monotonic() >= self._unhealthy_until

    def mark_unhealthy(self, reason: str) -> None:
        self._unhealthy_until = time.monotonic() + self.cooldown_seconds
        logger.warning(f"Remote extraction marked unhealthy for {self.cooldown_seconds}s: {reason}")

    def get_status(self) -> Dict[str, Any]:
        """Status summary with the processor id masked."""
        return {
            'isInitialized': self._client is not None,
            'configured': self.is_configured(),
            'healthy': self.is_healthy(),
            'error': self._error,
            'processorName': self.processor_name if self.is_configured() else None,
            'projectId': self.project_id,
            'processorId': _mask(self.processor_id),
        }

    def _create_client(self) -> Any:
        from google.cloud import documentai

        return documentai.DocumentProcessorServiceClient.from_service_account_file(
            self.credentials_path,
            client_options={"api_endpoint": f"{self.location}-documentai.googleapis.com"}
        )

    def _process(self, document: SourceDocument) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        response = self._client.process_document(
            request={
                "name": self.processor_name,
                "raw_document": {"content": document.data, "mime_type": document.mime_type},
            },
            timeout=self.timeout
        )
        return response.document

    async def extract(self, document: SourceDocument, progress: Any = None) -> RemoteExtraction:
        """
        Extract an invoice record remotely.

        Args:
            document: Validated source document.
            progress: Optional reporter with an async report(stage, percent, message).

        Returns:
            RemoteExtraction with the mapped record, full text and confidence.

        Raises:
            ConfigurationError: If the adapter is not configured.
            RemoteExtractionError: If the remote call fails.
        """
        if not self.is_configured():
            raise ConfigurationError(self._error or "not configured")

        await self._report(progress, 10, "Sending document to remote processor")
        logger.info(f"Remote extraction of {document.document_id} via {self.processor_name}")

        try:
            await self._report(progress, 30, "Waiting for remote processor")
            remote_document = await asyncio.to_thread(self._process, document)
        except Exception as e:
            raise RemoteExtractionError(
                f"Remote processing failed: {e}",
                {'document_id': document.document_id, 'reason': str(e)}
            ) from e

        await self._report(progress, 70, "Mapping remote entities")
        result = self.map_document(remote_document)

        await self._report(progress, 90, "Remote extraction complete")
        logger.info(
            f"Remote extraction found {result.invoice_data.populated_field_count()} fields, "
            f"{len(result.invoice_data.items)} items (confidence {result.confidence:.1f})"
        )
        return result

    @staticmethod
    async def _report(progress: Any, percent: int, message: str) -> None:
        if progress is not None:
            await progress.report('remote_extraction', percent, message)

    def map_document(self, document: Any) -> RemoteExtraction:
        """
        Map a Document AI document onto InvoiceData.

        The first non-empty entity of each type wins. Confidence is the
        mean entity confidence scaled to 0-100.
        """
        data = InvoiceData()
        confidences: List[float] = []

        for entity in document.entities:
            try:
                self._map_entity(entity, data, confidences)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(
                    f"Skipping remote entity '{getattr(entity, 'type_', '?')}': {e}"
                )

        data.items = self.table_items(document)

        confidence = (sum(confidences) / len(confidences) * 100) if confidences else 0.0
        data.confidence = confidence
        return RemoteExtraction(invoice_data=data, text=document.text or '', confidence=confidence)

    def _map_entity(self, entity: Any, data: InvoiceData, confidences: List[float]) -> None:
        """Write one entity into the record; its confidence counts once it parses."""
        confidence = float(getattr(entity, 'confidence', 0.0) or 0.0)

        path = ENTITY_FIELDS.get(entity.type_)
        text = (getattr(entity, 'mention_text', '') or '').strip()
        confidences.append(confidence)
        if path is None or not text or data.get_value(path) is not None:
            return

        if path.startswith('amounts.') and path != 'amounts.currency':
            value = self.amount_normalizer.to_float(text)
            if value is None:
                return
            data.set_value(path, value)
        else:
            data.set_value(path, text)

    def table_items(self, document: Any) -> List[LineItem]:
        """
        Line items from the first table of the first page.

        A row needs at least two cells; the first is the description and
        the last the amount. Rows naming a total, tax, shipping or
        discount are skipped.
        """
        if not document.pages:
            return []

        items: List[LineItem] = []
        for table in list(document.pages[0].tables)[:1]:
            for row in list(table.body_rows)[:MAX_TABLE_ROWS]:
                cells = [anchor_text(document, cell.layout) for cell in row.cells]
                if len(cells) < 2:
                    continue

                description = cells[0]
                amount = self.amount_normalizer.to_float(cells[-1])
                if len(description) <= 3 or amount is None or amount <= 0:
                    continue
                if any(word in description.lower() for word in TABLE_SUMMARY_WORDS):
                    continue

                items.append(LineItem(
                    description=description,
                    quantity=1.0,
                    unit_price=amount,
                    amount=amount,
                    category=infer_category(description),
                    line_number=len(items) + 1
                ))

        return items


__all__ = ['RemoteExtractionAdapter', 'RemoteExtraction', 'ENTITY_FIELDS', 'anchor_text']
