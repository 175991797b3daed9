"""
Source Document Module.

This module defines SourceDocument, the immutable identity of the file
under processing: its bytes, its resolved MIME type and its page count.

The MIME type is resolved from the file's leading bytes first, then from
the declared type, and only then from the file extension.

Author: ML Engineering Team
"""

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import fitz  # PyMuPDF

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import get_file_extension, format_file_size
from invoice_pipeline.utils.exceptions import (
    DocumentNotFoundError,
    UnsupportedFileTypeError,
    CorruptedFileError
)

# Initialize module logger
logger = get_logger(__name__)

PDF_MIME = 'application/pdf'

SUPPORTED_MIME_TYPES = [PDF_MIME, 'image/jpeg', 'image/png', 'image/tiff']

EXTENSION_MIME_TYPES = {
    '.pdf': PDF_MIME,
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff'
}

MIME_ALIASES = {
    'image/jpg': 'image/jpeg',
    'image/pjpeg': 'image/jpeg',
    'image/tif': 'image/tiff',
    'application/x-pdf': PDF_MIME
}


def sniff_mime_type(data: bytes) -> Optional[str]:
    """
    Detect the MIME type from magic bytes.

    Example:
        >>> sniff_mime_type(b"%PDF-1.7 ...")
        'application/pdf'
    """
    if data.startswith(b'%PDF'):
        return PDF_MIME
    if data.startswith(b'\xff\xd8\xff'):
        return 'image/jpeg'
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return 'image/png'
    if data.startswith(b'II*\x00') or data.startswith(b'MM\x00*'):
        return 'image/tiff'
    return None


def _normalize_mime(mime_type: Optional[str]) -> Optional[str]:
    if not mime_type:
        return None
    mime_type = mime_type.split(';')[0].strip().lower()
    return MIME_ALIASES.get(mime_type, mime_type)


def resolve_mime_type(
    data: bytes,
    declared: Optional[str] = None,
    filename: Optional[str] = None
) -> str:
    """
    Resolve the MIME type of a document.

    Args:
        data: Document bytes.
        declared: MIME type declared by the caller, if any.
        filename: Original filename, used only as a last hint.

    Returns:
        A supported MIME type.

    Raises:
        UnsupportedFileTypeError: If no supported type can be resolved.
    """
    supported = get_config("input.supported_mime_types", SUPPORTED_MIME_TYPES)
    sniffed = sniff_mime_type(data)
    declared = _normalize_mime(declared)

    if sniffed and declared and sniffed != declared:
        logger.warning(
            f"Declared MIME type {declared} does not match content ({sniffed}); "
            f"using {sniffed}"
        )

    candidate = sniffed or declared
    if candidate is None and filename:
        candidate = EXTENSION_MIME_TYPES.get(get_file_extension(filename))

    if candidate not in supported:
        raise UnsupportedFileTypeError(candidate or 'unknown', supported)

    return candidate


def count_pdf_pages(data: bytes, source: str = 'document') -> int:
    """
    Count the pages of a PDF held in memory.

    Raises:
        CorruptedFileError: If the bytes cannot be opened as a PDF or
            the PDF has no pages.
    """
    try:
        with fitz.open(stream=data, filetype='pdf') as doc:
            page_count = doc.page_count
    except Exception as e:
        raise CorruptedFileError(source, str(e)) from e

    if page_count < 1:
        raise CorruptedFileError(source, "PDF has no pages")
    return page_count


@dataclass(frozen=True)
class SourceDocument:
    """
    Immutable document under processing.

    Attributes:
        data: Raw document bytes
        mime_type: Resolved MIME type
        page_count: Number of pages (1 for images)
        document_id: Identifier used in progress events and temp paths
        filename: Original filename, if known

    Example:
        >>> document = SourceDocument.from_path("invoice.pdf")
        >>> document.is_pdf, document.page_count
        (True, 2)
    """
    data: bytes
    mime_type: str
    page_count: int
    document_id: str
    filename: Optional[str] = None

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
        document_id: Optional[str] = None
    ) -> 'SourceDocument':
        """
        Build a document from bytes already in memory.

        Args:
            data: Document bytes.
            mime_type: Declared MIME type (optional).
            filename: Original filename (optional, used as MIME hint).
            document_id: Caller-chosen id; a random one is generated otherwise.

        Raises:
            UnrecoverableInputError: If the bytes are empty, of an
                unsupported type or an unreadable PDF.
        """
        source = filename or 'document'
        if not data:
            raise CorruptedFileError(source, "document is empty")

        resolved = resolve_mime_type(data, mime_type, filename)
        page_count = count_pdf_pages(data, source) if resolved == PDF_MIME else 1

        document = cls(
            data=bytes(data),
            mime_type=resolved,
            page_count=page_count,
            document_id=document_id or uuid.uuid4().hex[:12],
            filename=filename
        )
        logger.info(
            f"Document {document.document_id}: {source} ({resolved}, "
            f"{page_count} page(s), {format_file_size(document.size)})"
        )
        return document

    @classmethod
    def from_path(
        cls,
        filepath: Union[str, Path],
        mime_type: Optional[str] = None,
        document_id: Optional[str] = None
    ) -> 'SourceDocument':
        """
        Read a document from disk.

        Raises:
            DocumentNotFoundError: If the path is not an existing file.
            CorruptedFileError: If the file cannot be read.
        """
        path = Path(filepath)
        if not path.is_file():
            raise DocumentNotFoundError(str(path))

        try:
            data = path.read_bytes()
        except OSError as e:
            raise CorruptedFileError(str(path), str(e)) from e

        return cls.from_bytes(data, mime_type, filename=path.name, document_id=document_id)

    def __repr__(self) -> str:
        return (
            f"SourceDocument(id='{self.document_id}', type='{self.mime_type}', "
            f"pages={self.page_count}, size={self.size})"
        )


__all__ = [
    'SourceDocument',
    'SUPPORTED_MIME_TYPES',
    'sniff_mime_type',
    'resolve_mime_type',
    'count_pdf_pages'
]
