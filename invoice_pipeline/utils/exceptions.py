"""
Custom Exceptions Module.

This module defines the exceptions used throughout the extraction
pipeline. Only the UnrecoverableInputError family ever reaches the caller
of the orchestrator; everything else is absorbed and logged where it occurs.

Exception Hierarchy:
    InvoiceExtractionError (base)
    ├── InputError
    │   └── UnrecoverableInputError
    │       ├── DocumentNotFoundError
    │       ├── UnsupportedFileTypeError
    │       └── CorruptedFileError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   ├── OCRProcessingError
    │   └── TransientEngineError
    └── RemoteExtractionError
        └── ConfigurationError
"""


class InvoiceExtractionError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceExtractionError):
    """Base exception for input handling errors."""
    pass


class UnrecoverableInputError(InputError):
    """
    Raised when the source bytes cannot be read or parsed at all.

    This is the only error that aborts a pipeline run.
    """
    pass


class DocumentNotFoundError(UnrecoverableInputError):
    """Raised when the input file cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


class UnsupportedFileTypeError(UnrecoverableInputError):
    """
    Raised when the declared or sniffed MIME type is not supported.

    Example:
        >>> raise UnsupportedFileTypeError("text/plain", ["application/pdf"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = f"Unsupported file type: '{file_type}'"
        details = {"file_type": file_type, "supported_types": supported_types}
        super().__init__(message, details)


class CorruptedFileError(UnrecoverableInputError):
    """Raised when a file appears to be corrupted or unreadable."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Corrupted or unreadable file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(InvoiceExtractionError):
    """Base exception for OCR-related errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the OCR engine cannot be started."""

    def __init__(self, engine_name: str):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when a single recognition call fails."""

    def __init__(self, source: str, reason: str = None):
        message = f"OCR processing failed for: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class TransientEngineError(OCRError):
    """
    Raised when the engine reports an internal fault that a fresh
    engine instance is expected to clear (corrupted state, rejected
    parameter set, process timeout).
    """

    def __init__(self, reason: str = None):
        message = "Transient OCR engine failure"
        details = {"reason": reason}
        super().__init__(message, details)


# =============================================================================
# REMOTE EXTRACTION ERRORS
# =============================================================================

class RemoteExtractionError(InvoiceExtractionError):
    """Raised when the remote extraction service call fails."""
    pass


class ConfigurationError(RemoteExtractionError):
    """
    Raised when the remote service is unusable because of missing or
    invalid setup. Callers treat it as "not configured".
    """

    def __init__(self, reason: str, missing: list = None):
        message = f"Remote extraction not configured: {reason}"
        details = {"missing": missing} if missing else {}
        super().__init__(message, details)


__all__ = [
    'InvoiceExtractionError',
    'InputError',
    'UnrecoverableInputError',
    'DocumentNotFoundError',
    'UnsupportedFileTypeError',
    'CorruptedFileError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'TransientEngineError',
    'RemoteExtractionError',
    'ConfigurationError',
]
