"""
Utility Module for the Invoice Extraction Pipeline.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, setup_logger_from_config, get_logger
from .helpers import (
    ensure_directory,
    get_file_extension,
    safe_filename,
    format_file_size,
    elapsed_ms
)

__all__ = [
    'setup_logger',
    'setup_logger_from_config',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'safe_filename',
    'format_file_size',
    'elapsed_ms'
]
