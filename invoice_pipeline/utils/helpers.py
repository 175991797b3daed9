"""
Helper Utilities Module.

This module provides small utility functions used throughout the
pipeline. Functions here should be generic and reusable across
different modules.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - safe_filename: Sanitize strings for use in paths
    - format_file_size: Human-readable byte counts
    - elapsed_ms: Milliseconds elapsed since a perf_counter reading
"""

import re
import time
from pathlib import Path
from typing import Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/reports")
        PosixPath('outputs/reports')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the file extension from a filepath.

    Returns the extension in lowercase, including the dot.
    Returns empty string if no extension exists.

    Example:
        >>> get_file_extension("document.PDF")
        ".pdf"
        >>> get_file_extension("noextension")
        ""
    """
    return Path(filepath).suffix.lower()


def safe_filename(filename: str, replacement: str = "_") -> str:
    """
    Sanitize a string so it can be used as a file or directory name.

    Args:
        filename: Original name.
        replacement: Character to replace invalid characters with.

    Returns:
        Sanitized name safe for the filesystem.

    Example:
        >>> safe_filename("invoice:123/test.pdf")
        "invoice_123_test.pdf"
    """
    # Characters not allowed in Windows filenames
    invalid_chars = r'[<>:"/\\|?*\x00-\x1f]'
    sanitized = re.sub(invalid_chars, replacement, filename)

    sanitized = sanitized.strip('. ')

    if not sanitized:
        sanitized = "unnamed"

    return sanitized


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Example:
        >>> format_file_size(1536)
        "1.5 KB"
    """
    size = float(size_bytes)
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


def elapsed_ms(start: float) -> int:
    """Milliseconds elapsed since a time.perf_counter() reading."""
    return int((time.perf_counter() - start) * 1000)
