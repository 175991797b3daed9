"""
OCR Result Data Classes.

This module defines data structures for OCR output, providing
a standardized format for one recognize() call on one page image.

Classes:
    OCRWord: Individual word with bounding box
    OCRLine: Line of text containing multiple words
    OCRResult: Complete OCR output for an image and segmentation mode

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple


@dataclass
class OCRWord:
    """
    Represents a single word/token extracted by OCR.

    Attributes:
        text: The recognized text content
        bbox: Bounding box as (x1, y1, x2, y2) in pixels
        confidence: OCR confidence score (0-100)
        line_key: (block, paragraph, line) position reported by the engine

    Example:
        >>> word = OCRWord(
        ...     text="Invoice",
        ...     bbox=(100, 50, 200, 80),
        ...     confidence=95.5
        ... )
    """
    text: str
    bbox: Tuple[int, int, int, int]  # (x1, y1, x2, y2)
    confidence: float = 0.0
    line_key: Tuple[int, int, int] = (0, 0, 0)

    @property
    def x1(self) -> int:
        """Left coordinate."""
        return self.bbox[0]

    @property
    def y1(self) -> int:
        """Top coordinate."""
        return self.bbox[1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'text': self.text,
            'bbox': list(self.bbox),
            'confidence': self.confidence
        }

    def __repr__(self) -> str:
        return f"OCRWord('{self.text}', bbox={self.bbox}, conf={self.confidence:.1f})"


@dataclass
class OCRLine:
    """
    Represents a line of text containing multiple words.

    Example:
        >>> line = OCRLine(words=[word1, word2, word3])
        >>> print(line.text)
        "Invoice Number: 12345"
    """
    words: List[OCRWord] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Get the full text of the line."""
        return ' '.join(word.text for word in self.words)

    @property
    def average_confidence(self) -> float:
        """Calculate average confidence of words in line."""
        if not self.words:
            return 0.0
        return sum(w.confidence for w in self.words) / len(self.words)

    @property
    def bbox(self) -> Optional[Tuple[int, int, int, int]]:
        """Bounding box enclosing every word of the line."""
        if not self.words:
            return None
        return (
            min(w.bbox[0] for w in self.words),
            min(w.bbox[1] for w in self.words),
            max(w.bbox[2] for w in self.words),
            max(w.bbox[3] for w in self.words)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'text': self.text,
            'bbox': list(self.bbox) if self.bbox else None,
            'average_confidence': self.average_confidence
        }


@dataclass
class OCRResult:
    """
    Complete OCR result for a single page image in one segmentation mode.

    Attributes:
        words: List of all words with bounding boxes
        lines: List of text lines (grouped words)
        psm: Page segmentation mode the engine ran with
        mode_name: Human-readable name of the segmentation mode
        image_width: Width of the source image in pixels
        image_height: Height of the source image in pixels
        processing_time: Time taken for OCR in seconds

    Example:
        >>> result = await session.recognize(image, psm=6)
        >>> print(f"{result.confidence:.1f}% {result.text}")
    """
    words: List[OCRWord] = field(default_factory=list)
    lines: List[OCRLine] = field(default_factory=list)
    psm: Optional[int] = None
    mode_name: Optional[str] = None
    image_width: int = 0
    image_height: int = 0
    processing_time: float = 0.0

    @property
    def text(self) -> str:
        """
        Get the full text content.

        Returns:
            All text joined with newlines between lines.
        """
        if self.lines:
            return '\n'.join(line.text for line in self.lines)
        return ' '.join(word.text for word in self.words)

    @property
    def confidence(self) -> float:
        """Average word confidence (0-100); 0 when nothing was recognized."""
        if not self.words:
            return 0.0
        return sum(w.confidence for w in self.words) / len(self.words)

    @property
    def word_count(self) -> int:
        """Get total number of words."""
        return len(self.words)

    def is_empty(self) -> bool:
        """Check if OCR result is empty."""
        return not self.text.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for serialization."""
        return {
            'text': self.text,
            'confidence': self.confidence,
            'psm': self.psm,
            'mode_name': self.mode_name,
            'image_width': self.image_width,
            'image_height': self.image_height,
            'processing_time': self.processing_time,
            'words': [w.to_dict() for w in self.words],
            'lines': [l.to_dict() for l in self.lines]
        }

    def __repr__(self) -> str:
        return (
            f"OCRResult(psm={self.psm}, words={self.word_count}, "
            f"confidence={self.confidence:.1f}%)"
        )
