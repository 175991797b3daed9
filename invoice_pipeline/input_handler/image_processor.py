"""
Image Processor Module.

This module handles page images before OCR:
    - Image loading and validation
    - Orientation correction from EXIF
    - Mode conversion (RGBA, palette, CMYK)
    - Upscaling of small scans
    - Enhancement for OCR (sharpen, autocontrast, optional binarization)

Supports: JPEG, PNG, TIFF

Author: ML Engineering Team
"""

import io
from pathlib import Path
from typing import Union
from PIL import Image, ImageOps, ImageFilter

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import CorruptedFileError

# Initialize module logger
logger = get_logger(__name__)


class ImageProcessor:
    """
    Processor for page images.

    Attributes:
        enabled: Whether preprocessing runs at all
        grayscale: Convert to single-channel before OCR
        target_height: Images shorter than this are upscaled to it
        sharpen: Apply a sharpening filter
        autocontrast: Stretch the histogram
        binarize: Threshold to pure black and white
        threshold: Binarization threshold (0-255)

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.load(image_bytes)
        >>> prepared = processor.prepare(image)
    """

    def __init__(self) -> None:
        """Initialize the image processor with configuration."""
        self.enabled = get_config("ocr.preprocess.enabled", True)
        self.grayscale = get_config("ocr.preprocess.grayscale", True)
        self.target_height = get_config("ocr.preprocess.target_height", 2000)
        self.sharpen = get_config("ocr.preprocess.sharpen", True)
        self.autocontrast = get_config("ocr.preprocess.autocontrast", True)
        self.binarize = get_config("ocr.preprocess.binarize", False)
        self.threshold = get_config("ocr.preprocess.threshold", 128)

        logger.debug(
            f"ImageProcessor initialized (enabled={self.enabled}, "
            f"target_height={self.target_height}, binarize={self.binarize})"
        )

    def load(self, source: Union[bytes, str, Path], name: str = "image") -> Image.Image:
        """
        Decode an image from bytes or a file path.

        The image is fully loaded so the source can be released.

        Args:
            source: Image bytes or path.
            name: Label used in error messages.

        Returns:
            Decoded PIL Image.

        Raises:
            CorruptedFileError: If the image cannot be decoded.
        """
        try:
            if isinstance(source, (bytes, bytearray)):
                image = Image.open(io.BytesIO(source))
            else:
                image = Image.open(source)
            image.load()
        except Exception as e:
            logger.error(f"Failed to decode image {name}: {e}")
            raise CorruptedFileError(name, str(e)) from e

        logger.debug(f"Loaded image {name}: {image.width}x{image.height} ({image.mode})")
        return image

    def prepare(self, image: Image.Image) -> Image.Image:
        """
        Apply the preprocessing pipeline to an image.

        Processing steps:
            1. Fix orientation from EXIF
            2. Convert to RGB (or grayscale)
            3. Upscale if shorter than the target height
            4. Sharpen
            5. Autocontrast
            6. Binarize (optional)

        Args:
            image: Input PIL Image.

        Returns:
            Processed PIL Image.
        """
        if not self.enabled:
            return self._convert_to_rgb(image)

        image = self._fix_orientation(image)
        image = self._convert_to_rgb(image)

        if self.grayscale:
            image = image.convert('L')

        image = self._upscale_if_needed(image)

        if self.sharpen:
            image = image.filter(ImageFilter.SHARPEN)

        if self.autocontrast:
            image = ImageOps.autocontrast(image)

        if self.binarize:
            threshold = self.threshold
            image = image.convert('L').point(lambda x: 255 if x > threshold else 0, 'L')
            logger.debug("Applied binarization")

        return image

    def _fix_orientation(self, image: Image.Image) -> Image.Image:
        """
        Fix image orientation based on EXIF data.

        Many cameras store rotation information in EXIF metadata
        rather than actually rotating the image.
        """
        try:
            return ImageOps.exif_transpose(image)
        except Exception as e:
            logger.debug(f"Could not fix orientation: {e}")
            return image

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        """
        Convert image to RGB mode.

        Handles various input modes:
            - RGBA: Flatten onto a white background
            - L, P, CMYK, I;16: Convert to RGB
        """
        if image.mode == 'RGB':
            return image

        original_mode = image.mode

        if image.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel('A'))
            image = background
        else:
            image = image.convert('RGB')

        logger.debug(f"Converted image from {original_mode} to RGB")
        return image

    def _upscale_if_needed(self, image: Image.Image) -> Image.Image:
        """
        Upscale small images so glyphs are large enough for OCR.

        Maintains aspect ratio.
        """
        width, height = image.size

        if not self.target_height or height >= self.target_height or height == 0:
            return image

        ratio = self.target_height / height
        new_size = (int(width * ratio), self.target_height)
        image = image.resize(new_size, Image.LANCZOS)

        logger.debug(f"Upscaled image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return image


__all__ = ['ImageProcessor']
