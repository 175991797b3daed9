"""
OCR Session Module.

This module provides the OcrSession class: the one managed OCR engine
of the process. The engine is created lazily on first use, reused for
every page of every document, and recreated once when it reports a
transient fault.

Concurrency model:
    - recognize() calls are serialized through an asyncio.Lock, whose
      waiters are woken in FIFO order, so the lock is the request queue.
    - At most one engine initialization is in flight; concurrent
      get_engine() callers await the same initialization task.
    - Engine startup and recognition run in worker threads so the event
      loop keeps serving other documents' non-OCR work.

Usage:
    from invoice_pipeline.ocr_engine import OcrSession

    session = OcrSession.get_session()
    result = await session.recognize(image, psm=6)
    print(result.text, result.confidence)

Author: ML Engineering Team
"""

import asyncio
import atexit
from typing import Any, Callable, Dict, Optional
from PIL import Image

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    OCRError,
    OCREngineNotAvailableError,
    OCRProcessingError,
    TransientEngineError
)
from .ocr_result import OCRResult
from .tesseract_backend import create_tesseract_backend

# Initialize module logger
logger = get_logger(__name__)


class OcrSession:
    """
    Owner of the single OCR engine instance.

    The engine factory is injectable so tests (or another backend) can
    supply any object exposing recognize(image, psm) -> OCRResult and
    close().

    Attributes:
        engine_creations: Number of engines created so far

    Example:
        >>> session = OcrSession(engine_factory=create_tesseract_backend)
        >>> result = await session.recognize(image, psm=3, mode_name="FULLY_AUTO")
        >>> session.close()
    """

    _instance: Optional['OcrSession'] = None

    def __init__(self, engine_factory: Optional[Callable[[], Any]] = None) -> None:
        self._engine_factory = engine_factory or create_tesseract_backend
        self._engine: Optional[Any] = None
        self._init_task: Optional[asyncio.Future] = None
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending = 0
        self.engine_creations = 0

    @classmethod
    def get_session(cls) -> 'OcrSession':
        """
        Get the process-wide session, creating it on first call.

        The session registers its close() with atexit so the engine is
        released at interpreter shutdown.
        """
        if cls._instance is None:
            cls._instance = cls()
            atexit.register(cls._instance.close)
            logger.debug("Process OCR session created")
        return cls._instance

    @classmethod
    def reset_session(cls) -> None:
        """Close and forget the process-wide session."""
        if cls._instance is not None:
            cls._instance.close()
            atexit.unregister(cls._instance.close)
            cls._instance = None

    def _bind_loop(self) -> None:
        """Create the asyncio primitives for the running event loop."""
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._lock = asyncio.Lock()
            self._init_task = None

    async def get_engine(self) -> Any:
        """
        Return the live engine, creating it if necessary.

        Concurrent callers share one in-flight initialization. A failed
        initialization is not cached: the next call starts a new one.

        Raises:
            OCREngineNotAvailableError: If the engine cannot be started.
        """
        self._bind_loop()

        if self._engine is not None:
            return self._engine

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._create_engine())

        task = self._init_task
        try:
            # A cancelled waiter must not cancel the shared initialization
            return await asyncio.shield(task)
        finally:
            if task.done() and self._init_task is task:
                self._init_task = None

    async def _create_engine(self) -> Any:
        """Start a new engine in a worker thread."""
        logger.info("Starting OCR engine")
        try:
            engine = await asyncio.to_thread(self._engine_factory)
        except OCRError:
            raise
        except Exception as e:
            name = getattr(self._engine_factory, '__name__', 'engine')
            raise OCREngineNotAvailableError(f"{name}: {e}") from e
        self.engine_creations += 1
        self._engine = engine
        logger.info(f"OCR engine ready (instance #{self.engine_creations})")
        return engine

    async def _discard_engine(self, engine: Any) -> None:
        """Drop an engine after a fault and release it."""
        if self._engine is engine:
            self._engine = None
        try:
            await asyncio.to_thread(engine.close)
        except Exception as e:
            logger.warning(f"Failed to release faulty OCR engine: {e}")

    async def recognize(
        self,
        image: Image.Image,
        psm: int,
        mode_name: Optional[str] = None
    ) -> OCRResult:
        """
        Run recognition on one image with one segmentation mode.

        Requests are served one at a time in arrival order. On a
        TransientEngineError the engine is recreated and the call is
        retried exactly once.

        Args:
            image: Page image.
            psm: Page segmentation mode.
            mode_name: Optional name recorded on the result.

        Returns:
            OCRResult for this image and mode.

        Raises:
            OCRError: If recognition fails (after the single retry for
                transient faults) or the engine cannot be started.
        """
        self._bind_loop()
        self._pending += 1
        try:
            async with self._lock:
                result = await self._recognize_with_retry(image, psm)
        finally:
            self._pending -= 1

        result.mode_name = mode_name
        return result

    async def _recognize_with_retry(self, image: Image.Image, psm: int) -> OCRResult:
        engine = await self.get_engine()
        try:
            return await self._run(engine, image, psm)
        except TransientEngineError as e:
            logger.warning(
                f"Transient OCR engine failure (psm={psm}): "
                f"{e.details.get('reason')}; recreating engine"
            )
            await self._discard_engine(engine)

        engine = await self.get_engine()
        try:
            return await self._run(engine, image, psm)
        except TransientEngineError as e:
            await self._discard_engine(engine)
            raise OCRProcessingError(
                f"psm {psm}",
                f"engine failed again after recreation: {e.details.get('reason')}"
            ) from e

    async def _run(self, engine: Any, image: Image.Image, psm: int) -> OCRResult:
        try:
            return await asyncio.to_thread(engine.recognize, image, psm)
        except OCRError:
            raise
        except Exception as e:
            raise OCRProcessingError(f"psm {psm}", str(e)) from e

    def get_status(self) -> Dict[str, Any]:
        """Get a snapshot of the session state."""
        return {
            'engine_ready': self._engine is not None,
            'initializing': self._init_task is not None and not self._init_task.done(),
            'engine_creations': self.engine_creations,
            'pending_requests': self._pending
        }

    def close(self) -> None:
        """
        Release the engine.

        Safe to call more than once; a later recognize() starts a new
        engine.
        """
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            engine.close()
            logger.info("OCR engine released")
        except Exception as e:
            logger.warning(f"Error while releasing OCR engine: {e}")


__all__ = ['OcrSession']
