# ============================================================================
# src/order_proof/core/service.py
# ============================================================================
"""
Order Proof Service

Composition root: builds the worker pool, preprocessor, extractor, model
adapter, orchestrator, verifiers and result cache from one EngineConfig and
exposes the four entry points. None of the entry points raise.

Usage:
    service = OrderProofService()
    service.install_shutdown_hooks()

    result = await service.extract_order_details(image_bytes)
    proof = await service.verify_purchase_proof(data_url, "408-1234567-7654321", 1499)

    await service.aclose()
"""

import atexit
import logging
import os
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Optional

from ..config.engine_config import EngineConfig
from ..extractors.field_extractor import DeterministicFieldExtractor
from ..ocr.engine import tesseract_engine_factory
from ..ocr.pass_runner import RecognitionPassRunner
from ..ocr.worker_pool import EngineFactory, RecognitionWorkerPool
from ..preprocessors.image_preprocessor import ImagePreprocessor
from ..utils.exceptions import ConfigurationError, InvalidImageError
from ..utils.image_utils import ImageInput, decode_image_input
from ..utils.logging import log_performance, set_ocr_debug, setup_logging
from ..verification.purchase import PurchaseProofVerifier
from ..verification.rating import RatingProofVerifier
from ..verification.return_window import ReturnWindowProofVerifier
from ..vlm.adapter import ModelAdapter
from ..vlm.base import BaseVisionClient
from ..vlm.ollama_client import OllamaVisionClient
from .orchestrator import ExtractionOrchestrator
from .result_cache import ResultCache
from .types import (
    ExtractionResult,
    ProofVerificationResult,
    RatingVerificationResult,
    ReturnWindowVerificationResult,
)

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class OrderProofService:
    """
    One long-lived instance per process; pass it to whatever needs it.

    Args:
        config: settings bundle (defaults to the environment)
        engine_factory: creates recognition engines (defaults to Tesseract)
        vision_client: model backend (defaults to Ollama when AI is enabled)
        cache: result cache (defaults to one built from the cache settings)
        configure_logging: apply the logging settings to the root logger
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        engine_factory: Optional[EngineFactory] = None,
        vision_client: Optional[BaseVisionClient] = None,
        cache: Optional[ResultCache] = None,
        configure_logging: bool = False,
    ):
        self.config = config or EngineConfig()
        ocr = self.config.ocr
        model = self.config.model
        thresholds = self.config.thresholds

        if thresholds.TYPICAL_AMOUNT_MIN > thresholds.TYPICAL_AMOUNT_MAX:
            raise ConfigurationError(
                f"TYPICAL_AMOUNT_MIN ({thresholds.TYPICAL_AMOUNT_MIN:g}) exceeds "
                f"TYPICAL_AMOUNT_MAX ({thresholds.TYPICAL_AMOUNT_MAX:g})"
            )

        if configure_logging:
            setup_logging(
                self.config.logging.LOG_LEVEL,
                format_json=self.config.logging.LOG_JSON,
                debug_ocr=self.config.logging.AI_DEBUG_OCR,
            )
        else:
            set_ocr_debug(self.config.logging.AI_DEBUG_OCR)

        self.pool = RecognitionWorkerPool(
            engine_factory or tesseract_engine_factory(ocr.OCR_LANG, ocr.OCR_PAGE_SEGMENTATION_MODE),
            size=ocr.OCR_POOL_SIZE,
            max_workers=ocr.OCR_EXECUTOR_WORKERS,
            debug_text=self.config.logging.AI_DEBUG_OCR,
        )
        self._preprocess_executor = ThreadPoolExecutor(
            max_workers=ocr.OCR_EXECUTOR_WORKERS,
            thread_name_prefix="preprocess",
        )
        self.preprocessor = ImagePreprocessor(
            working_width=self.config.preprocessing.PREPROCESS_WORKING_WIDTH,
            timeout=self.config.preprocessing.PREPROCESS_TIMEOUT_SECONDS,
            jpeg_quality=self.config.preprocessing.PREPROCESS_JPEG_QUALITY,
            executor=self._preprocess_executor,
        )
        self.passes = RecognitionPassRunner(
            self.pool,
            timeout=ocr.OCR_TIMEOUT_SECONDS,
            parallelism=ocr.OCR_PASS_PARALLELISM,
        )
        self.extractor = DeterministicFieldExtractor(amount_ceiling=self.config.thresholds.AMOUNT_CEILING)

        if vision_client is None and model.AI_ENABLED:
            vision_client = OllamaVisionClient({
                'host': model.MODEL_HOST,
                'api_key': model.MODEL_API_KEY,
                'max_tokens': self.config.limits.AI_MAX_OUTPUT_TOKENS_EXTRACT,
                'temperature': model.MODEL_TEMPERATURE,
            })
        self.adapter = ModelAdapter(
            vision_client,
            model.MODEL_VERSIONS,
            timeout=model.MODEL_TIMEOUT_SECONDS,
            enabled=model.AI_ENABLED,
            temperature=model.MODEL_TEMPERATURE,
        )

        components = (self.preprocessor, self.passes, self.extractor, self.adapter, self.config)
        self.orchestrator = ExtractionOrchestrator(*components)
        self.purchase = PurchaseProofVerifier(*components)
        self.rating = RatingProofVerifier(*components)
        self.return_window = ReturnWindowProofVerifier(*components)

        self.cache = cache or ResultCache(
            max_size=self.config.cache.RESULT_CACHE_MAX_SIZE,
            default_ttl=self.config.cache.RESULT_CACHE_TTL_SECONDS,
            enabled=self.config.cache.RESULT_CACHE_ENABLED,
        )

        self._shutdown_lock = threading.Lock()
        self._closed = False
        self._hooks_installed = False

        logger.info(
            f"Order proof service ready (pool={ocr.OCR_POOL_SIZE}, "
            f"model={'on' if self.adapter.configured else 'off'})"
        )

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    @log_performance(logger, "Order extraction")
    async def extract_order_details(self, image: ImageInput) -> ExtractionResult:
        return await self._cached(
            "extract", image, (),
            lambda data: self.orchestrator.extract(data),
        )

    @log_performance(logger, "Purchase proof verification")
    async def verify_purchase_proof(
        self,
        image: ImageInput,
        expected_order_id: str,
        expected_amount: Any,
    ) -> ProofVerificationResult:
        return await self._cached(
            "purchase", image, (expected_order_id, expected_amount),
            lambda data: self.purchase.verify(
                data,
                expected_order_id=expected_order_id,
                expected_amount=expected_amount,
            ),
        )

    @log_performance(logger, "Rating proof verification")
    async def verify_rating_proof(
        self,
        image: ImageInput,
        expected_buyer_name: str,
        expected_product_name: str,
        expected_reviewer_name: Optional[str] = None,
    ) -> RatingVerificationResult:
        return await self._cached(
            "rating", image, (expected_buyer_name, expected_product_name, expected_reviewer_name),
            lambda data: self.rating.verify(
                data,
                expected_buyer_name=expected_buyer_name,
                expected_product_name=expected_product_name,
                expected_reviewer_name=expected_reviewer_name,
            ),
        )

    @log_performance(logger, "Return-window proof verification")
    async def verify_return_window_proof(
        self,
        image: ImageInput,
        expected_order_id: str,
        expected_product_name: str,
        expected_amount: Any,
        expected_sold_by: Optional[str] = None,
    ) -> ReturnWindowVerificationResult:
        return await self._cached(
            "return_window", image,
            (expected_order_id, expected_product_name, expected_amount, expected_sold_by),
            lambda data: self.return_window.verify(
                data,
                expected_order_id=expected_order_id,
                expected_product_name=expected_product_name,
                expected_amount=expected_amount,
                expected_sold_by=expected_sold_by,
            ),
        )

    def invalidate(self, image: ImageInput) -> int:
        """Forget cached results for one image."""
        try:
            return self.cache.invalidate(decode_image_input(image))
        except InvalidImageError:
            return 0

    async def _cached(
        self,
        kind: str,
        image: ImageInput,
        expected: tuple,
        run: Callable[[ImageInput], Awaitable[Any]],
    ):
        try:
            image_bytes = decode_image_input(image)
        except InvalidImageError:
            # the engines turn undecodable input into a rejection result
            return await run(image)

        key = self.cache.make_key(image_bytes, kind, *expected)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"{kind}: served from result cache")
            return cached

        result = await run(image_bytes)
        if result.confidence_score > 0:
            self.cache.set(key, result)
        return result

    # ========================================================================
    # HEALTH
    # ========================================================================

    async def check_model(self):
        """First healthy model version (``Outcome``), see ModelAdapter.check."""
        return await self.adapter.check()

    def get_statistics(self) -> dict:
        stats = {
            'pool': self.pool.get_statistics(),
            'cache': self.cache.get_statistics(),
        }
        if self.adapter.client is not None:
            stats['model'] = self.adapter.client.get_statistics()
        return stats

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Drain the worker pool and stop executors. Safe to call repeatedly."""
        with self._shutdown_lock:
            if self._closed:
                return
            self._closed = True

        self.pool.shutdown()
        self._preprocess_executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Order proof service shut down")

    async def aclose(self) -> None:
        self.shutdown()
        await self.adapter.close()

    def install_shutdown_hooks(self) -> None:
        """
        Drain the pool at interpreter exit and on SIGTERM/SIGINT. Previously
        installed signal handlers still run afterwards.
        """
        if self._hooks_installed:
            return
        self._hooks_installed = True
        atexit.register(self.shutdown)

        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal hooks skipped (atexit only)")
            return

        for sig in SHUTDOWN_SIGNALS:
            previous = signal.getsignal(sig)
            signal.signal(sig, self._make_signal_handler(previous))

    def _make_signal_handler(self, previous):
        def handler(signum, frame):
            logger.info(f"Received signal {signum}; shutting down")
            self.shutdown()
            if callable(previous):
                previous(signum, frame)
            elif previous == signal.SIG_DFL:
                signal.signal(signum, signal.SIG_DFL)
                os.kill(os.getpid(), signum)
        return handler
