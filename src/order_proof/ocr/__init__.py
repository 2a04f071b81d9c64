# ============================================================================
# src/order_proof/ocr/__init__.py
# ============================================================================
"""
Text recognition engines and the worker pool that owns them.
"""

from .engine import RecognitionEngine, TesseractEngine, tesseract_engine_factory
from .worker_pool import RecognitionWorkerPool, WorkerHandle
from .pass_runner import RecognitionPassRunner

__all__ = [
    'RecognitionEngine',
    'TesseractEngine',
    'tesseract_engine_factory',
    'RecognitionWorkerPool',
    'WorkerHandle',
    'RecognitionPassRunner',
]
