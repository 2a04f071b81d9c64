# ============================================================================
# src/order_proof/ocr/engine.py
# ============================================================================
"""
Text Recognition Engines

A recognition engine turns image bytes into text. Engines are synchronous
and not thread-safe; the worker pool owns them and guarantees a single
caller per instance at a time.

Installation (Tesseract backend):
    apt install tesseract-ocr   # or brew install tesseract
    pip install pytesseract
"""

import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, Dict, Optional

import pytesseract
from PIL import Image

from ..utils.exceptions import RecognitionError, RecognitionTimeoutError

logger = logging.getLogger(__name__)


class RecognitionEngine(ABC):
    """Interface every recognition backend implements."""

    @abstractmethod
    def recognize(self, image_bytes: bytes, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Recognize text in an image.

        Returns:
            Dict with:
                - text: recognized text, one visual line per line
                - metadata: backend specific details (confidence, word count)
        """
        pass

    @abstractmethod
    def set_page_segmentation_mode(self, mode: int) -> None:
        pass

    def dispose(self) -> None:
        """Release backend resources. Called exactly once by the pool."""
        pass


class TesseractEngine(RecognitionEngine):
    """
    Tesseract via pytesseract.

    ``image_to_data`` is used so every call yields both text (rebuilt line
    by line from block/paragraph/line numbers) and a mean word confidence.
    """

    def __init__(self, lang: str = "eng", page_segmentation_mode: int = 6, oem: int = 1):
        self.lang = lang
        self.page_segmentation_mode = page_segmentation_mode
        self.oem = oem
        self._disposed = False
        self._inference_count = 0

    def set_page_segmentation_mode(self, mode: int) -> None:
        self.page_segmentation_mode = int(mode)

    @property
    def config_string(self) -> str:
        return f'--oem {self.oem} --psm {self.page_segmentation_mode}'

    def recognize(self, image_bytes: bytes, timeout: Optional[float] = None) -> Dict[str, Any]:
        if self._disposed:
            raise RecognitionError("Tesseract engine used after dispose")

        try:
            image = Image.open(BytesIO(image_bytes))
            image.load()
        except Exception as e:
            raise RecognitionError(f"Cannot decode variant image: {e}") from e

        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.lang,
                config=self.config_string,
                output_type=pytesseract.Output.DICT,
                timeout=timeout or 0,
            )
        except RuntimeError as e:
            # pytesseract kills the process and raises RuntimeError on timeout
            if 'timeout' in str(e).lower():
                raise RecognitionTimeoutError(f"Tesseract exceeded {timeout:.1f}s") from e
            raise RecognitionError(f"Tesseract failed: {e}") from e
        except pytesseract.TesseractError as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e

        self._inference_count += 1
        return self._assemble(data)

    @staticmethod
    def _assemble(data: Dict[str, list]) -> Dict[str, Any]:
        lines: Dict[tuple, list] = {}
        confidences = []

        for i, word in enumerate(data.get('text', [])):
            word = (word or '').strip()
            if not word:
                continue
            try:
                conf = float(data['conf'][i])
            except (TypeError, ValueError, KeyError, IndexError):
                conf = -1.0
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(word)
            if conf >= 0:
                confidences.append(conf)

        text = '\n'.join(' '.join(words) for _, words in sorted(lines.items()))
        return {
            'text': text,
            'metadata': {
                'engine': 'tesseract',
                'mean_confidence': round(sum(confidences) / len(confidences), 1) if confidences else 0.0,
                'word_count': sum(len(words) for words in lines.values()),
                'line_count': len(lines),
            },
        }

    def dispose(self) -> None:
        self._disposed = True
        logger.debug(f"Tesseract engine disposed after {self._inference_count} inferences")


def tesseract_engine_factory(lang: str = "eng", page_segmentation_mode: int = 6):
    """Zero-argument factory for the worker pool."""
    def factory() -> RecognitionEngine:
        return TesseractEngine(lang=lang, page_segmentation_mode=page_segmentation_mode)
    return factory
