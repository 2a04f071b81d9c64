# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

Recognition engines and vision clients are replaced by scripted fakes so
every pipeline test is deterministic and needs neither Tesseract nor an
Ollama server. Screenshots are synthetic Pillow images; their pixels never
matter because the fake engine returns scripted text.
"""

import asyncio
import base64
import json
import threading
import time
from io import BytesIO

import pytest
from PIL import Image

from order_proof.config import (
    CacheSettings,
    EngineConfig,
    LimitSettings,
    LoggingSettings,
    ModelSettings,
    OCRSettings,
    PreprocessingSettings,
    ThresholdSettings,
)
from order_proof.core.service import OrderProofService
from order_proof.ocr.engine import RecognitionEngine
from order_proof.utils.exceptions import ModelError
from order_proof.vlm.base import BaseVisionClient


AMAZON_ORDER_TEXT = """Order Details
Ordered on 12 March 2024
Order# 408-1234567-7654321
boAt Rockerz 450 Bluetooth Wireless Headphones (Black)
Sold by: Appario Retail Private Ltd
Item(s) Subtotal: ₹1,499.00
Grand Total: ₹1,499.00
"""

RATING_TEXT = """Your review
Priya Sharma
boAt Rockerz 450 Bluetooth Headphones
★★★★☆
4 out of 5 stars
Great sound for the price
"""

RETURN_WINDOW_TEXT = """Order # 408-1234567-7654321
boAt Rockerz 450 Bluetooth Headphones
Sold by: Appario Retail Private Ltd
₹1,499.00
Return window closed on 20 Mar 2024
"""


# ============================================================================
# FAKE RECOGNITION ENGINE
# ============================================================================

class FakeEngine(RecognitionEngine):
    """Engine whose output comes from its factory's script."""

    def __init__(self, factory: "FakeEngineFactory"):
        self.factory = factory
        self.page_segmentation_mode = 6
        self.disposed = False
        self.dispose_calls = 0

    def recognize(self, image_bytes, timeout=None):
        if self.factory.delay:
            time.sleep(self.factory.delay)
        if self.factory.error is not None:
            raise self.factory.error
        return {'text': self.factory.next_text(), 'metadata': {'engine': 'fake'}}

    def set_page_segmentation_mode(self, mode):
        self.page_segmentation_mode = mode

    def dispose(self):
        self.disposed = True
        self.dispose_calls += 1


class FakeEngineFactory:
    """
    Zero-argument engine factory for the worker pool.

    Args:
        texts: texts returned by successive recognize calls, across engines
        default: text returned once ``texts`` is used up
        delay: seconds each recognize call blocks
        error: exception every recognize call raises
    """

    def __init__(self, texts=None, default="", delay=0.0, error=None):
        self.texts = list(texts or [])
        self.default = default
        self.delay = delay
        self.error = error
        self.engines = []
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        engine = FakeEngine(self)
        with self._lock:
            self.engines.append(engine)
        return engine

    def next_text(self):
        with self._lock:
            self.calls += 1
            if self.texts:
                return self.texts.pop(0)
            return self.default


# ============================================================================
# FAKE VISION CLIENT
# ============================================================================

class FakeVisionClient(BaseVisionClient):
    """
    Vision client replaying scripted responses, one per generate call.

    Script items:
        str: returned as the raw model text
        dict: returned as JSON text
        Exception: raised
        int/float: seconds to sleep (for deadline tests), then '{}'
    """

    def __init__(self, responses=None, configured=True, healthy_models=()):
        super().__init__({})
        self.responses = list(responses or [])
        self._configured = configured
        self.healthy_models = set(healthy_models)
        self.calls = []
        self.closed = False

    @property
    def backend(self):
        return "fake"

    @property
    def configured(self):
        return self._configured

    async def generate(self, prompt, model, image_b64=None, response_schema=None,
                       max_tokens=None, temperature=None):
        self.calls.append({
            'prompt': prompt,
            'model': model,
            'image_b64': image_b64,
            'response_schema': response_schema,
            'max_tokens': max_tokens,
        })
        if not self.responses:
            raise ModelError("no scripted response left")

        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            await asyncio.sleep(item)
            item = '{}'
        if isinstance(item, dict):
            item = json.dumps(item)
        self._inference_count += 1
        return {'text': item, 'model': model, 'backend': self.backend, 'inference_time': 0.0}

    async def health_check(self, model):
        healthy = model in self.healthy_models
        return {
            'healthy': healthy,
            'backend': self.backend,
            'model': model,
            'details': "model available" if healthy else f"Model not found. Run: ollama pull {model}",
        }

    async def close(self):
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================

def _png_bytes(width=400, height=800, color=(255, 255, 255)):
    image = Image.new('RGB', (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def make_png():
    """Synthetic PNG screenshot of a given size (phone portrait by default)"""
    return _png_bytes


@pytest.fixture
def png_bytes():
    """Phone-portrait PNG screenshot"""
    return _png_bytes()


@pytest.fixture
def png_data_url(png_bytes):
    """The phone-portrait screenshot as a data URL"""
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode('ascii')


@pytest.fixture
def amazon_order_text():
    return AMAZON_ORDER_TEXT


@pytest.fixture
def rating_text():
    return RATING_TEXT


@pytest.fixture
def return_window_text():
    return RETURN_WINDOW_TEXT


@pytest.fixture
def make_engine_factory():
    """Build a scripted recognition engine factory"""
    return FakeEngineFactory


@pytest.fixture
def make_vision_client():
    """Build a scripted vision client"""
    return FakeVisionClient


@pytest.fixture
def make_config():
    """
    Engine configuration with small timeouts and a narrow working width so
    preprocessing stays fast. Keyword overrides replace whole settings groups.
    """
    def factory(ai_enabled=True, **overrides):
        groups = {
            'ocr': OCRSettings(
                OCR_POOL_SIZE=1,
                OCR_TIMEOUT_SECONDS=2.0,
                OCR_PASS_PARALLELISM=1,
                OCR_EXECUTOR_WORKERS=2,
            ),
            'preprocessing': PreprocessingSettings(
                PREPROCESS_WORKING_WIDTH=400,
                PREPROCESS_TIMEOUT_SECONDS=10.0,
            ),
            'model': ModelSettings(
                AI_ENABLED=ai_enabled,
                MODEL_HOST="http://model.test",
                MODEL_API_KEY=None,
                MODEL_VERSIONS=["model-a", "model-b"],
                MODEL_TIMEOUT_SECONDS=1.0,
            ),
            'limits': LimitSettings(),
            'thresholds': ThresholdSettings(),
            'cache': CacheSettings(RESULT_CACHE_ENABLED=True),
            'logging': LoggingSettings(LOG_LEVEL="INFO", LOG_JSON=False, AI_DEBUG_OCR=False),
        }
        groups.update(overrides)
        return EngineConfig(**groups)
    return factory


@pytest.fixture
def make_service(make_config):
    """
    Build an OrderProofService around fake components; every service
    built here is shut down after the test.
    """
    services = []

    def factory(texts=None, default="", delay=0.0, error=None, responses=None,
                config=None, ai_enabled=None, client=None):
        engine_factory = FakeEngineFactory(texts=texts, default=default, delay=delay, error=error)
        if client is None and responses is not None:
            client = FakeVisionClient(responses)
        if ai_enabled is None:
            ai_enabled = client is not None
        service = OrderProofService(
            config=config or make_config(ai_enabled=ai_enabled),
            engine_factory=engine_factory,
            vision_client=client,
        )
        service.engine_factory = engine_factory
        service.vision_client = client
        services.append(service)
        return service

    yield factory

    for service in services:
        service.shutdown()
