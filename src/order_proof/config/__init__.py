# ============================================================================
# src/order_proof/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .env_loader import load_env_file

load_env_file()

from .ocr_config import OCRSettings
from .preprocessing_config import PreprocessingSettings
from .model_config import ModelSettings
from .limits_config import LimitSettings
from .thresholds_config import ThresholdSettings
from .cache_config import CacheSettings
from .logging_config import LoggingSettings
from .engine_config import EngineConfig
