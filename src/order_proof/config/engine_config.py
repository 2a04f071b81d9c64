# ============================================================================
# src/order_proof/config/engine_config.py
# ============================================================================
"""
Engine Configuration Bundle

Groups every settings object the engine consumes so the composition root
receives them as one injected value instead of reading module globals.

Usage:
    from order_proof.config import EngineConfig

    config = EngineConfig.from_env()
    config = EngineConfig(ocr=OCRSettings(OCR_POOL_SIZE=1))
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .cache_config import CacheSettings
from .env_loader import load_env_file
from .limits_config import LimitSettings
from .logging_config import LoggingSettings
from .model_config import ModelSettings
from .ocr_config import OCRSettings
from .preprocessing_config import PreprocessingSettings
from .thresholds_config import ThresholdSettings


@dataclass
class EngineConfig:
    ocr: OCRSettings = field(default_factory=OCRSettings)
    preprocessing: PreprocessingSettings = field(default_factory=PreprocessingSettings)
    model: ModelSettings = field(default_factory=ModelSettings)
    limits: LimitSettings = field(default_factory=LimitSettings)
    thresholds: ThresholdSettings = field(default_factory=ThresholdSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "EngineConfig":
        """Re-read .env and the environment into fresh settings objects."""
        load_env_file(env_path)
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            name: getattr(self, name).model_dump()
            for name in ('ocr', 'preprocessing', 'model', 'limits',
                         'thresholds', 'cache', 'logging')
        }
        if data['model'].get('MODEL_API_KEY'):
            data['model']['MODEL_API_KEY'] = '***'
        return data
