# ============================================================================
# src/order_proof/config/cache_config.py
# ============================================================================
"""
Result Cache Settings
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class CacheSettings(BaseSettings):
    RESULT_CACHE_ENABLED: bool = Field(
        default=True,
        description="Reuse results for an identical screenshot and expected values"
    )
    RESULT_CACHE_MAX_SIZE: int = Field(
        default=256,
        ge=1,
        description="Maximum cached results (LRU eviction)"
    )
    RESULT_CACHE_TTL_SECONDS: int = Field(
        default=1800,
        ge=1,
        description="Time-to-live for cached results"
    )
