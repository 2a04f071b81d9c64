# ============================================================================
# src/order_proof/config/logging_config.py
# ============================================================================
"""
Logging Settings
- Log level
- JSON output
- Recognition debug previews
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON log lines"
    )
    AI_DEBUG_OCR: bool = Field(
        default=False,
        description="Log recognized text previews and per-variant timings"
    )
