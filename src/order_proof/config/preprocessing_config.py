# ============================================================================
# src/order_proof/config/preprocessing_config.py
# ============================================================================
"""
Image Preprocessing Settings
- Working width for upscaling
- Timeout for the whole variant build
- Output encoding
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class PreprocessingSettings(BaseSettings):
    PREPROCESS_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        gt=0,
        description="Budget for producing all variants of one image before falling back to the original"
    )
    PREPROCESS_WORKING_WIDTH: int = Field(
        default=2200,
        ge=320,
        description="Enhanced variants are upscaled to this width (never shrunk)"
    )
    PREPROCESS_JPEG_QUALITY: int = Field(
        default=90,
        ge=50, le=100,
        description="JPEG quality used when encoding variants"
    )
