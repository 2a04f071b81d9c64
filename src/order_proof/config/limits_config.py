# ============================================================================
# src/order_proof/config/limits_config.py
# ============================================================================
"""
Input Size & Cost Budget
- Maximum encoded image size
- Estimated token budget
- Output token ceilings
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class LimitSettings(BaseSettings):
    AI_MAX_IMAGE_CHARS: int = Field(
        default=12_000_000,
        ge=1,
        description="Maximum base64 length of a submitted image"
    )
    AI_MAX_ESTIMATED_TOKENS: int = Field(
        default=3_500_000,
        ge=1,
        description="Maximum estimated input tokens (base64 length / 4 plus prompt)"
    )
    AI_MAX_OUTPUT_TOKENS_EXTRACT: int = Field(
        default=1024,
        ge=16,
        description="Output token ceiling for extraction prompts"
    )
    AI_MAX_OUTPUT_TOKENS_PROOF: int = Field(
        default=512,
        ge=16,
        description="Output token ceiling for verification prompts"
    )
