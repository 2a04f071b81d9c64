# ============================================================================
# src/order_proof/config/thresholds_config.py
# ============================================================================
"""
Acceptance Thresholds
- Model self-reported confidence gate
- Amount plausibility ceiling
- Typical order amount range (tie-break between passes)
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ThresholdSettings(BaseSettings):
    MODEL_ACCEPT_CONFIDENCE: int = Field(
        default=80,
        ge=0, le=100,
        description="Model suggestions not found in the recognized text need at least this confidence"
    )
    AMOUNT_CEILING: float = Field(
        default=500_000.0,
        gt=0,
        description="Amounts above this are treated as misreads"
    )
    TYPICAL_AMOUNT_MIN: float = Field(
        default=50.0,
        ge=0,
        description="Lower bound of the usual order total, used to break ties between passes"
    )
    TYPICAL_AMOUNT_MAX: float = Field(
        default=50_000.0,
        gt=0,
        description="Upper bound of the usual order total, used to break ties between passes"
    )
    VERIFY_MODEL_MIN_CONFIDENCE: int = Field(
        default=70,
        ge=0, le=100,
        description="Model verdicts below this confidence are cross-checked with recognition"
    )
