# ============================================================================
# src/order_proof/vlm/schemas.py
# ============================================================================
"""
Model Response Schemas

Every model response is validated against one of these models at the
boundary. The JSON schema of each is sent to the model as the requested
output format; a response that still does not validate counts as a parse
failure, never a crash.
"""

import re
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.types import clamp_confidence

Platform = Literal[
    "amazon", "flipkart", "ebay", "myntra", "meesho", "ajio", "nykaa", "tatacliq",
    "croma", "purplle", "snapdeal", "jiomart", "reliancedigital", "bigbasket",
    "firstcry", "lenskart", "pepperfry", "shopclues", "other",
]


def _coerce_amount(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value == value and value > 0 else None
    cleaned = re.sub(r'(?i)₹|rs\.?|inr|,|\s', '', str(value))
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if number > 0 else None


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in ('null', 'none', 'n/a', 'unknown'):
            return None
    return value


class ModelResponse(BaseModel):
    model_config = ConfigDict(extra='ignore')

    confidence_score: int = Field(default=0, description="0-100 self-reported confidence")

    @field_validator('confidence_score', mode='before')
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)

    @classmethod
    def response_schema(cls) -> Dict[str, Any]:
        return cls.model_json_schema()


class OrderTextRefinement(ModelResponse):
    """Suggestions for fields the recognizer could not settle."""
    suggested_order_id: Optional[str] = None
    suggested_amount: Optional[float] = None
    notes: Optional[str] = None

    @field_validator('suggested_order_id', 'notes', mode='before')
    @classmethod
    def _strings(cls, value):
        return _blank_to_none(value)

    @field_validator('suggested_amount', mode='before')
    @classmethod
    def _amount(cls, value):
        return _coerce_amount(_blank_to_none(value))


class DirectOrderExtraction(ModelResponse):
    """Structured order facts read straight from the image."""
    order_id: Optional[str] = None
    amount: Optional[float] = None
    order_date: Optional[str] = None
    sold_by: Optional[str] = None
    product_name: Optional[str] = None
    platform: Platform = "other"
    notes: Optional[str] = None

    @field_validator('order_id', 'order_date', 'sold_by', 'product_name', 'notes', mode='before')
    @classmethod
    def _strings(cls, value):
        return _blank_to_none(value)

    @field_validator('amount', mode='before')
    @classmethod
    def _amount(cls, value):
        return _coerce_amount(_blank_to_none(value))

    @field_validator('platform', mode='before')
    @classmethod
    def _platform(cls, value):
        if not isinstance(value, str):
            return "other"
        cleaned = re.sub(r'[^a-z]', '', value.lower())
        return cleaned if cleaned in Platform.__args__ else "other"


class PurchaseProofResponse(ModelResponse):
    order_id_match: bool = False
    amount_match: bool = False
    detected_order_id: Optional[str] = None
    detected_amount: Optional[float] = None
    discrepancy_note: Optional[str] = None

    @field_validator('detected_order_id', 'discrepancy_note', mode='before')
    @classmethod
    def _strings(cls, value):
        return _blank_to_none(value)

    @field_validator('detected_amount', mode='before')
    @classmethod
    def _amount(cls, value):
        return _coerce_amount(_blank_to_none(value))


class RatingProofResponse(ModelResponse):
    account_name_match: bool = False
    product_name_match: bool = False
    reviewer_name_match: Optional[bool] = None
    detected_rating: Optional[int] = None
    detected_product_name: Optional[str] = None
    discrepancy_note: Optional[str] = None

    @field_validator('detected_product_name', 'discrepancy_note', mode='before')
    @classmethod
    def _strings(cls, value):
        return _blank_to_none(value)

    @field_validator('detected_rating', mode='before')
    @classmethod
    def _rating(cls, value):
        value = _blank_to_none(value)
        try:
            rating = int(round(float(value)))
        except (TypeError, ValueError):
            return None
        return rating if 1 <= rating <= 5 else None


class ReturnWindowProofResponse(ModelResponse):
    order_id_match: bool = False
    product_name_match: bool = False
    amount_match: bool = False
    sold_by_match: Optional[bool] = None
    return_window_closed: bool = False
    detected_return_window: Optional[str] = None
    discrepancy_note: Optional[str] = None

    @field_validator('detected_return_window', 'discrepancy_note', mode='before')
    @classmethod
    def _strings(cls, value):
        return _blank_to_none(value)
