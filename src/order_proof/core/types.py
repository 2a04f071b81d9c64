# ============================================================================
# src/order_proof/core/types.py
# ============================================================================
"""
Data model shared by the preprocessing, recognition, extraction and
verification stages.

Every result type clamps its confidence to 0-100 on construction and
exposes ``to_dict()`` with the public field names callers consume.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


def clamp_confidence(value: Any) -> int:
    """Coerce any numeric-ish value to an int in [0, 100]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(max(0, min(100, round(number))))


class EnhancementMode(Enum):
    PLAIN = "plain"
    ENHANCED = "enhanced"
    HIGH_CONTRAST = "high_contrast"
    INVERTED = "inverted"


class LayoutClass(Enum):
    PHONE_PORTRAIT = "phone_portrait"
    TABLET = "tablet"
    LANDSCAPE = "landscape"
    LANDSCAPE_TABLET = "landscape_tablet"


class FieldSource(Enum):
    """Which stage produced a field value."""
    DETERMINISTIC = "deterministic"
    MODEL_CONFIRMED = "model_confirmed"  # deterministic value the model agreed with
    MODEL_VERIFIED = "model_verified"    # model suggestion found in the recognized text
    MODEL_ONLY = "model_only"            # model suggestion accepted on confidence alone


class VerificationMethod(Enum):
    MODEL = "model"
    RECOGNIZER = "recognizer"
    COMBINED = "combined"


class ExtractionStage(Enum):
    INIT = "init"
    RECOGNIZE_PASSES = "recognize_passes"
    MODEL_REFINE = "model_refine"
    MODEL_DIRECT = "model_direct"
    SANITY_FILTER = "sanity_filter"
    DONE = "done"


@dataclass(frozen=True)
class CropRegion:
    """Normalized rectangle (fractions of width/height)."""
    left: float
    top: float
    width: float
    height: float

    def to_box(self, image_width: int, image_height: int) -> tuple:
        """Pixel box clamped to the image bounds, at least 1x1."""
        left = min(max(0, int(round(self.left * image_width))), image_width - 1)
        top = min(max(0, int(round(self.top * image_height))), image_height - 1)
        right = min(image_width, max(left + 1, int(round((self.left + self.width) * image_width))))
        bottom = min(image_height, max(top + 1, int(round((self.top + self.height) * image_height))))
        return (left, top, right, bottom)


@dataclass
class ImageVariant:
    label: str
    data: bytes
    enhancement_mode: EnhancementMode = EnhancementMode.PLAIN
    crop_region: Optional[CropRegion] = None


@dataclass
class RecognitionPassResult:
    variant_label: str
    recognized_text: str = ""
    elapsed_ok: bool = True
    elapsed_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.recognized_text.strip())


@dataclass
class FieldCandidate:
    value: str
    score: int
    has_label_context: bool = False
    matched_platform_pattern: Optional[str] = None

    @property
    def key(self) -> str:
        """Dedup key: punctuation/whitespace stripped, upper-cased."""
        return normalize_key(self.value)


def normalize_key(value: str) -> str:
    return ''.join(ch for ch in value if ch.isalnum()).upper()


@dataclass
class ExtractionResult:
    order_id: Optional[str] = None
    amount: Optional[float] = None
    order_date: Optional[str] = None
    sold_by: Optional[str] = None
    product_name: Optional[str] = None
    confidence_score: int = 0
    notes: List[str] = field(default_factory=list)
    field_scores: Dict[str, int] = field(default_factory=dict)
    field_sources: Dict[str, FieldSource] = field(default_factory=dict)
    recognized_text_found: bool = False
    cached: bool = False

    def __post_init__(self):
        self.confidence_score = clamp_confidence(self.confidence_score)

    def set_confidence(self, value: Any) -> None:
        self.confidence_score = clamp_confidence(value)

    def add_note(self, note: str) -> None:
        if note and note not in self.notes:
            self.notes.append(note)

    def get(self, name: str) -> Any:
        return getattr(self, name)

    def set_field(self, name: str, value: Any, score: int, source: FieldSource) -> None:
        setattr(self, name, value)
        self.field_scores[name] = score
        self.field_sources[name] = source

    def clear_field(self, name: str) -> None:
        setattr(self, name, None)
        self.field_scores.pop(name, None)
        self.field_sources.pop(name, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'amount': self.amount,
            'order_date': self.order_date,
            'sold_by': self.sold_by,
            'product_name': self.product_name,
            'confidence_score': self.confidence_score,
            'notes': list(self.notes),
            'field_sources': {k: v.value for k, v in self.field_sources.items()},
            'cached': self.cached,
        }


@dataclass
class ProofVerificationResult:
    order_id_match: bool = False
    amount_match: bool = False
    confidence_score: int = 0
    verification_method: VerificationMethod = VerificationMethod.RECOGNIZER
    discrepancy_note: Optional[str] = None
    detected_order_id: Optional[str] = None
    detected_amount: Optional[float] = None
    cached: bool = False

    def __post_init__(self):
        self.confidence_score = clamp_confidence(self.confidence_score)

    def matches(self) -> Dict[str, Optional[bool]]:
        return {'order_id_match': self.order_id_match, 'amount_match': self.amount_match}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id_match': self.order_id_match,
            'amount_match': self.amount_match,
            'detected_order_id': self.detected_order_id,
            'detected_amount': self.detected_amount,
            'confidence_score': self.confidence_score,
            'discrepancy_note': self.discrepancy_note,
            'verification_method': self.verification_method.value,
            'cached': self.cached,
        }


@dataclass
class RatingVerificationResult:
    account_name_match: bool = False
    product_name_match: bool = False
    reviewer_name_match: Optional[bool] = None
    detected_rating: Optional[int] = None
    detected_product_name: Optional[str] = None
    confidence_score: int = 0
    verification_method: VerificationMethod = VerificationMethod.RECOGNIZER
    discrepancy_note: Optional[str] = None
    cached: bool = False

    def __post_init__(self):
        self.confidence_score = clamp_confidence(self.confidence_score)

    def matches(self) -> Dict[str, Optional[bool]]:
        return {
            'account_name_match': self.account_name_match,
            'product_name_match': self.product_name_match,
            'reviewer_name_match': self.reviewer_name_match,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.matches(),
            'detected_rating': self.detected_rating,
            'detected_product_name': self.detected_product_name,
            'confidence_score': self.confidence_score,
            'discrepancy_note': self.discrepancy_note,
            'verification_method': self.verification_method.value,
            'cached': self.cached,
        }


@dataclass
class ReturnWindowVerificationResult:
    order_id_match: bool = False
    product_name_match: bool = False
    amount_match: bool = False
    sold_by_match: Optional[bool] = None
    return_window_closed: bool = False
    detected_return_window: Optional[str] = None
    confidence_score: int = 0
    verification_method: VerificationMethod = VerificationMethod.RECOGNIZER
    discrepancy_note: Optional[str] = None
    cached: bool = False

    def __post_init__(self):
        self.confidence_score = clamp_confidence(self.confidence_score)

    def matches(self) -> Dict[str, Optional[bool]]:
        return {
            'order_id_match': self.order_id_match,
            'product_name_match': self.product_name_match,
            'amount_match': self.amount_match,
            'sold_by_match': self.sold_by_match,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.matches(),
            'return_window_closed': self.return_window_closed,
            'detected_return_window': self.detected_return_window,
            'confidence_score': self.confidence_score,
            'discrepancy_note': self.discrepancy_note,
            'verification_method': self.verification_method.value,
            'cached': self.cached,
        }
