# ============================================================================
# src/order_proof/extractors/__init__.py
# ============================================================================
"""
Deterministic field extraction over recognized text.
"""

from .platform_patterns import PLATFORM_PATTERNS, PlatformPattern, detect_dominant_platform, score_platform
from .order_id import OrderIdExtractor, sanitize_order_id
from .amount import AmountExtractor, AmountCandidate, parse_amount
from .text_fields import extract_order_date, extract_product_name, extract_seller, is_rejected_product_name
from .field_extractor import DeterministicFieldExtractor
from .sanity import apply_sanity_filters, is_order_id_fragment

__all__ = [
    'PLATFORM_PATTERNS',
    'PlatformPattern',
    'detect_dominant_platform',
    'score_platform',
    'OrderIdExtractor',
    'sanitize_order_id',
    'AmountExtractor',
    'AmountCandidate',
    'parse_amount',
    'extract_order_date',
    'extract_product_name',
    'extract_seller',
    'is_rejected_product_name',
    'DeterministicFieldExtractor',
    'apply_sanity_filters',
    'is_order_id_fragment',
]
