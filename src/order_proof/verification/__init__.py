# ============================================================================
# src/order_proof/verification/__init__.py
# ============================================================================
"""
Proof verification: expected-value matching and the purchase, rating and
return-window verifiers.
"""

from .matching import (
    normalize_identifier,
    identifiers_match,
    identifier_in_text,
    amounts_match,
    amount_tolerance,
    names_match,
    name_in_text,
)
from .base import BaseProofVerifier
from .purchase import PurchaseProofVerifier
from .rating import RatingProofVerifier, detect_star_rating
from .return_window import ReturnWindowProofVerifier, detect_return_window

__all__ = [
    'normalize_identifier',
    'identifiers_match',
    'identifier_in_text',
    'amounts_match',
    'amount_tolerance',
    'names_match',
    'name_in_text',
    'BaseProofVerifier',
    'PurchaseProofVerifier',
    'RatingProofVerifier',
    'ReturnWindowProofVerifier',
    'detect_star_rating',
    'detect_return_window',
]
