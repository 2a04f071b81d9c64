# ============================================================================
# src/order_proof/verification/rating.py
# ============================================================================
"""
Rating / Review Proof Verification

Checks that a review screenshot was posted from the expected account, for
the expected product, and (optionally) under the expected reviewer name.
The visible star rating is reported but never required.
"""

import re
from typing import Any, Dict, List, Optional

from ..core.types import RatingVerificationResult
from ..extractors.text_fields import extract_product_name
from ..vlm.prompts import build_rating_prompt
from ..vlm.schemas import RatingProofResponse
from .base import BaseProofVerifier
from .matching import best_matching_line, name_in_text, names_match

PERSON_NAME_COVERAGE = 0.5
PRODUCT_NAME_COVERAGE = 0.6

RATING_PATTERNS = (
    re.compile(r'\b([1-5](?:\.\d)?)\s*out\s*of\s*5\b', re.IGNORECASE),
    re.compile(r'\b(?:you\s*)?rated\s*(?:it\s*)?([1-5])\b', re.IGNORECASE),
    re.compile(r'\b([1-5])\s*/\s*5\b'),
    re.compile(r'\b([1-5])\s*(?:★|stars?\b)', re.IGNORECASE),
)
FILLED_STAR = '★'
EMPTY_STAR = '☆'


def detect_star_rating(text: Optional[str]) -> Optional[int]:
    """Star rating 1-5 from phrases like '4 out of 5 stars', 'Rated 5', '★★★★☆'."""
    if not text:
        return None
    for pattern in RATING_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(round(float(match.group(1))))

    for line in text.split('\n'):
        if FILLED_STAR in line or EMPTY_STAR in line:
            filled = line.count(FILLED_STAR)
            if 1 <= filled <= 5:
                return filled
    return None


class RatingProofVerifier(BaseProofVerifier):

    kind = "rating"
    response_schema = RatingProofResponse
    result_type = RatingVerificationResult
    check_labels = {
        'account_name_match': "account name",
        'product_name_match': "product name",
        'reviewer_name_match': "reviewer name",
    }

    def build_prompt(self, expected: Dict[str, Any]) -> str:
        return build_rating_prompt(
            expected.get('expected_buyer_name') or '',
            expected.get('expected_product_name') or '',
            expected.get('expected_reviewer_name'),
        )

    def required_checks(self, expected: Dict[str, Any]) -> List[str]:
        checks = ['account_name_match', 'product_name_match']
        if expected.get('expected_reviewer_name'):
            checks.append('reviewer_name_match')
        return checks

    def from_model(self, response: RatingProofResponse, expected: Dict[str, Any]) -> RatingVerificationResult:
        expected_product = expected.get('expected_product_name')
        reviewer_match = None
        if expected.get('expected_reviewer_name'):
            reviewer_match = bool(response.reviewer_name_match)
        return RatingVerificationResult(
            account_name_match=bool(expected.get('expected_buyer_name')) and response.account_name_match,
            product_name_match=bool(expected_product) and (
                response.product_name_match
                or names_match(expected_product, response.detected_product_name, PRODUCT_NAME_COVERAGE)
            ),
            reviewer_name_match=reviewer_match,
            detected_rating=response.detected_rating,
            detected_product_name=response.detected_product_name,
            confidence_score=response.confidence_score,
            discrepancy_note=response.discrepancy_note,
        )

    def match_text(self, text: str, expected: Dict[str, Any]) -> RatingVerificationResult:
        expected_product = expected.get('expected_product_name')
        reviewer = expected.get('expected_reviewer_name')

        detected_product = best_matching_line(expected_product, text)
        if detected_product is None:
            found = extract_product_name(text)
            detected_product = found.value if found else None

        return RatingVerificationResult(
            account_name_match=name_in_text(expected.get('expected_buyer_name'), text, PERSON_NAME_COVERAGE),
            product_name_match=name_in_text(expected_product, text, PRODUCT_NAME_COVERAGE),
            reviewer_name_match=name_in_text(reviewer, text, PERSON_NAME_COVERAGE) if reviewer else None,
            detected_rating=detect_star_rating(text),
            detected_product_name=detected_product,
        )
