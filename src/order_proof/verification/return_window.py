# ============================================================================
# src/order_proof/verification/return_window.py
# ============================================================================
"""
Return-Window Proof Verification

Checks that an order screenshot shows the expected order, product, amount
and (optionally) seller, and that its return window has closed.
"""

import re
from typing import Any, Dict, List, Optional

from ..core.types import ReturnWindowVerificationResult
from ..extractors.text_fields import extract_seller
from ..vlm.prompts import build_return_window_prompt
from ..vlm.schemas import ReturnWindowProofResponse
from .base import BaseProofVerifier
from .matching import (
    closest_amount,
    identifier_in_text,
    identifiers_match,
    name_in_text,
    names_match,
    parse_expected_amount,
)

PRODUCT_NAME_COVERAGE = 0.6
SELLER_NAME_COVERAGE = 0.6

WINDOW_CLOSED_RE = re.compile(
    r'return\s*(?:window|period|policy)?\s*(?:is\s*|has\s*|was\s*)?(?:closed|expired|ended|over)|'
    r'(?:no\s*longer|not)\s*(?:eligible\s*for\s*)?return(?:able)?|'
    r'non[\s\-]?returnable|'
    r'return\s*(?:window|period)?\s*(?:closed|ended|expired)\s*on',
    re.IGNORECASE,
)
WINDOW_OPEN_RE = re.compile(
    r'return\s*(?:window\s*)?(?:is\s*)?open|return(?:able)?\s*(?:till|until|by)|'
    r'eligible\s*for\s*return|return\s*window\s*(?:will\s*)?close[s]?\s*on',
    re.IGNORECASE,
)
WINDOW_LINE_RE = re.compile(r'\breturn', re.IGNORECASE)


def detect_return_window(text: Optional[str]):
    """
    (closed, window_text): whether the text says the return window is
    closed, and the line describing the window.
    """
    closed_line = open_line = None
    for line in (text or '').split('\n'):
        line = line.strip()
        if not line or not WINDOW_LINE_RE.search(line):
            continue
        if closed_line is None and WINDOW_CLOSED_RE.search(line):
            closed_line = line
        elif open_line is None and WINDOW_OPEN_RE.search(line):
            open_line = line
    if closed_line:
        return True, closed_line
    return False, open_line


class ReturnWindowProofVerifier(BaseProofVerifier):

    kind = "return_window"
    response_schema = ReturnWindowProofResponse
    result_type = ReturnWindowVerificationResult
    check_labels = {
        'order_id_match': "order ID",
        'product_name_match': "product name",
        'amount_match': "amount",
        'sold_by_match': "seller",
        'return_window_closed': "closed return window",
    }

    def build_prompt(self, expected: Dict[str, Any]) -> str:
        return build_return_window_prompt(
            expected.get('expected_order_id') or '',
            expected.get('expected_product_name') or '',
            expected.get('expected_amount'),
            expected.get('expected_sold_by'),
        )

    def required_checks(self, expected: Dict[str, Any]) -> List[str]:
        checks = ['order_id_match', 'product_name_match', 'amount_match']
        if expected.get('expected_sold_by'):
            checks.append('sold_by_match')
        checks.append('return_window_closed')
        return checks

    def from_model(
        self,
        response: ReturnWindowProofResponse,
        expected: Dict[str, Any],
    ) -> ReturnWindowVerificationResult:
        sold_by_match = None
        if expected.get('expected_sold_by'):
            sold_by_match = bool(response.sold_by_match)
        return ReturnWindowVerificationResult(
            order_id_match=bool(expected.get('expected_order_id')) and response.order_id_match,
            product_name_match=bool(expected.get('expected_product_name')) and response.product_name_match,
            amount_match=parse_expected_amount(expected.get('expected_amount')) is not None and response.amount_match,
            sold_by_match=sold_by_match,
            return_window_closed=response.return_window_closed,
            detected_return_window=response.detected_return_window,
            confidence_score=response.confidence_score,
            discrepancy_note=response.discrepancy_note,
        )

    def match_text(self, text: str, expected: Dict[str, Any]) -> ReturnWindowVerificationResult:
        expected_id = expected.get('expected_order_id')
        expected_amount = parse_expected_amount(expected.get('expected_amount'))
        expected_seller = expected.get('expected_sold_by')

        candidates = [c.value for c in self.extractor.order_ids.candidates(text)]
        detected_id = next((c for c in candidates if identifiers_match(expected_id, c)), None)

        amount_match = False
        if expected_amount is not None:
            amounts = self.extractor.amounts.all_amounts(text, detected_id)
            labeled = self.extractor.amounts.extract(text, detected_id)
            if labeled:
                amounts.append(labeled.value)
            amount_match = closest_amount(expected_amount, amounts) is not None

        sold_by_match = None
        if expected_seller:
            sold_by_match = name_in_text(expected_seller, text, SELLER_NAME_COVERAGE)
            seller_found = extract_seller(text)
            if not sold_by_match and seller_found:
                sold_by_match = names_match(expected_seller, seller_found.value, SELLER_NAME_COVERAGE)

        closed, window_text = detect_return_window(text)
        return ReturnWindowVerificationResult(
            order_id_match=identifier_in_text(expected_id, text, candidates),
            product_name_match=name_in_text(expected.get('expected_product_name'), text, PRODUCT_NAME_COVERAGE),
            amount_match=amount_match,
            sold_by_match=sold_by_match,
            return_window_closed=closed,
            detected_return_window=window_text,
        )
