# ============================================================================
# src/order_proof/verification/purchase.py
# ============================================================================
"""
Purchase Proof Verification

Checks that an order screenshot shows the expected order id and paid
amount.
"""

from typing import Any, Dict, List, Optional

from ..core.types import ProofVerificationResult
from ..vlm.prompts import build_purchase_prompt
from ..vlm.schemas import PurchaseProofResponse
from .base import BaseProofVerifier
from .matching import (
    amounts_match,
    closest_amount,
    identifier_in_text,
    identifiers_match,
    parse_expected_amount,
)


class PurchaseProofVerifier(BaseProofVerifier):

    kind = "purchase"
    response_schema = PurchaseProofResponse
    result_type = ProofVerificationResult
    check_labels = {
        'order_id_match': "order ID",
        'amount_match': "amount",
    }

    def build_prompt(self, expected: Dict[str, Any]) -> str:
        return build_purchase_prompt(expected.get('expected_order_id') or '', expected.get('expected_amount'))

    def required_checks(self, expected: Dict[str, Any]) -> List[str]:
        return ['order_id_match', 'amount_match']

    def from_model(self, response: PurchaseProofResponse, expected: Dict[str, Any]) -> ProofVerificationResult:
        expected_id = expected.get('expected_order_id')
        expected_amount = parse_expected_amount(expected.get('expected_amount'))
        return ProofVerificationResult(
            order_id_match=bool(expected_id) and (
                response.order_id_match or identifiers_match(expected_id, response.detected_order_id)
            ),
            amount_match=expected_amount is not None and (
                response.amount_match or amounts_match(expected_amount, response.detected_amount)
            ),
            detected_order_id=response.detected_order_id,
            detected_amount=response.detected_amount,
            confidence_score=response.confidence_score,
            discrepancy_note=response.discrepancy_note,
        )

    def match_text(self, text: str, expected: Dict[str, Any]) -> ProofVerificationResult:
        expected_id = expected.get('expected_order_id')
        expected_amount = parse_expected_amount(expected.get('expected_amount'))

        candidates = [c.value for c in self.extractor.order_ids.candidates(text)]
        detected_id = self._detected_id(expected_id, candidates)
        id_match = identifier_in_text(expected_id, text, candidates)

        labeled = self.extractor.amounts.extract(text, detected_id)
        amounts = self.extractor.amounts.all_amounts(text, detected_id)
        if labeled:
            amounts.append(labeled.value)
        matched_amount = closest_amount(expected_amount, amounts) if expected_amount is not None else None

        return ProofVerificationResult(
            order_id_match=id_match,
            amount_match=matched_amount is not None,
            detected_order_id=detected_id,
            detected_amount=matched_amount if matched_amount is not None else (labeled.value if labeled else None),
        )

    @staticmethod
    def _detected_id(expected_id: Optional[str], candidates: List[str]) -> Optional[str]:
        for candidate in candidates:
            if identifiers_match(expected_id, candidate):
                return candidate
        return candidates[0] if candidates else None
