# ============================================================================
# src/order_proof/extractors/field_extractor.py
# ============================================================================
"""
Deterministic Field Extractor

Pure function over recognized text: order id, amount, order date, seller and
product name, each from its own scored-candidate extractor. The order id is
found first so the amount extractor can skip its digit segments.
"""

from typing import Optional

from ..core.types import ExtractionResult, FieldSource
from .amount import AmountExtractor
from .order_id import OrderIdExtractor
from .text_fields import extract_order_date, extract_product_name, extract_seller


class DeterministicFieldExtractor:

    def __init__(self, amount_ceiling: float = 500_000.0):
        self.order_ids = OrderIdExtractor()
        self.amounts = AmountExtractor(ceiling=amount_ceiling)

    def extract(self, text: Optional[str]) -> ExtractionResult:
        result = ExtractionResult()
        text = (text or '').replace('\r', '\n')
        if not text.strip():
            return result
        result.recognized_text_found = True

        order_id = self.order_ids.extract(text)
        if order_id:
            result.set_field('order_id', order_id.value, order_id.score, FieldSource.DETERMINISTIC)

        amount = self.amounts.extract(text, result.order_id)
        if amount:
            result.set_field('amount', amount.value, amount.score, FieldSource.DETERMINISTIC)

        for name, found in (
            ('order_date', extract_order_date(text)),
            ('sold_by', extract_seller(text)),
            ('product_name', extract_product_name(text)),
        ):
            if found:
                result.set_field(name, found.value, found.score, FieldSource.DETERMINISTIC)

        if result.order_id:
            result.add_note("Deterministic order ID extracted.")
        if result.amount is not None:
            result.add_note("Deterministic amount extracted.")
        return result
