# ============================================================================
# tests/unit/test_amount_extraction.py
# ============================================================================
"""
Tests for paid amount extraction and the post-extraction sanity filters
"""

import pytest

from order_proof.core.types import ExtractionResult, FieldSource
from order_proof.extractors.amount import (
    AmountExtractor,
    find_amount_tokens,
    parse_amount,
)
from order_proof.extractors.sanity import (
    apply_sanity_filters,
    is_order_id_fragment,
    looks_like_date,
)


@pytest.fixture
def extractor():
    return AmountExtractor()


class TestAmountExtractor:
    """Label-aware amount selection"""

    def test_you_pay_beats_mrp(self, extractor):
        """The paid price wins over the list price on the same line"""
        found = extractor.extract("MRP ₹999 You Pay ₹599")
        assert found.value == 599
        assert found.source == 'final'

    def test_you_pay_beats_mrp_across_lines(self, extractor):
        found = extractor.extract("MRP ₹999\nYou Pay ₹599")
        assert found.value == 599

    def test_last_final_label_wins(self, extractor):
        """Receipts put the authoritative total last"""
        text = "Order Total ₹1,650.00\nCoupon -₹151.00\nGrand Total ₹1,499.00"
        assert extractor.extract(text).value == 1499

    def test_value_on_next_line(self, extractor):
        """A label with its value on the following line"""
        assert extractor.extract("Amount Paid\n₹2,349").value == 2349

    def test_generic_label_takes_largest(self, extractor):
        text = "Price ₹499\nSubtotal ₹998"
        found = extractor.extract(text)
        assert found.value == 998
        assert found.source == 'generic'

    def test_currency_fallback(self, extractor):
        """Without labels, the largest currency amount"""
        found = extractor.extract("boAt Airdopes 141\n₹1,299\nFree delivery")
        assert found.value == 1299
        assert found.source == 'currency'

    def test_bare_number_fallback_skips_years_and_pincodes(self, extractor):
        """Bare numbers exclude years, pincodes and phone-length runs"""
        text = "Delivered 2024\nMumbai 400001\nCall 9876543210\n749"
        found = extractor.extract(text)
        assert found.value == 749
        assert found.source == 'bare'

    def test_order_id_segments_skipped(self, extractor):
        """Digit groups of the order id are never read as the amount"""
        text = "Order ID 12-34567-89012\nTotal 34567"
        assert extractor.extract(text, "12-34567-89012") is None

    def test_units_are_not_amounts(self, extractor):
        assert extractor.extract("Pack of 2 x 500 ml\n128 GB") is None

    def test_ceiling(self):
        """Amounts above the ceiling are ignored"""
        assert AmountExtractor(ceiling=1000).extract("Total ₹5,000") is None

    def test_all_amounts(self, extractor):
        """Every plausible amount, for matching against an expected value"""
        values = extractor.all_amounts("MRP ₹999 You Pay ₹599\nQty 1")
        assert 999 in values
        assert 599 in values


class TestAmountHelpers:

    def test_parse_amount(self):
        assert parse_amount("1,499.50") == 1499.5
        assert parse_amount("abc") is None
        assert parse_amount(None) is None

    def test_tokens_flag_currency(self):
        tokens = find_amount_tokens("Rs. 250 and 300")
        assert [(t.value, t.currency) for t in tokens] == [(250, True), (300, False)]


class TestSanityFilters:
    """Implausible values are cleared after extraction"""

    def test_fragment_by_segment(self):
        assert is_order_id_fragment(1234567, "408-1234567-7654321")

    def test_fragment_inside_long_id(self):
        """A 4+ digit run inside a 10+ digit id is a fragment"""
        assert is_order_id_fragment(4567, "4081234567654321")
        assert not is_order_id_fragment(599, "4081234567654321")
        assert not is_order_id_fragment(4567, "OD1234")

    def test_looks_like_date(self):
        assert looks_like_date(12032024)
        assert looks_like_date(20240312)
        assert not looks_like_date(1499)

    def test_fragment_amount_cleared(self):
        result = ExtractionResult()
        result.set_field('order_id', "408-1234567-7654321", 17, FieldSource.DETERMINISTIC)
        result.set_field('amount', 7654321.0, 1, FieldSource.DETERMINISTIC)

        notes = apply_sanity_filters(result, ceiling=10_000_000)

        assert result.amount is None
        assert 'amount' not in result.field_scores
        assert any("order ID" in note for note in notes)

    def test_ceiling_and_year(self):
        """Amounts over the ceiling and unlabeled years are dropped"""
        over = ExtractionResult()
        over.set_field('amount', 900000.0, 4, FieldSource.DETERMINISTIC)
        apply_sanity_filters(over)
        assert over.amount is None

        year = ExtractionResult()
        year.set_field('amount', 2024.0, 1, FieldSource.DETERMINISTIC)
        apply_sanity_filters(year)
        assert year.amount is None

        labeled = ExtractionResult()
        labeled.set_field('amount', 2024.0, 4, FieldSource.DETERMINISTIC)
        apply_sanity_filters(labeled)
        assert labeled.amount == 2024.0

    def test_invalid_order_id_and_product_cleared(self):
        result = ExtractionResult()
        result.set_field('order_id', "550e8400-e29b-41d4-a716-446655440000", 5, FieldSource.MODEL_ONLY)
        result.set_field('product_name', "https://amazon.in/gp/order/123", 5, FieldSource.DETERMINISTIC)

        apply_sanity_filters(result)

        assert result.order_id is None
        assert result.product_name is None
        assert len(result.notes) == 2

    def test_valid_result_untouched(self):
        result = ExtractionResult()
        result.set_field('order_id', "408-1234567-7654321", 17, FieldSource.DETERMINISTIC)
        result.set_field('amount', 1499.0, 4, FieldSource.DETERMINISTIC)
        assert apply_sanity_filters(result) == []
        assert result.amount == 1499.0
