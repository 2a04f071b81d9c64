# ============================================================================
# tests/unit/test_order_id_extraction.py
# ============================================================================
"""
Tests for order identifier extraction and the platform pattern table
"""

import pytest

from order_proof.extractors.order_id import (
    OrderIdExtractor,
    normalize_digit_confusions,
    order_id_digit_segments,
    sanitize_order_id,
)
from order_proof.extractors.platform_patterns import (
    PLATFORM_PATTERNS,
    PLATFORMS_BY_NAME,
    coercion_targets,
    detect_dominant_platform,
    score_platform,
)


@pytest.fixture
def extractor():
    return OrderIdExtractor()


class TestPlatformPatterns:
    """Data-driven platform table"""

    def test_bonus_capped(self):
        """No platform bonus exceeds ten"""
        assert all(0 < row.bonus <= 10 for row in PLATFORM_PATTERNS)

    @pytest.mark.parametrize("value,platform", [
        ("408-1234567-7654321", "amazon"),
        ("OD432198765123456", "flipkart"),
        ("12-34567-89012", "ebay"),
        ("MYN12345678", "myntra"),
        ("FN123456789", "ajio"),
    ])
    def test_score_platform(self, value, platform):
        """Exact shapes earn their platform bonus"""
        bonus, name = score_platform(value)
        assert name == platform
        assert bonus == PLATFORMS_BY_NAME[platform].bonus

    def test_no_match_scores_zero(self):
        assert score_platform("HELLO-WORLD") == (0, None)

    def test_canonicalize(self):
        """Exact-length digit strings are rebuilt into the dashed format"""
        amazon = PLATFORMS_BY_NAME["amazon"]
        assert amazon.canonicalize("40812345677654321") == "408-1234567-7654321"
        assert amazon.canonicalize("4081234567765432") is None

    def test_dominant_platform(self):
        """Brand keywords decide which marketplace a screenshot came from"""
        assert detect_dominant_platform("Sold by Cloudtail via Amazon") == "amazon"
        assert detect_dominant_platform("Flipkart SuperCoin balance") == "flipkart"
        assert detect_dominant_platform("plain text") is None

    def test_coercion_defaults_to_amazon(self):
        """Platforms without a dashed digit format fall back to the default"""
        assert coercion_targets("flipkart order")[0].platform == "amazon"
        assert coercion_targets("ebay order")[0].platform == "ebay"


class TestSanitize:
    """Identifier validation"""

    @pytest.mark.parametrize("value", [
        None,
        "",
        "abc",
        "ORDERS",
        "550e8400-e29b-41d4-a716-446655440000",
        "5f8d0d55b54764421b7156c3",
        "E2E-12345",
        "SYS12345",
        "MOBO-998877",
        "12/03/2024",
        "1" * 65,
    ])
    def test_rejects_non_order_ids(self, value):
        """Internal ids, dates, UUIDs and digitless values are rejected"""
        assert sanitize_order_id(value) is None

    def test_trims_punctuation(self):
        assert sanitize_order_id(" #408-1234567-7654321. ") == "408-1234567-7654321"


class TestOrderIdExtractor:
    """Competitive candidate scoring"""

    def test_labeled_amazon_id(self, extractor, amazon_order_text):
        """A labeled 3-7-7 id wins with keyword and platform bonuses"""
        found = extractor.extract(amazon_order_text)
        assert found.value == "408-1234567-7654321"
        assert found.has_label_context
        assert found.matched_platform_pattern == "amazon"
        assert found.score >= 14

    def test_label_on_previous_line(self, extractor):
        """The value may sit on the line after a bare label"""
        found = extractor.extract("Order Number\nOD432198765123456\nDelivered")
        assert found.value == "OD432198765123456"

    def test_spaced_digits_rebuilt(self, extractor):
        """Spaced digit runs are rebuilt into the dashed platform format"""
        found = extractor.extract("Amazon\nOrder # 408 1234567 7654321")
        assert found.value == "408-1234567-7654321"

    def test_ocr_confusions_rebuilt(self, extractor):
        """O/I/S misreads inside a digit id are corrected"""
        found = extractor.extract("Order ID: 4O8-I234567-76S4321")
        assert found.value == "408-1234567-7654321"

    def test_tracking_lines_ignored(self, extractor):
        """Tracking and payment references never become order ids"""
        text = "Tracking ID: 998877665544\nUPI transaction 123456789012\nOrder ID: OD432198765123456"
        ranked = [c.value for c in extractor.candidates(text)]
        assert ranked[0] == "OD432198765123456"
        assert "998877665544" not in ranked
        assert "123456789012" not in ranked

    @pytest.mark.parametrize("text,expected", [
        ("Order # 408-1234567-7654321  Invoice\nGrand Total ₹1,499.00", "408-1234567-7654321"),
        ("Order ID: OD123456789012 | Transaction ID: T2403\nTotal ₹599", "OD123456789012"),
        ("Invoice no INV-2024-778812 Order ID: 171-9999999-1111111", "171-9999999-1111111"),
    ])
    def test_order_part_of_mixed_line_kept(self, extractor, text, expected):
        """An order-keyword line also naming an invoice or transaction still yields the order id"""
        ranked = [c.value for c in extractor.candidates(text)]
        assert ranked[0] == expected
        assert "T2403" not in ranked
        assert "INV-2024-778812" not in ranked

    def test_platform_shape_beats_generic(self, extractor):
        """A platform-shaped id outranks a generic code on the same line"""
        text = "Order ID 408-1234567-7654321 code AB12CD34EF"
        assert extractor.extract(text).value == "408-1234567-7654321"

    def test_nothing_found(self, extractor):
        assert extractor.extract("Thank you for shopping with us") is None
        assert extractor.extract("") is None

    def test_candidates_are_deduplicated(self, extractor):
        """The same id seen twice with different punctuation counts once"""
        text = "Order ID: 408-1234567-7654321\nOrder # 408 1234567 7654321"
        keys = [c.key for c in extractor.candidates(text)]
        assert keys.count("40812345677654321") == 1


class TestDigitHelpers:

    def test_digit_segments(self):
        assert order_id_digit_segments("408-1234567-7654321") == ["408", "1234567", "7654321"]
        assert order_id_digit_segments(None) == []

    def test_normalize_confusions(self):
        assert normalize_digit_confusions("4O8-I2S") == "408-125"
