# ============================================================================
# tests/unit/test_orchestrator.py
# ============================================================================
"""
Tests for the order extraction pipeline

Recognition and the model are replaced by scripted fakes (see conftest),
so every test drives the real preprocessing, pass runner, extractors and
confidence scoring.
"""

from unittest.mock import patch

import pytest

from order_proof.config import LimitSettings, OCRSettings
from order_proof.core.orchestrator import (
    MANUAL_REVIEW_NOTE,
    UNREADABLE_NOTE,
    ExtractionOrchestrator,
)
from order_proof.core.types import ExtractionResult, FieldSource
from order_proof.utils.exceptions import ModelError, RecognitionError

AMOUNT_ONLY_TEXT = "Grand Total: ₹1,499.00"
ID_ONLY_TEXT = "Order ID: 408-1234567-7654321"
NO_FIELDS_TEXT = "Thank you for shopping with us"


class TestDeterministicExtraction:
    """Recognition passes without the model"""

    @pytest.mark.asyncio
    async def test_amazon_screenshot(self, make_service, png_bytes, amazon_order_text):
        service = make_service(default=amazon_order_text)

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id == "408-1234567-7654321"
        assert result.amount == 1499
        assert result.confidence_score == 85
        assert "Deterministic order ID extracted." in result.notes
        assert "Deterministic amount extracted." in result.notes

    @pytest.mark.asyncio
    async def test_early_exit_after_both_fields(self, make_service, png_bytes, amazon_order_text):
        """Passes stop as soon as id and amount are known"""
        service = make_service(default=amazon_order_text)
        await service.orchestrator.extract(png_bytes)
        assert service.engine_factory.calls == 1
        assert len(service.engine_factory.engines) == 1

    @pytest.mark.asyncio
    async def test_fields_accumulate_across_passes(self, make_service, png_bytes):
        """One variant reads the id, a later one the amount"""
        service = make_service(texts=[ID_ONLY_TEXT, "", AMOUNT_ONLY_TEXT])

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id == "408-1234567-7654321"
        assert result.amount == 1499
        assert result.confidence_score == 85

    @pytest.mark.asyncio
    async def test_single_field(self, make_service, png_bytes):
        service = make_service(default=AMOUNT_ONLY_TEXT)

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id is None
        assert result.confidence_score == 72
        assert "Order ID not found." in result.notes

    @pytest.mark.asyncio
    async def test_nothing_found(self, make_service, png_bytes):
        service = make_service(default=NO_FIELDS_TEXT)
        result = await service.orchestrator.extract(png_bytes)
        assert result.confidence_score == 25
        assert result.recognized_text_found


class TestRejectedInput:
    """Input that never reaches recognition"""

    @pytest.mark.asyncio
    async def test_oversized_image(self, make_service, make_config, png_bytes):
        config = make_config(ai_enabled=False, limits=LimitSettings(AI_MAX_IMAGE_CHARS=100))
        service = make_service(config=config)

        result = await service.orchestrator.extract(png_bytes)

        assert result.confidence_score == 0
        assert MANUAL_REVIEW_NOTE in result.notes
        assert any("too large" in note for note in result.notes)
        assert service.engine_factory.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_base64(self, make_service):
        service = make_service()
        result = await service.orchestrator.extract("not base64 !!!")
        assert result.confidence_score == 0
        assert result.notes[-1] == MANUAL_REVIEW_NOTE


class TestUnreadableImage:
    """Every pass failing or timing out"""

    @pytest.mark.asyncio
    async def test_engine_errors(self, make_service, png_bytes):
        service = make_service(error=RecognitionError("engine crashed"))

        result = await service.orchestrator.extract(png_bytes)

        assert result.confidence_score == 15
        assert not result.recognized_text_found
        assert UNREADABLE_NOTE in result.notes

    @pytest.mark.asyncio
    async def test_pass_timeouts(self, make_service, make_config, png_bytes):
        """Slow passes are abandoned at the per-pass deadline"""
        config = make_config(
            ai_enabled=False,
            ocr=OCRSettings(
                OCR_POOL_SIZE=1,
                OCR_TIMEOUT_SECONDS=0.05,
                OCR_PASS_PARALLELISM=1,
                OCR_EXECUTOR_WORKERS=2,
            ),
        )
        service = make_service(default="late text", delay=0.2, config=config)

        result = await service.orchestrator.extract(png_bytes)

        assert result.confidence_score == 15
        assert UNREADABLE_NOTE in result.notes
        assert service.pool.get_statistics()['timeouts'] >= 1


class TestModelRefinement:
    """Model suggestions for fields recognition missed"""

    @pytest.mark.asyncio
    async def test_confident_model_only_id(self, make_service, png_bytes):
        """An id not in the text is accepted on high model confidence"""
        service = make_service(
            default=AMOUNT_ONLY_TEXT,
            responses=[{"suggested_order_id": "408-1234567-7654321", "confidence_score": 90}],
        )

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id == "408-1234567-7654321"
        assert result.field_sources['order_id'] is FieldSource.MODEL_ONLY
        assert result.confidence_score == 72
        assert "Order ID suggested by model (not found in recognized text)." in result.notes

    @pytest.mark.asyncio
    async def test_low_confidence_suggestion_ignored(self, make_service, png_bytes):
        service = make_service(
            default=AMOUNT_ONLY_TEXT,
            responses=[{"suggested_order_id": "408-1234567-7654321", "confidence_score": 50}],
        )

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id is None
        assert result.confidence_score == 72

    @pytest.mark.asyncio
    async def test_agreeing_model_confirms(self, make_service, png_bytes):
        """A confirmed id keeps its score when the model adds an unverified amount"""
        service = make_service(
            default=ID_ONLY_TEXT,
            responses=[{
                "suggested_order_id": "4081234567654321",
                "suggested_amount": 1499,
                "confidence_score": 90,
            }],
        )

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id == "408-1234567-7654321"
        assert result.field_sources['order_id'] is FieldSource.MODEL_CONFIRMED
        assert result.field_sources['amount'] is FieldSource.MODEL_ONLY
        assert result.confidence_score == 72

    @pytest.mark.asyncio
    async def test_conflicting_suggestion_keeps_recognized_value(self, make_service, png_bytes):
        service = make_service(
            default=ID_ONLY_TEXT,
            responses=[{"suggested_order_id": "171-9999999-1111111", "confidence_score": 95}],
        )

        result = await service.orchestrator.extract(png_bytes)

        assert result.order_id == "408-1234567-7654321"
        assert any("different order ID" in note for note in result.notes)

    @pytest.mark.asyncio
    async def test_refinement_unavailable(self, make_service, png_bytes):
        """Model failure leaves the deterministic result and a note"""
        service = make_service(
            default=AMOUNT_ONLY_TEXT,
            responses=[ModelError("down"), ModelError("still down")],
        )

        result = await service.orchestrator.extract(png_bytes)

        assert result.amount == 1499
        assert result.confidence_score == 72
        assert any(note.startswith("Model refinement unavailable") for note in result.notes)

    @pytest.mark.asyncio
    async def test_direct_extraction_when_both_missing(self, make_service, png_bytes):
        """An empty refinement falls through to reading the image"""
        service = make_service(
            default=NO_FIELDS_TEXT,
            responses=[{}, {"order_id": "OD432198765123456", "amount": 899, "confidence_score": 80}],
        )

        result = await service.orchestrator.extract(png_bytes)

        calls = service.vision_client.calls
        assert len(calls) == 2
        assert calls[0]['image_b64'] is None
        assert calls[1]['image_b64']
        assert result.order_id == "OD432198765123456"
        assert result.amount == 899
        assert result.confidence_score == 55
        assert "Order details read from the image by model (model-a)." in result.notes

    @pytest.mark.asyncio
    async def test_direct_extraction_without_text(self, make_service, png_bytes):
        """No recognized text skips refinement and goes straight to the image"""
        service = make_service(default="", responses=[{"amount": 899, "confidence_score": 70}])

        result = await service.orchestrator.extract(png_bytes)

        assert len(service.vision_client.calls) == 1
        assert result.amount == 899
        assert result.confidence_score == 45


class TestConfidence:
    """Confidence tiers from field sources"""

    @staticmethod
    def _result(order_source=None, amount_source=None, text_found=True):
        result = ExtractionResult(recognized_text_found=text_found)
        if order_source:
            result.set_field('order_id', "408-1234567-7654321", 10, order_source)
        if amount_source:
            result.set_field('amount', 1499.0, 4, amount_source)
        return result

    @pytest.mark.parametrize("order_source,amount_source,expected", [
        (FieldSource.MODEL_CONFIRMED, FieldSource.DETERMINISTIC, 85),
        (FieldSource.DETERMINISTIC, FieldSource.DETERMINISTIC, 85),
        (FieldSource.DETERMINISTIC, FieldSource.MODEL_VERIFIED, 75),
        (FieldSource.MODEL_VERIFIED, FieldSource.MODEL_ONLY, 65),
        (FieldSource.DETERMINISTIC, FieldSource.MODEL_ONLY, 72),
        (FieldSource.MODEL_ONLY, FieldSource.MODEL_ONLY, 55),
        (FieldSource.DETERMINISTIC, None, 72),
        (None, FieldSource.MODEL_VERIFIED, 65),
        (FieldSource.MODEL_ONLY, None, 45),
        (None, None, 25),
    ])
    def test_tiers(self, order_source, amount_source, expected):
        result = self._result(order_source, amount_source)
        assert ExtractionOrchestrator.score_confidence(result) == expected

    def test_unreadable(self):
        result = self._result(text_found=False)
        assert ExtractionOrchestrator.score_confidence(result) == 15


class TestAccumulate:
    """Merge rules between passes"""

    @staticmethod
    def _amount(value, score):
        result = ExtractionResult()
        result.set_field('amount', value, score, FieldSource.DETERMINISTIC)
        return result

    def test_higher_score_replaces(self, make_service):
        orchestrator = make_service().orchestrator
        result = self._amount(999.0, 2)
        orchestrator.accumulate(result, self._amount(1499.0, 4))
        assert result.amount == 1499.0

    def test_lower_score_kept_out(self, make_service):
        orchestrator = make_service().orchestrator
        result = self._amount(1499.0, 4)
        orchestrator.accumulate(result, self._amount(999.0, 2))
        assert result.amount == 1499.0

    def test_tie_prefers_typical_range(self, make_service):
        """Between equal scores, an amount in the typical range wins"""
        orchestrator = make_service().orchestrator

        result = self._amount(120000.0, 4)
        orchestrator.accumulate(result, self._amount(1499.0, 4))
        assert result.amount == 1499.0

        result = self._amount(1499.0, 4)
        orchestrator.accumulate(result, self._amount(120000.0, 4))
        assert result.amount == 1499.0


class TestNeverRaises:

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_result(self, make_service, png_bytes):
        service = make_service()
        orchestrator = service.orchestrator

        with patch.object(orchestrator, '_recognize', side_effect=RuntimeError("boom")):
            result = await orchestrator.extract(png_bytes)

        assert result.confidence_score == 0
        assert "Extraction failed: boom" in result.notes
        assert MANUAL_REVIEW_NOTE in result.notes
