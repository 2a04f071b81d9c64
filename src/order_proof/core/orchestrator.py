# ============================================================================
# src/order_proof/core/orchestrator.py
# ============================================================================
"""
Order Extraction Orchestrator

Flow:
1. INIT: decode the submitted image, reject oversized / over-budget input
2. RECOGNIZE_PASSES: one recognition pass per image variant, each fed to the
   deterministic extractor; results accumulate across passes and the loop
   exits early once both order id and amount are known
3. MODEL_REFINE: when the id or amount is still missing, the best recognized
   text and the deterministic values go to the model for correction
4. MODEL_DIRECT: when both are still missing, the model reads the image
5. SANITY_FILTER: drop id fragments read as amounts, implausible values and
   product names that are really URLs, addresses or status text
6. DONE: confidence from which stage produced each field

``extract`` never raises: any unexpected error becomes a zero-confidence
result carrying a sanitized note.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.engine_config import EngineConfig
from ..extractors.field_extractor import DeterministicFieldExtractor
from ..extractors.order_id import sanitize_order_id
from ..extractors.sanity import apply_sanity_filters
from ..ocr.pass_runner import RecognitionPassRunner
from ..preprocessors.image_preprocessor import ImagePreprocessor
from ..utils.exceptions import InvalidImageError, sanitize_error_message
from ..utils.image_utils import ImageInput, assess_input, decode_image_input, prepare_for_model
from ..utils.logging import text_preview
from ..verification.matching import amounts_match, closest_amount, identifier_in_text, identifiers_match
from ..vlm.adapter import ModelAdapter
from ..vlm.prompts import build_direct_prompt, build_refine_prompt
from ..vlm.schemas import DirectOrderExtraction, OrderTextRefinement
from .outcome import ErrorKind
from .types import (
    ExtractionResult,
    ExtractionStage,
    FieldSource,
    RecognitionPassResult,
)

logger = logging.getLogger(__name__)

ACCUMULATED_FIELDS = ('order_id', 'amount', 'order_date', 'sold_by', 'product_name')
MANUAL_REVIEW_NOTE = "Auto extraction unavailable. Please verify manually."
UNREADABLE_NOTE = "Could not read any text from the screenshot. Please upload a clearer image."

CONFIDENCE_BOTH_DETERMINISTIC = 85
CONFIDENCE_MODEL_VERIFIED_MIX = 75
CONFIDENCE_SINGLE_DETERMINISTIC = 72
CONFIDENCE_SINGLE_MODEL_VERIFIED = 65
CONFIDENCE_MODEL_ONLY = 55
CONFIDENCE_SINGLE_MODEL_ONLY = 45
CONFIDENCE_NOTHING_FOUND = 25
CONFIDENCE_UNREADABLE = 15

_TRUSTED = (FieldSource.DETERMINISTIC, FieldSource.MODEL_CONFIRMED)


def _single_field_tier(source: Optional[FieldSource]) -> int:
    if source in _TRUSTED:
        return CONFIDENCE_SINGLE_DETERMINISTIC
    if source is FieldSource.MODEL_VERIFIED:
        return CONFIDENCE_SINGLE_MODEL_VERIFIED
    return CONFIDENCE_SINGLE_MODEL_ONLY


@dataclass
class RecognitionState:
    """What the recognition passes produced so far."""
    result: ExtractionResult = field(default_factory=ExtractionResult)
    texts: list = field(default_factory=list)
    best_text: str = ""
    best_text_score: int = -1
    passes: int = 0

    @property
    def all_text(self) -> str:
        return '\n'.join(self.texts)


class ExtractionOrchestrator:
    """
    Coordinates preprocessing, recognition passes, deterministic extraction
    and the model fallbacks for one screenshot.

    Example:
        orchestrator = ExtractionOrchestrator(preprocessor, passes, extractor, adapter, config)
        result = await orchestrator.extract(image_bytes)
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor,
        passes: RecognitionPassRunner,
        extractor: DeterministicFieldExtractor,
        adapter: ModelAdapter,
        config: Optional[EngineConfig] = None,
    ):
        self.preprocessor = preprocessor
        self.passes = passes
        self.extractor = extractor
        self.adapter = adapter
        self.config = config or EngineConfig()

        self.thresholds = self.config.thresholds
        self.limits = self.config.limits

    # ========================================================================
    # MAIN PIPELINE
    # ========================================================================

    async def extract(self, image: ImageInput) -> ExtractionResult:
        try:
            return await self._extract(image)
        except Exception as e:
            logger.error(f"Order extraction failed: {e}", exc_info=True)
            result = ExtractionResult(confidence_score=0)
            result.add_note(f"Extraction failed: {sanitize_error_message(e)}")
            result.add_note(MANUAL_REVIEW_NOTE)
            return result

    async def _extract(self, image: ImageInput) -> ExtractionResult:
        self._stage(ExtractionStage.INIT)
        try:
            image_bytes = decode_image_input(image)
        except InvalidImageError as e:
            return self._rejected(sanitize_error_message(e))

        admitted = assess_input(
            image_bytes,
            self.limits.AI_MAX_IMAGE_CHARS,
            self.limits.AI_MAX_ESTIMATED_TOKENS,
        )
        if not admitted.ok:
            logger.warning(f"Extraction input rejected: {admitted.message}")
            return self._rejected(admitted.message)

        self._stage(ExtractionStage.RECOGNIZE_PASSES)
        state = await self._recognize(image_bytes)
        result = state.result

        if (not result.order_id or result.amount is None) and self.adapter.configured and state.best_text:
            self._stage(ExtractionStage.MODEL_REFINE)
            await self._refine(state)

        if not result.order_id and result.amount is None and self.adapter.configured:
            self._stage(ExtractionStage.MODEL_DIRECT)
            await self._direct(state, image_bytes)

        self._stage(ExtractionStage.SANITY_FILTER)
        apply_sanity_filters(result, ceiling=self.thresholds.AMOUNT_CEILING)

        self._finalize(result)
        self._stage(ExtractionStage.DONE)
        logger.info(
            f"Extraction done: order_id={result.order_id!r} amount={result.amount} "
            f"confidence={result.confidence_score} passes={state.passes}"
        )
        return result

    # ========================================================================
    # RECOGNITION PASSES
    # ========================================================================

    async def _recognize(self, image_bytes: bytes) -> RecognitionState:
        state = RecognitionState()
        variants = await self.preprocessor.variants(image_bytes)

        def consume(pass_result: RecognitionPassResult) -> bool:
            state.passes += 1
            if not pass_result.has_text:
                return False
            text = pass_result.recognized_text
            state.texts.append(text)
            state.result.recognized_text_found = True

            partial = self.extractor.extract(text)
            pass_score = sum(partial.field_scores.values())
            if pass_score > state.best_text_score:
                state.best_text, state.best_text_score = text, pass_score

            logger.debug(
                f"[{pass_result.variant_label}] order_id={partial.order_id!r} "
                f"amount={partial.amount} text={text_preview(text, 160)!r}"
            )
            self.accumulate(state.result, partial)
            return bool(state.result.order_id) and state.result.amount is not None

        await self.passes.run(variants, consume)
        return state

    def accumulate(self, result: ExtractionResult, partial: ExtractionResult) -> None:
        """
        Merge one pass into the running result: unset fields are filled, a
        set field is replaced only by a strictly higher-scored value, and
        between equal-scored differing amounts the one in the typical range
        wins.
        """
        for name in ACCUMULATED_FIELDS:
            value = partial.get(name)
            if value is None:
                continue
            score = partial.field_scores.get(name, 0)
            current = result.get(name)
            if current is None:
                result.set_field(name, value, score, FieldSource.DETERMINISTIC)
                continue

            current_score = result.field_scores.get(name, 0)
            if score > current_score:
                logger.debug(f"{name}: {current!r} (score {current_score}) -> {value!r} (score {score})")
                result.set_field(name, value, score, FieldSource.DETERMINISTIC)
            elif (
                name == 'amount'
                and score == current_score
                and value != current
                and not self._typical(current)
                and self._typical(value)
            ):
                result.set_field(name, value, score, FieldSource.DETERMINISTIC)

    def _typical(self, amount: float) -> bool:
        return self.thresholds.TYPICAL_AMOUNT_MIN <= amount <= self.thresholds.TYPICAL_AMOUNT_MAX

    # ========================================================================
    # MODEL STEPS
    # ========================================================================

    async def _refine(self, state: RecognitionState) -> None:
        result = state.result
        prompt = build_refine_prompt(state.best_text, result.order_id, result.amount)
        outcome = await self.adapter.call(
            prompt,
            OrderTextRefinement,
            max_tokens=self.limits.AI_MAX_OUTPUT_TOKENS_EXTRACT,
        )
        if not outcome.ok:
            self._model_unavailable(result, "refinement", outcome)
            return

        suggestion: OrderTextRefinement = outcome.value
        confident = suggestion.confidence_score >= self.thresholds.MODEL_ACCEPT_CONFIDENCE
        text = state.all_text

        order_id = sanitize_order_id(suggestion.suggested_order_id)
        if order_id:
            if result.order_id:
                if identifiers_match(result.order_id, order_id):
                    result.field_sources['order_id'] = FieldSource.MODEL_CONFIRMED
                else:
                    result.add_note(f"Model suggested a different order ID ({order_id}); kept recognized value.")
            elif identifier_in_text(order_id, text):
                result.set_field('order_id', order_id, 0, FieldSource.MODEL_VERIFIED)
                result.add_note("Order ID suggested by model and found in recognized text.")
            elif confident:
                result.set_field('order_id', order_id, 0, FieldSource.MODEL_ONLY)
                result.add_note("Order ID suggested by model (not found in recognized text).")

        amount = suggestion.suggested_amount
        if amount is not None and 0 < amount <= self.thresholds.AMOUNT_CEILING:
            if result.amount is not None:
                if amounts_match(result.amount, amount):
                    result.field_sources['amount'] = FieldSource.MODEL_CONFIRMED
                else:
                    result.add_note(f"Model suggested a different amount ({amount:g}); kept recognized value.")
            else:
                verified = closest_amount(amount, self.extractor.amounts.all_amounts(text, result.order_id))
                if verified is not None:
                    result.set_field('amount', verified, 0, FieldSource.MODEL_VERIFIED)
                    result.add_note("Amount suggested by model and found in recognized text.")
                elif confident:
                    result.set_field('amount', amount, 0, FieldSource.MODEL_ONLY)
                    result.add_note("Amount suggested by model (not found in recognized text).")

    async def _direct(self, state: RecognitionState, image_bytes: bytes) -> None:
        result = state.result
        loop = asyncio.get_running_loop()
        image_b64 = await loop.run_in_executor(
            None, prepare_for_model, image_bytes, self.config.model.MODEL_MAX_IMAGE_DIM
        )
        outcome = await self.adapter.call(
            build_direct_prompt(state.best_text),
            DirectOrderExtraction,
            image_b64=image_b64,
            max_tokens=self.limits.AI_MAX_OUTPUT_TOKENS_EXTRACT,
        )
        if not outcome.ok:
            self._model_unavailable(result, "image extraction", outcome)
            return

        extracted: DirectOrderExtraction = outcome.value
        text = state.all_text

        order_id = sanitize_order_id(extracted.order_id)
        if order_id and not result.order_id:
            source = FieldSource.MODEL_VERIFIED if identifier_in_text(order_id, text) else FieldSource.MODEL_ONLY
            result.set_field('order_id', order_id, 0, source)

        amount = extracted.amount
        if amount is not None and 0 < amount <= self.thresholds.AMOUNT_CEILING and result.amount is None:
            verified = closest_amount(amount, self.extractor.amounts.all_amounts(text, result.order_id)) if text else None
            source = FieldSource.MODEL_VERIFIED if verified is not None else FieldSource.MODEL_ONLY
            result.set_field('amount', amount, 0, source)

        for name in ('order_date', 'sold_by', 'product_name'):
            value = getattr(extracted, name)
            if value and result.get(name) is None:
                result.set_field(name, value, 0, FieldSource.MODEL_ONLY)

        if result.order_id or result.amount is not None:
            result.add_note(f"Order details read from the image by model ({outcome.source}).")

    @staticmethod
    def _model_unavailable(result: ExtractionResult, step: str, outcome) -> None:
        if outcome.error_kind is ErrorKind.UNCONFIGURED:
            return
        kinds = ", ".join(kind.value for kind in outcome.attempt_kinds) or outcome.error_kind.value
        logger.info(f"Model {step} gave no suggestion ({kinds}): {outcome.message}")
        result.add_note(f"Model {step} unavailable: {sanitize_error_message(outcome.message, 160)}")

    # ========================================================================
    # CONFIDENCE
    # ========================================================================

    @staticmethod
    def score_confidence(result: ExtractionResult) -> int:
        """
        Confidence tier from the stages that produced the order id and amount.
        A second field never scores below what the better field earns alone.
        """
        sources = [
            result.field_sources.get(name)
            for name in ('order_id', 'amount')
            if result.get(name) is not None
        ]
        if not sources:
            return CONFIDENCE_NOTHING_FOUND if result.recognized_text_found else CONFIDENCE_UNREADABLE

        single = max(_single_field_tier(s) for s in sources)
        if len(sources) == 1:
            return single

        if all(s in _TRUSTED for s in sources):
            both = CONFIDENCE_BOTH_DETERMINISTIC
        elif FieldSource.MODEL_ONLY not in sources:
            both = CONFIDENCE_MODEL_VERIFIED_MIX
        else:
            both = CONFIDENCE_MODEL_ONLY
        return max(both, single)

    def _finalize(self, result: ExtractionResult) -> None:
        result.set_confidence(self.score_confidence(result))

        if result.field_sources.get('order_id') in _TRUSTED:
            result.add_note("Deterministic order ID extracted.")
        if result.field_sources.get('amount') in _TRUSTED:
            result.add_note("Deterministic amount extracted.")
        if not result.recognized_text_found and not result.order_id and result.amount is None:
            result.add_note(UNREADABLE_NOTE)
            return
        if not result.order_id:
            result.add_note("Order ID not found.")
        if result.amount is None:
            result.add_note("Amount not found.")

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _rejected(reason: Optional[str]) -> ExtractionResult:
        result = ExtractionResult(confidence_score=0)
        if reason:
            result.add_note(f"Input rejected: {reason}.")
        result.add_note(MANUAL_REVIEW_NOTE)
        return result

    @staticmethod
    def _stage(stage: ExtractionStage) -> None:
        logger.debug(f"Extraction stage: {stage.value}")
