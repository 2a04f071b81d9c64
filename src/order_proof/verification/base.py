# ============================================================================
# src/order_proof/verification/base.py
# ============================================================================
"""
Base Proof Verifier

All proof verifiers follow the same flow:
1. Decode the image and reject oversized / over-budget input
2. Ask the model first when one is configured; a confident verdict with
   every required check passing is returned as-is (method ``model``)
3. Otherwise run recognition passes, matching over the accumulated text
   and stopping once every required check passes
4. Merge a model verdict (if any) with the recognizer's (method
   ``combined``), or return the recognizer's alone (method ``recognizer``)

Subclasses declare the checks, the prompt, the model response schema and
how to read each source; ``verify`` never raises.
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from ..config.engine_config import EngineConfig
from ..core.types import RecognitionPassResult, VerificationMethod, clamp_confidence
from ..extractors.field_extractor import DeterministicFieldExtractor
from ..ocr.pass_runner import RecognitionPassRunner
from ..preprocessors.image_preprocessor import ImagePreprocessor
from ..utils.exceptions import InvalidImageError, sanitize_error_message
from ..utils.image_utils import ImageInput, assess_input, decode_image_input, prepare_for_model
from ..vlm.adapter import ModelAdapter
from ..vlm.schemas import ModelResponse

logger = logging.getLogger(__name__)

MANUAL_REVIEW_NOTE = "Auto verification unavailable. Please verify manually."

RECOGNIZER_BASE_CONFIDENCE = 20
RECOGNIZER_MATCH_WEIGHT = 65
AGREEMENT_BONUS = 10


class BaseProofVerifier(ABC):
    """
    Shared model-first, recognizer-fallback verification flow.

    Subclasses set:
        kind: short name used in logs and cache keys
        response_schema: pydantic model the model must answer with
        result_type: result dataclass
        check_labels: result field -> human label for discrepancy notes
    """

    kind: str = "proof"
    response_schema: Type[ModelResponse] = ModelResponse
    result_type: type = None
    check_labels: Dict[str, str] = {}

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
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_prompt(self, expected: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def required_checks(self, expected: Dict[str, Any]) -> List[str]:
        """Result fields that must all be True for a full match."""
        pass

    @abstractmethod
    def from_model(self, response: ModelResponse, expected: Dict[str, Any]):
        """Result built from a validated model response."""
        pass

    @abstractmethod
    def match_text(self, text: str, expected: Dict[str, Any]):
        """Result built by matching expected values against recognized text."""
        pass

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    async def verify(self, image: ImageInput, **expected):
        try:
            return await self._verify(image, expected)
        except Exception as e:
            self.logger.error(f"{self.kind} verification failed: {e}", exc_info=True)
            return self.failure_result(f"Verification failed: {sanitize_error_message(e)}")

    async def _verify(self, image: ImageInput, expected: Dict[str, Any]):
        try:
            image_bytes = decode_image_input(image)
        except InvalidImageError as e:
            return self.failure_result(f"{MANUAL_REVIEW_NOTE} ({sanitize_error_message(e)})")

        limits = self.config.limits
        prompt = self.build_prompt(expected)
        admitted = assess_input(
            image_bytes,
            limits.AI_MAX_IMAGE_CHARS,
            limits.AI_MAX_ESTIMATED_TOKENS,
            prompt_chars=len(prompt),
        )
        if not admitted.ok:
            self.logger.warning(f"{self.kind} input rejected: {admitted.message}")
            return self.failure_result(MANUAL_REVIEW_NOTE)

        required = self.required_checks(expected)
        model_result = None
        model_note = None

        if self.adapter.configured:
            model_result, model_note = await self._ask_model(image_bytes, prompt, expected)
            if model_result is not None and self._model_decisive(model_result, required):
                self.logger.info(f"{self.kind} verified by model")
                return model_result

        recognizer_result = await self._recognize(image_bytes, expected, required)

        if model_result is None:
            if model_note:
                recognizer_result.discrepancy_note = _join_notes(recognizer_result.discrepancy_note, model_note)
            return recognizer_result
        return self.merge(model_result, recognizer_result, required)

    async def _ask_model(self, image_bytes: bytes, prompt: str, expected: Dict[str, Any]):
        loop = asyncio.get_running_loop()
        image_b64 = await loop.run_in_executor(
            None, prepare_for_model, image_bytes, self.config.model.MODEL_MAX_IMAGE_DIM
        )
        outcome = await self.adapter.call(
            prompt,
            self.response_schema,
            image_b64=image_b64,
            max_tokens=self.config.limits.AI_MAX_OUTPUT_TOKENS_PROOF,
        )
        if not outcome.ok:
            self.logger.info(f"{self.kind}: model gave no verdict ({outcome.message})")
            return None, f"Model verification unavailable: {sanitize_error_message(outcome.message, 160)}"

        result = self.from_model(outcome.value, expected)
        result.verification_method = VerificationMethod.MODEL
        return result, None

    def _model_decisive(self, result, required: List[str]) -> bool:
        threshold = self.config.thresholds.VERIFY_MODEL_MIN_CONFIDENCE
        return result.confidence_score >= threshold and all(getattr(result, name) for name in required)

    async def _recognize(self, image_bytes: bytes, expected: Dict[str, Any], required: List[str]):
        variants = await self.preprocessor.variants(image_bytes)
        texts: List[str] = []
        latest = {'result': None}

        def consume(pass_result: RecognitionPassResult) -> bool:
            if not pass_result.has_text:
                return False
            texts.append(pass_result.recognized_text)
            result = self.match_text('\n'.join(texts), expected)
            latest['result'] = result
            return all(getattr(result, name) for name in required)

        await self.passes.run(variants, consume)

        result = latest['result']
        if result is None:
            return self.failure_result("Could not read any text from the screenshot. Please verify manually.")

        result.verification_method = VerificationMethod.RECOGNIZER
        result.confidence_score = self.recognizer_confidence(result, required)
        result.discrepancy_note = _join_notes(result.discrepancy_note, self.discrepancy_note(result, required))
        return result

    def merge(self, model_result, recognizer_result, required: List[str]):
        """
        A check passes when either source confirms it; detected values come
        from the model when it reported them, else from recognition.
        """
        merged = copy.copy(model_result)
        agree = all(
            bool(getattr(model_result, name)) == bool(getattr(recognizer_result, name))
            for name in required
        )
        for name in required:
            setattr(merged, name, bool(getattr(model_result, name)) or bool(getattr(recognizer_result, name)))
        for name, value in vars(recognizer_result).items():
            if name.startswith('detected_') and getattr(merged, name) is None:
                setattr(merged, name, value)

        confidence = self.recognizer_confidence(merged, required)
        if agree:
            confidence += AGREEMENT_BONUS
        merged.confidence_score = clamp_confidence(confidence)
        merged.verification_method = VerificationMethod.COMBINED
        merged.discrepancy_note = self.discrepancy_note(merged, required) or None
        return merged

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def recognizer_confidence(result, required: List[str]) -> int:
        if not required:
            return clamp_confidence(RECOGNIZER_BASE_CONFIDENCE)
        matched = sum(1 for name in required if getattr(result, name))
        return clamp_confidence(RECOGNIZER_BASE_CONFIDENCE + RECOGNIZER_MATCH_WEIGHT * matched / len(required))

    def discrepancy_note(self, result, required: List[str]) -> Optional[str]:
        failed = [self.check_labels.get(name, name) for name in required if not getattr(result, name)]
        if not failed:
            return None
        return "Could not confirm: " + ", ".join(failed) + "."

    def failure_result(self, note: str):
        return self.result_type(
            confidence_score=0,
            verification_method=VerificationMethod.RECOGNIZER,
            discrepancy_note=note,
        )


def _join_notes(*notes: Optional[str]) -> Optional[str]:
    parts = [n for n in notes if n]
    return " ".join(parts) if parts else None
