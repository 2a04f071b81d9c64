# ============================================================================
# src/order_proof/vlm/adapter.py
# ============================================================================
"""
External Model Adapter

Walks an ordered list of model versions for one prompt. Each attempt gets
its own deadline; a timeout, a backend error and an unparseable response
are all recorded and the next version is tried. Nothing here raises for an
expected failure: the caller gets an ``Outcome`` and decides what "no
suggestion" means for it.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Type

from pydantic import ValidationError

from ..core.deadline import Deadline
from ..core.outcome import Attempt, ErrorKind, Outcome
from ..utils.exceptions import sanitize_error_message
from .base import BaseVisionClient, parse_model_json
from .schemas import ModelResponse

logger = logging.getLogger(__name__)


class ModelAdapter:
    """
    Fallback chain over ``model_versions`` for a single vision client.

    Example:
        adapter = ModelAdapter(client, ["qwen2.5vl:7b", "llava:13b"], timeout=18.0)
        outcome = await adapter.call(prompt, PurchaseProofResponse, image_b64=b64)
        if outcome.ok:
            response = outcome.value
    """

    def __init__(
        self,
        client: Optional[BaseVisionClient],
        model_versions: Sequence[str],
        timeout: float = 18.0,
        enabled: bool = True,
        temperature: Optional[float] = None,
    ):
        self.client = client
        self.model_versions = [m for m in model_versions if m]
        self.timeout = timeout
        self.enabled = enabled
        self.temperature = temperature

    @property
    def configured(self) -> bool:
        return bool(
            self.enabled
            and self.client is not None
            and self.client.configured
            and self.model_versions
        )

    async def call(
        self,
        prompt: str,
        schema: Type[ModelResponse],
        image_b64: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Outcome:
        """
        Try each model version in order until one returns a response that
        validates against ``schema``.

        Every failed version is recorded as an ``Attempt``: TIMEOUT when its
        deadline passed, MODEL_ERROR for a backend failure, NO_DATA for a
        reply that is not JSON, PARSE_FAILURE for JSON that does not match
        ``schema``.

        Returns:
            Outcome whose value is a ``schema`` instance and whose source is
            the model version that produced it; on exhaustion an EXHAUSTED
            outcome carrying every attempt.
        """
        if not self.configured:
            return Outcome.failure(ErrorKind.UNCONFIGURED, "vision model not configured")

        attempts: List[Attempt] = []
        response_schema = schema.response_schema()

        for model in self.model_versions:
            deadline = Deadline.after(self.timeout)
            try:
                response = await asyncio.wait_for(
                    self.client.generate(
                        prompt,
                        model=model,
                        image_b64=image_b64,
                        response_schema=response_schema,
                        max_tokens=max_tokens,
                        temperature=self.temperature,
                    ),
                    timeout=deadline.remaining(),
                )
            except asyncio.TimeoutError:
                attempts.append(Attempt(model, ErrorKind.TIMEOUT, f"timed out after {self.timeout:.0f}s"))
                logger.warning(f"Model call {attempts[-1]}")
                continue
            except Exception as e:
                attempts.append(Attempt(model, ErrorKind.MODEL_ERROR, sanitize_error_message(e)))
                logger.warning(f"Model call failed, {attempts[-1]}")
                continue

            text = response.get('text') if isinstance(response, dict) else response
            parsed = parse_model_json(text)
            if parsed is None:
                attempts.append(Attempt(model, ErrorKind.NO_DATA, "response was not JSON"))
                logger.info(f"{model} returned unparseable output, trying next model")
                continue

            try:
                value = schema.model_validate(parsed)
            except ValidationError as e:
                attempts.append(Attempt(
                    model,
                    ErrorKind.PARSE_FAILURE,
                    f"response did not match {schema.__name__} ({e.error_count()} errors)",
                ))
                logger.info(f"{model} response failed {schema.__name__} validation")
                continue

            logger.debug(f"{schema.__name__} answered by {model} "
                         f"(confidence {value.confidence_score})")
            return Outcome.success(value, source=model, attempts=attempts)

        message = "All model versions failed: " + "; ".join(str(a) for a in attempts)
        return Outcome.failure(ErrorKind.EXHAUSTED, sanitize_error_message(message), attempts)

    async def check(self) -> Outcome:
        """
        Health check over the version list.

        Returns the first healthy model version as the value, or a failure
        carrying the last sanitized reason.
        """
        if not self.configured:
            return Outcome.failure(ErrorKind.UNCONFIGURED, "vision model not configured")

        attempts: List[Attempt] = []
        for model in self.model_versions:
            try:
                status = await asyncio.wait_for(self.client.health_check(model), timeout=self.timeout)
            except asyncio.TimeoutError:
                attempts.append(Attempt(model, ErrorKind.TIMEOUT, "health check timed out"))
                continue
            except Exception as e:
                attempts.append(Attempt(model, ErrorKind.MODEL_ERROR, sanitize_error_message(e)))
                continue
            if status.get('healthy'):
                return Outcome.success(model, source=model, attempts=attempts)
            details = sanitize_error_message(status.get('details', 'unhealthy'))
            attempts.append(Attempt(model, ErrorKind.MODEL_ERROR, details))

        return Outcome.failure(ErrorKind.EXHAUSTED, str(attempts[-1]) if attempts else "no models", attempts)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
