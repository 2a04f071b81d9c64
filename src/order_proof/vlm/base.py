# ============================================================================
# src/order_proof/vlm/base.py
# ============================================================================
"""
Base Vision/Language Model Client Interface

Defines the interface every model backend implements. A backend exposes a
single ``generate`` call taking a prompt, an optional image and a response
schema, addressed by model version so the adapter can walk a fallback list.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from json_repair import repair_json

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r'```(?:json)?\s*(.*?)```', re.DOTALL | re.IGNORECASE)


def _outermost_object(text: str) -> Optional[str]:
    start = text.find('{')
    end = text.rfind('}')
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_model_json(response_text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Recover a JSON object from model output.

    Models wrap JSON in code fences or prose, or emit trailing commas and
    single quotes. Tries, in order: direct parse, fenced block, outermost
    ``{...}`` span, then json_repair on that span. Returns None when nothing
    object-shaped can be recovered.
    """
    if not response_text or not response_text.strip():
        return None
    text = response_text.strip()

    attempts = [text]
    fenced = CODE_BLOCK_RE.search(text)
    if fenced:
        attempts.append(fenced.group(1).strip())
    span = _outermost_object(fenced.group(1) if fenced else text)
    if span:
        attempts.append(span)

    for candidate in attempts:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed

    target = span or text
    try:
        repaired = repair_json(target, return_objects=True)
    except Exception as e:
        logger.debug(f"json_repair failed: {e}")
        return None
    if isinstance(repaired, dict) and repaired:
        logger.debug("json_repair recovered model output")
        return repaired

    logger.debug(f"Could not parse JSON from model output: {text[:200]}...")
    return None


class BaseVisionClient(ABC):
    """
    Abstract base class for vision/language model clients.

    All backends must implement:
    - generate(): async generation for one model version
    - health_check(): verify a model version is reachable
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

        self._inference_count = 0
        self._error_count = 0
        self._total_inference_time = 0.0

    @property
    @abstractmethod
    def backend(self) -> str:
        pass

    @property
    def configured(self) -> bool:
        """Whether the backend has what it needs to accept calls."""
        return True

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        image_b64: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Generate a response.

        Returns:
            {
                "text": str,             # raw model output
                "model": str,            # model version that answered
                "backend": str,
                "inference_time": float  # seconds
            }
        """
        pass

    @abstractmethod
    async def health_check(self, model: str) -> Dict[str, Any]:
        """
        Returns:
            {"healthy": bool, "backend": str, "model": str, "details": str}
        """
        pass

    async def close(self) -> None:
        pass

    def get_statistics(self) -> Dict[str, Any]:
        avg_time = (
            self._total_inference_time / self._inference_count
            if self._inference_count > 0
            else 0.0
        )
        return {
            "backend": self.backend,
            "inference_count": self._inference_count,
            "error_count": self._error_count,
            "total_inference_time": self._total_inference_time,
            "average_inference_time": avg_time,
        }
