# ============================================================================
# src/order_proof/vlm/__init__.py
# ============================================================================
"""
Vision/language model layer: client interface, Ollama backend, response
schemas, prompts and the fallback adapter.
"""

from .base import BaseVisionClient, parse_model_json
from .ollama_client import OllamaVisionClient
from .adapter import ModelAdapter
from .schemas import (
    ModelResponse,
    OrderTextRefinement,
    DirectOrderExtraction,
    PurchaseProofResponse,
    RatingProofResponse,
    ReturnWindowProofResponse,
)
from .prompts import (
    PromptTask,
    PromptTemplate,
    OrderProofPrompts,
    build_refine_prompt,
    build_direct_prompt,
    build_purchase_prompt,
    build_rating_prompt,
    build_return_window_prompt,
)

__all__ = [
    'BaseVisionClient',
    'parse_model_json',
    'OllamaVisionClient',
    'ModelAdapter',
    'ModelResponse',
    'OrderTextRefinement',
    'DirectOrderExtraction',
    'PurchaseProofResponse',
    'RatingProofResponse',
    'ReturnWindowProofResponse',
    'PromptTask',
    'PromptTemplate',
    'OrderProofPrompts',
    'build_refine_prompt',
    'build_direct_prompt',
    'build_purchase_prompt',
    'build_rating_prompt',
    'build_return_window_prompt',
]
