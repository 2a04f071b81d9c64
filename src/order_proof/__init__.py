# ============================================================================
# src/order_proof/__init__.py
# ============================================================================
"""
Order Proof Engine

Extracts order facts (order id, paid amount, date, seller, product) from
e-commerce order screenshots and verifies purchase, rating and return-window
proofs against expected values.

The injectable unit is ``OrderProofService``. The module-level coroutines
below are conveniences that delegate to one lazily created default service:

    import order_proof

    result = await order_proof.extract_order_details(image_bytes)
    proof = await order_proof.verify_purchase_proof(image_bytes, "408-1234567-7654321", 1499)
"""

import threading
from typing import Any, Optional

from .config import EngineConfig
from .core.service import OrderProofService
from .core.types import (
    ExtractionResult,
    ProofVerificationResult,
    RatingVerificationResult,
    ReturnWindowVerificationResult,
    VerificationMethod,
)
from .utils.image_utils import ImageInput

__version__ = "0.1.0"

_default_service: Optional[OrderProofService] = None
_default_lock = threading.Lock()


def get_default_service() -> OrderProofService:
    """The process-wide service, created (with shutdown hooks) on first use."""
    global _default_service
    with _default_lock:
        if _default_service is None or _default_service.closed:
            _default_service = OrderProofService()
            _default_service.install_shutdown_hooks()
        return _default_service


async def extract_order_details(image: ImageInput) -> ExtractionResult:
    return await get_default_service().extract_order_details(image)


async def verify_purchase_proof(
    image: ImageInput,
    expected_order_id: str,
    expected_amount: Any,
) -> ProofVerificationResult:
    return await get_default_service().verify_purchase_proof(image, expected_order_id, expected_amount)


async def verify_rating_proof(
    image: ImageInput,
    expected_buyer_name: str,
    expected_product_name: str,
    expected_reviewer_name: Optional[str] = None,
) -> RatingVerificationResult:
    return await get_default_service().verify_rating_proof(
        image, expected_buyer_name, expected_product_name, expected_reviewer_name
    )


async def verify_return_window_proof(
    image: ImageInput,
    expected_order_id: str,
    expected_product_name: str,
    expected_amount: Any,
    expected_sold_by: Optional[str] = None,
) -> ReturnWindowVerificationResult:
    return await get_default_service().verify_return_window_proof(
        image, expected_order_id, expected_product_name, expected_amount, expected_sold_by
    )


__all__ = [
    'EngineConfig',
    'OrderProofService',
    'ExtractionResult',
    'ProofVerificationResult',
    'RatingVerificationResult',
    'ReturnWindowVerificationResult',
    'VerificationMethod',
    'get_default_service',
    'extract_order_details',
    'verify_purchase_proof',
    'verify_rating_proof',
    'verify_return_window_proof',
]
