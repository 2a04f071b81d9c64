# ============================================================================
# src/order_proof/utils/__init__.py
# ============================================================================
"""
Utility modules for the order proof engine.
"""

from .exceptions import (
    OrderProofError,
    ConfigurationError,
    InputRejectedError,
    InvalidImageError,
    RecognitionError,
    RecognitionTimeoutError,
    PoolClosedError,
    ModelError,
    ModelTimeoutError,
    ResponseParseError,
    ModelFallbackExhausted,
    sanitize_error_message,
)

from .logging import (
    setup_logging,
    set_ocr_debug,
    log_performance,
    text_preview,
)

from .image_utils import (
    decode_image_input,
    assess_input,
    image_digest,
    prepare_for_model,
)

__all__ = [
    # Exceptions
    'OrderProofError',
    'ConfigurationError',
    'InputRejectedError',
    'InvalidImageError',
    'RecognitionError',
    'RecognitionTimeoutError',
    'PoolClosedError',
    'ModelError',
    'ModelTimeoutError',
    'ResponseParseError',
    'ModelFallbackExhausted',
    'sanitize_error_message',
    # Logging
    'setup_logging',
    'set_ocr_debug',
    'log_performance',
    'text_preview',
    # Images
    'decode_image_input',
    'assess_input',
    'image_digest',
    'prepare_for_model',
]
