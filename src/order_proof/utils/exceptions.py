# ============================================================================
# src/order_proof/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the order proof engine.

Expected failure paths (timeouts, parse failures, unconfigured model) travel
as ``Outcome`` values; these classes name them and are raised only where a
caller explicitly asks for an exception (``Outcome.unwrap``) or at boundaries
the engine does not own.
"""

import re
from typing import List, Optional


MAX_ERROR_MESSAGE_CHARS = 300


class OrderProofError(Exception):
    """Base exception for all order proof errors."""
    pass


class ConfigurationError(OrderProofError):
    """Invalid configuration."""
    pass


class InputRejectedError(OrderProofError):
    """Submitted image is too large or over the estimated cost budget."""
    def __init__(self, message: str, reason: str = "too_large"):
        super().__init__(message)
        self.reason = reason


class InvalidImageError(OrderProofError):
    """Submitted payload is not a decodable image."""
    pass


class RecognitionError(OrderProofError):
    """Error from the text recognition engine."""
    pass


class RecognitionTimeoutError(RecognitionError):
    """Recognition pass exceeded its deadline."""
    pass


class PoolClosedError(RecognitionError):
    """Worker pool was used after shutdown."""
    pass


class ModelError(OrderProofError):
    """Error from the vision/language model service."""
    pass


class ModelTimeoutError(ModelError):
    """Model call exceeded its deadline."""
    pass


class ResponseParseError(ModelError):
    """Model response did not match the requested schema."""
    pass


class ModelFallbackExhausted(ModelError):
    """Every configured model version failed."""
    def __init__(self, message: str, attempts: Optional[List[str]] = None):
        super().__init__(message)
        self.attempts = attempts or []


_TRACEBACK_RE = re.compile(r'Traceback \(most recent call last\):.*', re.DOTALL)
_FRAME_RE = re.compile(r'^\s*File ".*", line \d+.*$', re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r'```.*?```', re.DOTALL)


def sanitize_error_message(
    error: object,
    max_chars: int = MAX_ERROR_MESSAGE_CHARS,
) -> str:
    """
    Turn an exception (or message) into a short single-line string safe to
    put in result notes: tracebacks and code blocks stripped, truncated.
    """
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
    else:
        message = str(error or "")

    message = _TRACEBACK_RE.sub('', message)
    message = _FRAME_RE.sub('', message)
    message = _CODE_BLOCK_RE.sub('', message)
    message = ' '.join(message.split())
    if not message:
        message = "Unknown error"
    if len(message) > max_chars:
        message = message[:max_chars - 3].rstrip() + "..."
    return message
