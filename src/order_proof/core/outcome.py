# ============================================================================
# src/order_proof/core/outcome.py
# ============================================================================
"""
Tagged outcome for expected failure paths.

Timeouts, model errors, parse failures and "nothing found" are ordinary
results of a recognition pass or model call; they travel as ``Outcome``
values so callers can tell "no suggestion" apart from a real bug.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from ..utils.exceptions import (
    InputRejectedError,
    ModelError,
    ModelFallbackExhausted,
    ModelTimeoutError,
    OrderProofError,
    RecognitionError,
    ResponseParseError,
)

T = TypeVar("T")


class ErrorKind(Enum):
    TIMEOUT = "timeout"
    MODEL_ERROR = "model_error"
    ENGINE_ERROR = "engine_error"
    PARSE_FAILURE = "parse_failure"
    NO_DATA = "no_data"
    EXHAUSTED = "exhausted"
    UNCONFIGURED = "unconfigured"
    INPUT_REJECTED = "input_rejected"


_EXCEPTIONS = {
    ErrorKind.TIMEOUT: ModelTimeoutError,
    ErrorKind.MODEL_ERROR: ModelError,
    ErrorKind.PARSE_FAILURE: ResponseParseError,
    ErrorKind.INPUT_REJECTED: InputRejectedError,
    ErrorKind.ENGINE_ERROR: RecognitionError,
}


@dataclass(frozen=True)
class Attempt:
    """One failed try inside a fallback chain."""
    source: str
    kind: ErrorKind
    reason: str

    def __str__(self) -> str:
        return f"{self.source}: {self.reason}"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    attempts: List[Attempt] = field(default_factory=list)
    source: Optional[str] = None  # model version or variant label that produced the value

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def attempt_kinds(self) -> List[ErrorKind]:
        return [attempt.kind for attempt in self.attempts]

    @classmethod
    def success(cls, value: T, source: Optional[str] = None,
                attempts: Optional[List[Attempt]] = None) -> "Outcome[T]":
        return cls(value=value, source=source, attempts=list(attempts or []))

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "",
                attempts: Optional[List[Attempt]] = None) -> "Outcome[T]":
        return cls(error_kind=kind, message=message, attempts=list(attempts or []))

    def unwrap(self) -> T:
        """Return the value or raise the exception matching the error kind."""
        if self.ok:
            return self.value
        if self.error_kind is ErrorKind.EXHAUSTED:
            raise ModelFallbackExhausted(self.message, [str(a) for a in self.attempts])
        exc_type = _EXCEPTIONS.get(self.error_kind, OrderProofError)
        raise exc_type(self.message or self.error_kind.value)
