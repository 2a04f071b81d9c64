# ============================================================================
# src/order_proof/core/deadline.py
# ============================================================================
"""
Deadline token passed into recognition and model calls.

A deadline is the only cancellation trigger in the engine: callees check
``expired`` before starting work and size their waits with ``remaining()``.
"""

import time


class Deadline:
    """Monotonic deadline; ``Deadline.after(seconds)`` to create one."""

    __slots__ = ('_expires_at', 'budget')

    def __init__(self, expires_at: float, budget: float):
        self._expires_at = expires_at
        self.budget = budget

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds, seconds)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s, budget={self.budget:.1f}s)"
