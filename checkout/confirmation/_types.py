"""
Confirmation types.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from kungfu import Result

from checkout.continuation import CheckoutContinuation
from checkout.errors import CheckoutError


class ConfirmationState(Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    AWAITING_REDIRECT = "awaiting_redirect"
    # Back from the gateway, bank has not settled yet
    PROCESSING = "processing"


@dataclass(frozen=True, slots=True)
class CapturedPayment:
    """
    A payment the gateway reports as captured.

    continuation is None when the checkout context could not be recovered;
    the order then has to be built from gateway data alone.
    """

    payment_reference: str
    amount_minor: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict[str, str])
    continuation: CheckoutContinuation | None = None


@dataclass(frozen=True, slots=True)
class Confirmed[T]:
    state: ConfirmationState
    value: T | None = None
    redirect_url: str | None = None


class SettledOutcomes[T]:
    """
    Settled confirmations by payment reference, least recently used evicted.

    Only successes are kept. The unique payment reference in the datastore
    is what makes settlement idempotent; this only spares a reload the
    gateway read.
    """

    def __init__(self, max_size: int = 1024) -> None:
        self._max_size = max_size
        self._entries: dict[str, T] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, reference: str) -> T | None:
        value = self._entries.pop(reference, None)
        if value is not None:
            # Move to end (most recent)
            self._entries[reference] = value
        return value

    def put(self, reference: str, value: T) -> None:
        self._entries.pop(reference, None)
        if len(self._entries) >= self._max_size:
            del self._entries[next(iter(self._entries))]
        self._entries[reference] = value


type Materialize[T] = Callable[[CapturedPayment], Awaitable[Result[T, CheckoutError]]]
"""Turns a captured payment into an order. Must be idempotent per reference."""


__all__ = (
    "ConfirmationState",
    "CapturedPayment",
    "Confirmed",
    "SettledOutcomes",
    "Materialize",
)
