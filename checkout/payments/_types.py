"""
Payment types — intents, sessions, gateway responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentStatus(Enum):
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class IntentHandle:
    """What create_intent hands back. The client secret drives confirmation."""

    intent_id: str
    client_secret: str


@dataclass(frozen=True, slots=True)
class ConfirmResponse:
    status: IntentStatus
    redirect_url: str | None = None

    @property
    def needs_redirect(self) -> bool:
        return self.status is IntentStatus.REQUIRES_ACTION and self.redirect_url is not None


@dataclass(frozen=True, slots=True)
class IntentSnapshot:
    """Authoritative gateway view of an intent, as read on return."""

    intent_id: str
    status: IntentStatus
    amount_minor: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict[str, str])


@dataclass(frozen=True, slots=True)
class PaymentSession:
    """
    One gateway intent for one checkout.

    Frozen: the amount of a session never changes. A new total means a new
    session.
    """

    session_key: str
    intent_id: str
    client_secret: str
    amount_minor: int
    currency: str
    fingerprint: str
    status: IntentStatus = IntentStatus.REQUIRES_ACTION
    metadata: dict[str, Any] = field(default_factory=dict[str, Any])

    def matches(self, amount_minor: int, fingerprint: str) -> bool:
        return self.amount_minor == amount_minor and self.fingerprint == fingerprint


__all__ = (
    "IntentStatus",
    "IntentHandle",
    "ConfirmResponse",
    "IntentSnapshot",
    "PaymentSession",
)
