"""
Payments — gateway protocol, implementations and session management.

    from checkout import payments as P

    sessions = P.PaymentSessionManager(P.StripeGateway(api_key), currency="gbp")
    session = await sessions.open(session_key, amount_minor, fingerprint)
"""

from checkout.payments._types import (
    IntentStatus,
    IntentHandle,
    ConfirmResponse,
    IntentSnapshot,
    PaymentSession,
)
from checkout.payments._gateway import PaymentGateway
from checkout.payments._stripe import StripeGateway
from checkout.payments._memory import InMemoryGateway, ConfirmBehaviour
from checkout.payments._session import PaymentSessionManager

__all__ = (
    "IntentStatus",
    "IntentHandle",
    "ConfirmResponse",
    "IntentSnapshot",
    "PaymentSession",
    "PaymentGateway",
    "StripeGateway",
    "InMemoryGateway",
    "ConfirmBehaviour",
    "PaymentSessionManager",
)
