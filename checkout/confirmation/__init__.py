"""
Confirmation — payment confirmation across the redirect boundary.

    handler = PaymentConfirmationHandler(gateway, continuation_store, settings.return_url)
    result = await handler.confirm(session, continuation, payment_method, materialize)
    ...
    result = await handler.resume(session_key, request.query_params, materialize)
"""

from checkout.confirmation._types import (
    ConfirmationState,
    CapturedPayment,
    Confirmed,
    SettledOutcomes,
    Materialize,
)
from checkout.confirmation._handler import (
    PaymentConfirmationHandler,
    with_session,
    RETURN_REFERENCE,
    RETURN_SECRET,
)

__all__ = (
    "ConfirmationState",
    "CapturedPayment",
    "Confirmed",
    "SettledOutcomes",
    "Materialize",
    "PaymentConfirmationHandler",
    "with_session",
    "RETURN_REFERENCE",
    "RETURN_SECRET",
)
