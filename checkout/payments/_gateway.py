"""
Gateway protocol.

Implementations raise GatewayUnavailableError, GatewayTimeoutError or
PaymentDeclinedError; the session manager and confirmation handler lift
those into CheckoutError values.
"""

from __future__ import annotations

from typing import Protocol

from checkout.payments._types import ConfirmResponse, IntentHandle, IntentSnapshot


class PaymentGateway(Protocol):
    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
    ) -> IntentHandle: ...

    async def confirm_intent(
        self,
        client_secret: str,
        return_url: str,
        payment_method: str,
    ) -> ConfirmResponse: ...

    async def retrieve_intent(self, client_secret: str) -> IntentSnapshot: ...

    async def cancel_intent(self, intent_id: str) -> None: ...


__all__ = ("PaymentGateway",)
