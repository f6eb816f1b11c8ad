"""
Stripe gateway.

The stripe SDK is synchronous; every call runs in a worker thread so the
event loop keeps serving other checkouts while Stripe answers.

    gateway = StripeGateway(api_key=settings.stripe_secret_key.get_secret_value())
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import stripe

from checkout.errors import GatewayUnavailableError, PaymentDeclinedError
from checkout.payments._types import (
    ConfirmResponse,
    IntentHandle,
    IntentSnapshot,
    IntentStatus,
)

_STATUS_MAP: dict[str, IntentStatus] = {
    "succeeded": IntentStatus.SUCCEEDED,
    "processing": IntentStatus.PROCESSING,
    "requires_capture": IntentStatus.PROCESSING,
    "requires_action": IntentStatus.REQUIRES_ACTION,
    "requires_confirmation": IntentStatus.REQUIRES_ACTION,
    # After a confirm attempt Stripe parks a refused intent here.
    "requires_payment_method": IntentStatus.FAILED,
    "canceled": IntentStatus.CANCELED,
}


def intent_id_from_secret(client_secret: str) -> str:
    """pi_123_secret_abc → pi_123"""
    return client_secret.split("_secret_")[0]


def map_status(raw: str) -> IntentStatus:
    return _STATUS_MAP.get(raw, IntentStatus.FAILED)


def redirect_url_of(intent: Any) -> str | None:
    next_action = getattr(intent, "next_action", None)
    if not next_action:
        return None
    redirect = getattr(next_action, "redirect_to_url", None)
    if not redirect:
        return None
    return getattr(redirect, "url", None)


class StripeGateway:
    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    async def _call[T](self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, api_key=self._api_key, **kwargs)
        except stripe.CardError as e:
            raise PaymentDeclinedError(e.user_message or "Your card was declined.") from e
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            raise GatewayUnavailableError(str(e)) from e
        except stripe.StripeError as e:
            raise GatewayUnavailableError(e.user_message or str(e)) from e

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
    ) -> IntentHandle:
        intent = await self._call(
            stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        return IntentHandle(intent_id=intent.id, client_secret=intent.client_secret)

    async def confirm_intent(
        self,
        client_secret: str,
        return_url: str,
        payment_method: str,
    ) -> ConfirmResponse:
        intent = await self._call(
            stripe.PaymentIntent.confirm,
            intent_id_from_secret(client_secret),
            payment_method=payment_method,
            return_url=return_url,
        )
        status = map_status(intent.status)
        if status is IntentStatus.FAILED:
            raise PaymentDeclinedError("Your payment was declined.")
        return ConfirmResponse(status=status, redirect_url=redirect_url_of(intent))

    async def retrieve_intent(self, client_secret: str) -> IntentSnapshot:
        intent = await self._call(
            stripe.PaymentIntent.retrieve,
            intent_id_from_secret(client_secret),
        )
        return IntentSnapshot(
            intent_id=intent.id,
            status=map_status(intent.status),
            amount_minor=int(intent.amount),
            currency=str(intent.currency),
            metadata={str(k): str(v) for k, v in (intent.metadata or {}).items()},
        )

    async def cancel_intent(self, intent_id: str) -> None:
        await self._call(stripe.PaymentIntent.cancel, intent_id)


__all__ = ("StripeGateway", "intent_id_from_secret", "map_status")
