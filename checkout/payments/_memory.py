"""
In-memory gateway — scriptable stand-in for tests, demos and local runs.

    gateway = InMemoryGateway()
    gateway.confirm_behaviour = ConfirmBehaviour.REDIRECT
    ...
    gateway.complete_redirect(intent_id)      # shopper passed the challenge
    gateway.confirm_calls                     # charge attempts so far
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlencode

from checkout.errors import GatewayUnavailableError, PaymentDeclinedError
from checkout.payments._types import (
    ConfirmResponse,
    IntentHandle,
    IntentSnapshot,
    IntentStatus,
)


class ConfirmBehaviour(Enum):
    SUCCEED = "succeed"
    DECLINE = "decline"
    REDIRECT = "redirect"
    UNAVAILABLE = "unavailable"
    HANG = "hang"
    # Charge goes through, the response never arrives
    CAPTURE_THEN_HANG = "capture_then_hang"
    # Bank settles later; intent stays processing until complete_redirect
    PROCESS = "process"


@dataclass(slots=True)
class _Intent:
    intent_id: str
    client_secret: str
    amount_minor: int
    currency: str
    metadata: dict[str, str]
    status: IntentStatus = IntentStatus.REQUIRES_ACTION


@dataclass(slots=True)
class InMemoryGateway:
    confirm_behaviour: ConfirmBehaviour = ConfirmBehaviour.SUCCEED
    fail_create: bool = False
    hang_retrieve: bool = False
    redirect_base: str = "https://gateway.test/authenticate"

    intents: dict[str, _Intent] = field(default_factory=dict[str, _Intent])
    create_calls: int = 0
    confirm_calls: int = 0
    retrieve_calls: int = 0
    cancel_calls: int = 0

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
    ) -> IntentHandle:
        self.create_calls += 1
        if self.fail_create:
            raise GatewayUnavailableError("gateway unavailable")

        intent_id = f"pi_{secrets.token_hex(8)}"
        secret = f"{intent_id}_secret_{secrets.token_hex(8)}"
        self.intents[intent_id] = _Intent(
            intent_id, secret, amount_minor, currency, dict(metadata),
        )
        return IntentHandle(intent_id=intent_id, client_secret=secret)

    async def confirm_intent(
        self,
        client_secret: str,
        return_url: str,
        payment_method: str,
    ) -> ConfirmResponse:
        self.confirm_calls += 1
        intent = self._by_secret(client_secret)

        match self.confirm_behaviour:
            case ConfirmBehaviour.SUCCEED:
                intent.status = IntentStatus.SUCCEEDED
                return ConfirmResponse(IntentStatus.SUCCEEDED)
            case ConfirmBehaviour.DECLINE:
                intent.status = IntentStatus.FAILED
                raise PaymentDeclinedError("Your card was declined.")
            case ConfirmBehaviour.REDIRECT:
                query = urlencode({
                    "payment_intent": intent.intent_id,
                    "payment_intent_client_secret": intent.client_secret,
                    "return_url": return_url,
                })
                return ConfirmResponse(
                    IntentStatus.REQUIRES_ACTION,
                    redirect_url=f"{self.redirect_base}?{query}",
                )
            case ConfirmBehaviour.UNAVAILABLE:
                raise GatewayUnavailableError("gateway unavailable")
            case ConfirmBehaviour.HANG:
                await asyncio.Event().wait()
                raise AssertionError("unreachable")
            case ConfirmBehaviour.CAPTURE_THEN_HANG:
                intent.status = IntentStatus.SUCCEEDED
                await asyncio.Event().wait()
                raise AssertionError("unreachable")
            case ConfirmBehaviour.PROCESS:
                intent.status = IntentStatus.PROCESSING
                return ConfirmResponse(IntentStatus.PROCESSING)

    async def retrieve_intent(self, client_secret: str) -> IntentSnapshot:
        self.retrieve_calls += 1
        if self.hang_retrieve:
            await asyncio.Event().wait()
        intent = self._by_secret(client_secret)
        return IntentSnapshot(
            intent_id=intent.intent_id,
            status=intent.status,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
            metadata=dict(intent.metadata),
        )

    async def cancel_intent(self, intent_id: str) -> None:
        self.cancel_calls += 1
        intent = self.intents.get(intent_id)
        if intent is None:
            raise GatewayUnavailableError(f"no such intent {intent_id}")
        intent.status = IntentStatus.CANCELED

    # ─── test controls ────────────────────────────────────────────────────────

    def complete_redirect(self, intent_id: str, *, succeeded: bool = True) -> None:
        """Settle an intent the way the off-site challenge would."""
        self.intents[intent_id].status = (
            IntentStatus.SUCCEEDED if succeeded else IntentStatus.FAILED
        )

    def secret_of(self, intent_id: str) -> str:
        return self.intents[intent_id].client_secret

    def _by_secret(self, client_secret: str) -> _Intent:
        intent_id = client_secret.split("_secret_")[0]
        intent = self.intents.get(intent_id)
        if intent is None or intent.client_secret != client_secret:
            raise GatewayUnavailableError("unknown payment intent")
        return intent


__all__ = ("InMemoryGateway", "ConfirmBehaviour")
