"""
Payment session manager — one live intent per checkout.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from kungfu import LazyCoroResult, Result, Ok, Error

from checkout.errors import CheckoutError, Errors
from checkout.lift import gateway_call
from checkout.logs import get_logger
from checkout.payments._gateway import PaymentGateway
from checkout.payments._types import PaymentSession


class PaymentSessionManager:
    """
    Opens gateway intents for checkouts.

    Reopening with the same amount and cart fingerprint reuses the live
    intent; anything else supersedes it, so a stale intent can never be
    confirmed against a changed total.

    Example:
        match await sessions.open("sess-1", 6000, cart.fingerprint(None), {}):
            case Ok(session): session.client_secret
            case Error(e): e.kind  # GATEWAY_UNAVAILABLE, GATEWAY_TIMEOUT, VALIDATION
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        currency: str = "gbp",
        timeout: float = 20.0,
    ) -> None:
        self._gateway = gateway
        self._currency = currency
        self._timeout = timeout
        self._sessions: dict[str, PaymentSession] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._log = get_logger("payments")

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway

    @property
    def timeout(self) -> float:
        return self._timeout

    def open(
        self,
        session_key: str,
        amount_minor: int,
        fingerprint: str,
        metadata: dict[str, str] | None = None,
    ) -> LazyCoroResult[PaymentSession, CheckoutError]:
        async def _open() -> Result[PaymentSession, CheckoutError]:
            if amount_minor <= 0:
                return Error(Errors.validation(
                    "Order total must be greater than zero to take payment.",
                    amount_minor=amount_minor,
                ))

            async with self._locks[session_key]:
                current = self._sessions.get(session_key)
                if current is not None:
                    if current.matches(amount_minor, fingerprint):
                        return Ok(current)
                    await self._supersede(current)

                return await self._create(
                    session_key, amount_minor, fingerprint, dict(metadata or {}),
                )

        return LazyCoroResult(_open)

    async def _create(
        self,
        session_key: str,
        amount_minor: int,
        fingerprint: str,
        metadata: dict[str, str],
    ) -> Result[PaymentSession, CheckoutError]:
        created = await gateway_call(
            lambda: self._gateway.create_intent(amount_minor, self._currency, metadata),
            timeout=self._timeout,
        )
        match created:
            case Ok(handle):
                session = PaymentSession(
                    session_key=session_key,
                    intent_id=handle.intent_id,
                    client_secret=handle.client_secret,
                    amount_minor=amount_minor,
                    currency=self._currency,
                    fingerprint=fingerprint,
                    metadata=metadata,
                )
                self._sessions[session_key] = session
                self._log.info(
                    "payment_session_opened",
                    intent_id=handle.intent_id,
                    amount_minor=amount_minor,
                    currency=self._currency,
                )
                return Ok(session)
            case Error(e):
                self._log.warning(
                    "payment_session_open_failed",
                    kind=e.kind.name,
                    amount_minor=amount_minor,
                )
                return Error(e)

    async def _supersede(self, session: PaymentSession) -> None:
        """Drop the old session locally; cancel at the gateway best-effort."""
        self._sessions.pop(session.session_key, None)
        cancelled = await gateway_call(
            lambda: self._gateway.cancel_intent(session.intent_id),
            timeout=self._timeout,
        )
        match cancelled:
            case Ok(_):
                self._log.info("payment_session_superseded", intent_id=session.intent_id)
            case Error(e):
                self._log.warning(
                    "payment_session_cancel_failed",
                    intent_id=session.intent_id,
                    kind=e.kind.name,
                )

    def current(self, session_key: str) -> PaymentSession | None:
        return self._sessions.get(session_key)

    def require_current(
        self,
        session_key: str,
        intent_id: str | None = None,
    ) -> Result[PaymentSession, CheckoutError]:
        """The live session for `session_key`, optionally pinned to `intent_id`."""
        session = self._sessions.get(session_key)
        if session is None or (intent_id is not None and session.intent_id != intent_id):
            return Error(Errors.validation(
                "Your payment session has expired. Please review your order and try again.",
                intent_id=intent_id,
            ))
        return Ok(session)

    def close(self, session_key: str) -> None:
        """Forget a settled session; the next checkout opens a fresh intent."""
        self._sessions.pop(session_key, None)
        self._drop_lock(session_key)

    async def discard(self, session_key: str) -> None:
        """
        Cancel the live session, if any.

        Used when a checkout attempt is refused, so the intent opened for an
        earlier cart cannot be confirmed afterwards.
        """
        async with self._locks[session_key]:
            current = self._sessions.get(session_key)
            if current is not None:
                await self._supersede(current)
        self._drop_lock(session_key)

    def _drop_lock(self, session_key: str) -> None:
        lock = self._locks.get(session_key)
        if lock is not None and not lock.locked():
            del self._locks[session_key]


__all__ = ("PaymentSessionManager",)
