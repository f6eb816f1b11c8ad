"""
Payment confirmation handler — confirm, redirect, resume.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from kungfu import LazyCoroResult, Result, Ok, Error

from checkout import saga as S
from checkout.continuation import CheckoutContinuation, ContinuationStore
from checkout.errors import CheckoutError, ErrorKind, Errors
from checkout.lift import gateway_call
from checkout.logs import get_logger
from checkout.payments import (
    ConfirmResponse,
    IntentSnapshot,
    IntentStatus,
    PaymentGateway,
    PaymentSession,
)
from checkout.confirmation._types import (
    CapturedPayment,
    ConfirmationState,
    Confirmed,
    Materialize,
    SettledOutcomes,
)

RETURN_REFERENCE = "payment_intent"
RETURN_SECRET = "payment_intent_client_secret"


def with_session(return_url: str, session_key: str) -> str:
    """Return URL carrying the session key, so the return page can resume."""
    separator = "&" if "?" in return_url else "?"
    return f"{return_url}{separator}session={quote(session_key, safe='')}"


class PaymentConfirmationHandler:
    """
    Drives a payment session to a captured payment and an order.

    confirm() runs a two-step saga: save the continuation, then confirm with
    the gateway. A failed confirmation clears the continuation again. When
    the gateway sends the shopper away, resume() picks up from the
    continuation on return and only ever reads the intent; it never confirms
    or creates one.

    A confirm that times out may still have charged. The handler reads the
    intent before giving up, and reads it again before confirming a second
    time for the same intent. When even the read fails, the continuation is
    kept so the next attempt can settle with full context.

    One asyncio.Lock per checkout session serialises confirm and resume.
    Only settled successes are remembered across calls; declines and pending
    payments always go back to the gateway.

    Example:
        match await handler.confirm(session, continuation, "pm_card_visa", materialize):
            case Ok(Confirmed(state=ConfirmationState.AWAITING_REDIRECT, redirect_url=url)): ...
            case Ok(Confirmed(state=ConfirmationState.SUCCEEDED, value=order)): ...
            case Error(e): e.kind
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        store: ContinuationStore,
        return_url: str,
        timeout: float = 20.0,
        outcome_cache_size: int = 1024,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._return_url = return_url
        self._timeout = timeout
        self._states: dict[str, ConfirmationState] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # session key -> intent a confirm was sent for
        self._attempted: dict[str, str] = {}
        # sessions whose last confirm ended with the charge unknown
        self._in_doubt: set[str] = set()
        self._outcomes: SettledOutcomes[Result[Confirmed[Any], CheckoutError]] = (
            SettledOutcomes(outcome_cache_size)
        )
        self._log = get_logger("confirmation")

    def state(self, session_key: str) -> ConfirmationState:
        return self._states.get(session_key, ConfirmationState.IDLE)

    def forget(self, session_key: str) -> None:
        """Drop per-session bookkeeping once the checkout is settled or abandoned."""
        self._states.pop(session_key, None)
        self._attempted.pop(session_key, None)
        self._in_doubt.discard(session_key)
        lock = self._locks.get(session_key)
        if lock is not None and not lock.locked():
            del self._locks[session_key]

    # ═══════════════════════════════════════════════════════════════════════════
    # confirm()
    # ═══════════════════════════════════════════════════════════════════════════

    async def confirm[T](
        self,
        session: PaymentSession,
        continuation: CheckoutContinuation,
        payment_method: str,
        materialize: Materialize[T],
    ) -> Result[Confirmed[T], CheckoutError]:
        key = session.session_key
        lock = self._locks[key]
        if lock.locked() or self.state(key) is ConfirmationState.CONFIRMING:
            return Error(Errors.validation("Payment is already in progress."))

        async with lock:
            cached = self._outcomes.get(session.intent_id)
            if cached is not None:
                return cached

            self._states[key] = ConfirmationState.CONFIRMING

            if self._attempted.get(key) == session.intent_id:
                reconciled = await self._reconcile(session, continuation, materialize)
                if reconciled is not None:
                    return reconciled

            self._attempted[key] = session.intent_id
            self._in_doubt.discard(key)
            self._log.info("payment_confirm_started", intent_id=session.intent_id)

            return_url = with_session(self._return_url, key)
            chain = S.from_async(
                lambda: self._save(continuation),
                on_error=lambda e: CheckoutError(
                    ErrorKind.CONTINUATION,
                    "We could not start your payment. You have not been charged; please try again.",
                    cause=e,
                ),
                compensate=self._release,
                name="save_continuation",
            ).then(
                lambda _: S.step(
                    self._confirm(session, return_url, payment_method),
                    name="confirm_payment",
                )
            )

            match await S.run_chain(chain):
                case Error(saga_error):
                    self._states[key] = ConfirmationState.FAILED
                    self._log.warning(
                        "payment_confirm_failed",
                        intent_id=session.intent_id,
                        step=saga_error.step_failed,
                        kind=saga_error.error.kind.name,
                        rollback_complete=saga_error.rollback_complete,
                    )
                    return Error(saga_error.error)
                case Ok(done):
                    response = done.value

            return await self._after_confirm(session, continuation, response, materialize)

    async def _save(self, continuation: CheckoutContinuation) -> CheckoutContinuation:
        await self._store.save(continuation)
        return continuation

    async def _release(self, saved: CheckoutContinuation) -> None:
        # Charge unknown: the next attempt may still need this context.
        if saved.session_key in self._in_doubt:
            return
        await self._store.clear(saved.session_key)

    def _confirm(
        self,
        session: PaymentSession,
        return_url: str,
        payment_method: str,
    ) -> LazyCoroResult[ConfirmResponse, CheckoutError]:
        async def attempt() -> Result[ConfirmResponse, CheckoutError]:
            confirmed = await gateway_call(
                lambda: self._gateway.confirm_intent(
                    session.client_secret, return_url, payment_method,
                ),
                timeout=self._timeout,
            )
            match confirmed:
                case Error(e) if e.kind.retryable:
                    return await self._recover(session, e)
                case _:
                    return confirmed

        return LazyCoroResult(attempt)

    async def _recover(
        self,
        session: PaymentSession,
        failure: CheckoutError,
    ) -> Result[ConfirmResponse, CheckoutError]:
        """Find out whether a confirm that got no answer went through."""
        match await self._read(session.client_secret):
            case Error(e):
                self._in_doubt.add(session.session_key)
                self._log.error(
                    "payment_outcome_unknown",
                    intent_id=session.intent_id,
                    confirm_kind=failure.kind.name,
                    read_kind=e.kind.name,
                )
                return Error(self._unknown(failure))
            case Ok(snapshot):
                pass

        if snapshot.status in (IntentStatus.SUCCEEDED, IntentStatus.PROCESSING):
            self._log.info(
                "payment_confirm_recovered",
                intent_id=session.intent_id,
                status=snapshot.status.value,
            )
            return Ok(ConfirmResponse(snapshot.status))

        return Error(CheckoutError(
            failure.kind,
            f"You have not been charged. {failure.message}",
            cause=failure.cause,
            context={"intent_id": session.intent_id, "status": snapshot.status.value},
        ))

    async def _reconcile[T](
        self,
        session: PaymentSession,
        continuation: CheckoutContinuation,
        materialize: Materialize[T],
    ) -> Result[Confirmed[T], CheckoutError] | None:
        """
        Settle an intent an earlier confirm already charged.

        None means nothing was charged and confirming again is safe.
        """
        key = session.session_key
        match await self._read(session.client_secret):
            case Error(e):
                self._states[key] = ConfirmationState.FAILED
                self._log.error(
                    "payment_outcome_unknown",
                    intent_id=session.intent_id,
                    read_kind=e.kind.name,
                )
                return Error(self._unknown(e))
            case Ok(snapshot):
                pass

        match snapshot.status:
            case IntentStatus.SUCCEEDED:
                self._log.info("payment_reconciled", intent_id=session.intent_id)
                return await self._settle(key, self._captured(snapshot, continuation), materialize)
            case IntentStatus.PROCESSING:
                return Ok(self._awaiting_settlement(session))
            case _:
                return None

    async def _after_confirm[T](
        self,
        session: PaymentSession,
        continuation: CheckoutContinuation,
        response: ConfirmResponse,
        materialize: Materialize[T],
    ) -> Result[Confirmed[T], CheckoutError]:
        key = session.session_key

        if response.needs_redirect:
            self._states[key] = ConfirmationState.AWAITING_REDIRECT
            self._log.info("payment_redirect_required", intent_id=session.intent_id)
            return Ok(Confirmed(ConfirmationState.AWAITING_REDIRECT, redirect_url=response.redirect_url))

        match response.status:
            case IntentStatus.SUCCEEDED:
                captured = CapturedPayment(
                    payment_reference=session.intent_id,
                    amount_minor=session.amount_minor,
                    currency=session.currency,
                    metadata={k: str(v) for k, v in session.metadata.items()},
                    continuation=continuation,
                )
                return await self._settle(key, captured, materialize)
            case IntentStatus.PROCESSING:
                return Ok(self._awaiting_settlement(session))
            case _:
                await self._store.clear(key)
                self._states[key] = ConfirmationState.FAILED
                self._log.warning(
                    "payment_not_completed",
                    intent_id=session.intent_id,
                    status=response.status.value,
                )
                return Error(Errors.declined("Your payment could not be completed."))

    def _awaiting_settlement(self, session: PaymentSession) -> Confirmed[Any]:
        # Settles asynchronously; the return page resumes and reads it.
        self._states[session.session_key] = ConfirmationState.AWAITING_REDIRECT
        url = with_session(self._return_url, session.session_key) + (
            f"&{RETURN_REFERENCE}={session.intent_id}"
            f"&{RETURN_SECRET}={session.client_secret}"
        )
        return Confirmed(ConfirmationState.AWAITING_REDIRECT, redirect_url=url)

    # ═══════════════════════════════════════════════════════════════════════════
    # resume()
    # ═══════════════════════════════════════════════════════════════════════════

    async def resume[T](
        self,
        session_key: str,
        params: Mapping[str, str],
        materialize: Materialize[T],
    ) -> Result[Confirmed[T], CheckoutError] | None:
        """
        Check a page load for a returning payment.

        None means there is no payment reference: a fresh session. A payment
        the bank has not settled yet comes back as PROCESSING with the
        continuation untouched, so the page can be loaded again later.
        """
        reference = params.get(RETURN_REFERENCE)
        secret = params.get(RETURN_SECRET)
        if not reference or not secret:
            return None

        cached = self._outcomes.get(reference)
        if cached is not None:
            return cached

        async with self._locks[session_key]:
            cached = self._outcomes.get(reference)
            if cached is not None:
                return cached

            self._log.info("payment_resume_started", intent_id=reference)
            match await self._read(secret):
                case Error(e):
                    self._log.warning("payment_resume_failed", intent_id=reference, kind=e.kind.name)
                    return Error(e)
                case Ok(snapshot):
                    pass

            if snapshot.intent_id != reference:
                return Error(Errors.validation(
                    "The payment reference does not match.", intent_id=reference,
                ))

            match snapshot.status:
                case IntentStatus.SUCCEEDED:
                    continuation = await self._matching_continuation(session_key, reference)
                    return await self._settle(
                        session_key, self._captured(snapshot, continuation), materialize,
                    )
                case IntentStatus.FAILED | IntentStatus.CANCELED:
                    if await self._matching_continuation(session_key, reference) is not None:
                        await self._store.clear(session_key)
                    self._states[session_key] = ConfirmationState.FAILED
                    self._log.warning(
                        "payment_not_completed",
                        intent_id=reference,
                        status=snapshot.status.value,
                    )
                    return Error(
                        Errors.declined("Your payment was not completed. You have not been charged.")
                    )
                case _:
                    self._states[session_key] = ConfirmationState.PROCESSING
                    self._log.info(
                        "payment_pending",
                        intent_id=reference,
                        status=snapshot.status.value,
                    )
                    return Ok(Confirmed(ConfirmationState.PROCESSING))

    async def _read(self, client_secret: str) -> Result[IntentSnapshot, CheckoutError]:
        return await gateway_call(
            lambda: self._gateway.retrieve_intent(client_secret),
            timeout=self._timeout,
        )

    @staticmethod
    def _unknown(failure: CheckoutError) -> CheckoutError:
        return CheckoutError(
            failure.kind,
            "We could not confirm whether your payment went through. "
            "Retrying is safe: you will not be charged twice.",
            cause=failure.cause,
            context=dict(failure.context),
        )

    async def _matching_continuation(
        self,
        session_key: str,
        reference: str,
    ) -> CheckoutContinuation | None:
        try:
            continuation = await self._store.load(session_key)
        except Exception:
            self._log.exception("continuation_load_failed", intent_id=reference)
            return None

        if continuation is None:
            self._log.warning("continuation_missing", intent_id=reference)
            return None
        if continuation.intent_id != reference:
            self._log.warning(
                "continuation_mismatch",
                intent_id=reference,
                stored_intent_id=continuation.intent_id,
            )
            return None
        return continuation

    @staticmethod
    def _captured(
        snapshot: IntentSnapshot,
        continuation: CheckoutContinuation | None,
    ) -> CapturedPayment:
        return CapturedPayment(
            payment_reference=snapshot.intent_id,
            amount_minor=snapshot.amount_minor,
            currency=snapshot.currency,
            metadata=dict(snapshot.metadata),
            continuation=continuation,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Settlement
    # ═══════════════════════════════════════════════════════════════════════════

    async def _settle[T](
        self,
        session_key: str,
        captured: CapturedPayment,
        materialize: Materialize[T],
    ) -> Result[Confirmed[T], CheckoutError]:
        self._states[session_key] = ConfirmationState.SUCCEEDED
        self._log.info("payment_captured", intent_id=captured.payment_reference)

        match await materialize(captured):
            case Ok(value):
                if captured.continuation is not None:
                    await self._store.clear(session_key)
                outcome: Result[Confirmed[T], CheckoutError] = Ok(
                    Confirmed(ConfirmationState.SUCCEEDED, value=value)
                )
                self._outcomes.put(captured.payment_reference, outcome)
                return outcome
            case Error(e):
                # Continuation kept: a reload retries with full context.
                return Error(e)


__all__ = ("PaymentConfirmationHandler", "with_session", "RETURN_REFERENCE", "RETURN_SECRET")
