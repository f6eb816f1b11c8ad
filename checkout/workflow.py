"""
Checkout workflow — cart to order, with typed outcomes for the UI.

    workflow = CheckoutWorkflow(resolver, sessions, handler, materializer, notifier)

    begun = await workflow.begin(session_key, lines, address_fields, "SAVE10")
    outcome = await workflow.submit(session_key, "pm_card_visa")
    match outcome.kind:
        case OutcomeKind.REDIRECT_REQUIRED: redirect(outcome.redirect_url)
        case OutcomeKind.SUCCESS: show_receipt(outcome.order_id)
        case _: show_message(outcome.message)

    # every page load of the return URL:
    outcome = await workflow.resume(session_key, query_params)

The UI never sees a CheckoutError; every failure arrives as an outcome kind
with a message that is safe to show.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from kungfu import Result, Ok, Error

from checkout._types import from_minor_units, utcnow
from checkout.address import Address, validate_address
from checkout.confirmation import (
    CapturedPayment,
    ConfirmationState,
    Confirmed,
    PaymentConfirmationHandler,
)
from checkout.continuation import CheckoutContinuation
from checkout.coupons import CouponResolver
from checkout.errors import CheckoutError, ErrorKind, Errors
from checkout.logs import bind_checkout, get_logger
from checkout.notify import FulfillmentNotifier
from checkout.orders import MaterializedOrder, OrderMaterializer
from checkout.payments import PaymentSession, PaymentSessionManager
from checkout.pricing import (
    DEFAULT_TAX_RATE,
    Cart,
    CartLine,
    CouponTerms,
    PriceBreakdown,
    Quote,
    price,
    quote,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════════


class OutcomeKind(Enum):
    VALIDATION_ERROR = "validation_error"
    COUPON_REJECTED = "coupon_rejected"
    PAYMENT_DECLINED = "payment_declined"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    SUCCESS = "success"
    SUCCESS_WITH_NOTIFICATION_PENDING = "success_with_notification_pending"
    REDIRECT_REQUIRED = "redirect_required"
    PAYMENT_CAPTURED_ORDER_PENDING = "payment_captured_order_pending"
    PAYMENT_PROCESSING = "payment_processing"

    @property
    def succeeded(self) -> bool:
        return self in (OutcomeKind.SUCCESS, OutcomeKind.SUCCESS_WITH_NOTIFICATION_PENDING)


@dataclass(frozen=True, slots=True)
class CheckoutOutcome:
    kind: OutcomeKind
    message: str = ""
    order_id: str | None = None
    redirect_url: str | None = None
    breakdown: PriceBreakdown | None = None


def outcome_for(error: CheckoutError, breakdown: PriceBreakdown | None = None) -> CheckoutOutcome:
    """Map an error onto the outcome the shopper sees."""
    match error.kind:
        case ErrorKind.VALIDATION:
            kind = OutcomeKind.VALIDATION_ERROR
        case ErrorKind.COUPON_REJECTED:
            kind = OutcomeKind.COUPON_REJECTED
        case ErrorKind.PAYMENT_DECLINED:
            kind = OutcomeKind.PAYMENT_DECLINED
        case ErrorKind.MATERIALIZATION:
            kind = OutcomeKind.PAYMENT_CAPTURED_ORDER_PENDING
        case _:
            # Gateway trouble, or the checkpoint could not be written: retry.
            kind = OutcomeKind.GATEWAY_UNAVAILABLE
    return CheckoutOutcome(kind=kind, message=error.message, breakdown=breakdown)


# ═══════════════════════════════════════════════════════════════════════════════
# Workflow
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Begun:
    """A priced checkout with a live payment session."""

    session: PaymentSession
    breakdown: PriceBreakdown
    address: Address
    lines: tuple[CartLine, ...]
    coupon_code: str | None
    begun_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class Fulfilled:
    materialized: MaterializedOrder
    notified: bool


class CheckoutWorkflow:
    def __init__(
        self,
        resolver: CouponResolver,
        sessions: PaymentSessionManager,
        handler: PaymentConfirmationHandler,
        materializer: OrderMaterializer,
        notifier: FulfillmentNotifier,
        *,
        tax_rate: Decimal = DEFAULT_TAX_RATE,
        pending_ttl: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._resolver = resolver
        self._sessions = sessions
        self._handler = handler
        self._materializer = materializer
        self._notifier = notifier
        self._tax_rate = tax_rate
        self._pending_ttl = pending_ttl
        self._clock = clock
        # Begun checkouts awaiting submit, dropped once settled or stale
        self._pending: dict[str, Begun] = {}
        self._log = get_logger("workflow")

    @property
    def handler(self) -> PaymentConfirmationHandler:
        return self._handler

    # ─── pricing ─────────────────────────────────────────────────────────────

    async def quote(self, lines: Sequence[CartLine], coupon_code: str | None = None) -> Quote:
        return await quote(Cart(tuple(lines)), coupon_code, self._resolver, tax_rate=self._tax_rate)

    async def _terms(self, coupon_code: str | None) -> Result[CouponTerms | None, CheckoutError]:
        if coupon_code is None or not coupon_code.strip():
            return Ok(None)
        match await self._resolver.resolve(coupon_code):
            case Ok(terms):
                return Ok(terms)
            case Error(e):
                return Error(e)

    # ─── begin ───────────────────────────────────────────────────────────────

    async def begin(
        self,
        session_key: str,
        lines: Sequence[CartLine],
        address_fields: Mapping[str, str | None],
        coupon_code: str | None = None,
    ) -> Result[Begun, CheckoutOutcome]:
        """
        Validate, price and open (or reuse) the payment session.

        A refused attempt leaves nothing to submit: the previous checkout for
        this session is dropped and its intent cancelled.
        """
        bind_checkout(session_key)
        self._evict_stale()
        self._pending.pop(session_key, None)

        begun = await self._begin(session_key, lines, address_fields, coupon_code)
        match begun:
            case Ok(ready):
                self._pending[session_key] = ready
            case Error(outcome):
                await self._sessions.discard(session_key)
                self._log.info("checkout_refused", kind=outcome.kind.name)
        return begun

    async def _begin(
        self,
        session_key: str,
        lines: Sequence[CartLine],
        address_fields: Mapping[str, str | None],
        coupon_code: str | None,
    ) -> Result[Begun, CheckoutOutcome]:
        cart = Cart(tuple(lines))

        match cart.validate():
            case Error(e):
                return Error(outcome_for(e))
            case Ok(_):
                pass

        match validate_address(
            name=address_fields.get("name"),
            line1=address_fields.get("line1"),
            line2=address_fields.get("line2"),
            city=address_fields.get("city"),
            postcode=address_fields.get("postcode"),
            country=address_fields.get("country"),
            phone=address_fields.get("phone"),
            email=address_fields.get("email"),
        ):
            case Error(e):
                return Error(outcome_for(e))
            case Ok(address):
                pass

        match await self._terms(coupon_code):
            case Error(e):
                # Totals shown without the code; nothing is charged until the
                # shopper removes or fixes it.
                self._log.info("coupon_rejected", code=(coupon_code or "").strip().upper())
                return Error(outcome_for(e, price(cart.lines, tax_rate=self._tax_rate)))
            case Ok(terms):
                pass

        breakdown = price(cart.lines, terms, tax_rate=self._tax_rate)
        if breakdown.final_minor_units <= 0:
            return Error(outcome_for(
                Errors.validation("This order has nothing to pay; please contact support to complete it."),
                breakdown,
            ))

        code = terms.code if terms is not None else None
        opened = await self._sessions.open(
            session_key,
            breakdown.final_minor_units,
            cart.fingerprint(code),
            {"customer_name": address.name, "email": address.email, "session": session_key},
        )
        match opened:
            case Error(e):
                return Error(outcome_for(e, breakdown))
            case Ok(session):
                return Ok(Begun(session, breakdown, address, cart.lines, code, self._clock()))

    # ─── submit ──────────────────────────────────────────────────────────────

    async def submit(self, session_key: str, payment_method: str) -> CheckoutOutcome:
        """Confirm payment for the session opened by begin()."""
        bind_checkout(session_key)
        self._evict_stale()
        begun = self._pending.get(session_key)
        if begun is None:
            return outcome_for(Errors.validation(
                "Your checkout session has expired. Please review your order and try again.",
            ))

        match self._sessions.require_current(session_key, begun.session.intent_id):
            case Error(e):
                return outcome_for(e, begun.breakdown)
            case Ok(session):
                pass

        continuation = CheckoutContinuation(
            session_key=session_key,
            intent_id=session.intent_id,
            address=begun.address,
            lines=begun.lines,
            breakdown=begun.breakdown,
            coupon_code=begun.coupon_code,
        )
        result = await self._handler.confirm(session, continuation, payment_method, self._fulfil)
        return await self._finish(session_key, result, begun.breakdown)

    # ─── resume ──────────────────────────────────────────────────────────────

    async def resume(self, session_key: str, params: Mapping[str, str]) -> CheckoutOutcome | None:
        """None when the page load carries no returning payment."""
        bind_checkout(session_key)
        result = await self._handler.resume(session_key, params, self._fulfil)
        if result is None:
            return None
        return await self._finish(session_key, result, None)

    # ─── settlement ──────────────────────────────────────────────────────────

    async def _fulfil(self, captured: CapturedPayment) -> Result[Fulfilled, CheckoutError]:
        continuation = captured.continuation
        materialized = await self._materializer.materialize(
            captured.payment_reference,
            continuation.address if continuation else None,
            continuation.lines if continuation else (),
            from_minor_units(captured.amount_minor),
            currency=captured.currency,
            metadata=captured.metadata,
        )
        match materialized:
            case Error(e):
                return Error(e)
            case Ok(done):
                pass

        if not done.created:
            # Replay of a settled payment; the first run handled the receipt.
            return Ok(Fulfilled(done, notified=True))

        match await self._notifier.notify(done.order, done.items):
            case Ok(_):
                return Ok(Fulfilled(done, notified=True))
            case Error(_):
                return Ok(Fulfilled(done, notified=False))

    async def _finish(
        self,
        session_key: str,
        result: Result[Confirmed[Fulfilled], CheckoutError],
        breakdown: PriceBreakdown | None,
    ) -> CheckoutOutcome:
        match result:
            case Error(e):
                if e.kind is ErrorKind.PAYMENT_DECLINED:
                    # Intent stays live; another card goes back to the gateway.
                    self._handler.forget(session_key)
                outcome = outcome_for(e, breakdown)
                self._log.info("checkout_outcome", kind=outcome.kind.name)
                return outcome
            case Ok(confirmed):
                pass

        match confirmed.state:
            case ConfirmationState.AWAITING_REDIRECT:
                return CheckoutOutcome(
                    kind=OutcomeKind.REDIRECT_REQUIRED,
                    message="Additional authentication is required by your bank.",
                    redirect_url=confirmed.redirect_url,
                    breakdown=breakdown,
                )
            case ConfirmationState.PROCESSING:
                self._log.info("checkout_outcome", kind=OutcomeKind.PAYMENT_PROCESSING.name)
                return CheckoutOutcome(
                    kind=OutcomeKind.PAYMENT_PROCESSING,
                    message=(
                        "Your bank is still confirming this payment. "
                        "Refresh this page in a moment to see your order."
                    ),
                    breakdown=breakdown,
                )
            case _:
                pass

        fulfilled = confirmed.value
        assert fulfilled is not None
        order = fulfilled.materialized.order
        self._sessions.close(session_key)
        self._pending.pop(session_key, None)
        self._handler.forget(session_key)

        if fulfilled.notified:
            kind = OutcomeKind.SUCCESS
            message = f"Thank you! Your order {order.id} is confirmed."
        else:
            kind = OutcomeKind.SUCCESS_WITH_NOTIFICATION_PENDING
            message = (
                f"Thank you! Your order {order.id} is confirmed. "
                "We could not email your invoice yet; it will follow shortly."
            )
        self._log.info("checkout_outcome", kind=kind.name, order_id=order.id)
        return CheckoutOutcome(kind=kind, message=message, order_id=order.id, breakdown=breakdown)

    def _evict_stale(self) -> None:
        """Drop begun checkouts nobody submitted within pending_ttl."""
        cutoff = self._clock() - self._pending_ttl
        stale = [key for key, begun in self._pending.items() if begun.begun_at < cutoff]
        for key in stale:
            del self._pending[key]
            # Not cancelled: a shopper mid-redirect can still return and resume.
            self._sessions.close(key)
            self._handler.forget(key)
            self._log.info("checkout_session_evicted", session_key=key)


__all__ = (
    "OutcomeKind",
    "CheckoutOutcome",
    "outcome_for",
    "Begun",
    "Fulfilled",
    "CheckoutWorkflow",
)
