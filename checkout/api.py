"""
HTTP surface for the checkout UI.

    app = create_app(get_settings())
    # uvicorn --factory checkout.api:create_app

    POST /checkout/quote     cart + coupon          → breakdown
    POST /checkout/session   cart + address + coupon → client secret
    POST /checkout/confirm   payment method         → outcome
    GET  /checkout/return    gateway return params  → outcome | {"kind": "fresh"}

The checkout session key travels in the X-Checkout-Session header, or in
the `session` query parameter on the return URL.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Annotated

import fastapi
from fastapi import Header, Request
from fastapi.responses import JSONResponse
from kungfu import Ok, Error
from pydantic import BaseModel, Field

from checkout import logs
from checkout import wiring
from checkout.config import Settings, get_settings
from checkout.notify import EmailChannel
from checkout.payments import PaymentGateway
from checkout.pricing import CartLine, PriceBreakdown, Quote
from checkout.workflow import Begun, CheckoutOutcome, CheckoutWorkflow, OutcomeKind

STATUS_FOR: dict[OutcomeKind, int] = {
    OutcomeKind.SUCCESS: 200,
    OutcomeKind.SUCCESS_WITH_NOTIFICATION_PENDING: 200,
    OutcomeKind.REDIRECT_REQUIRED: 200,
    OutcomeKind.PAYMENT_CAPTURED_ORDER_PENDING: 200,
    OutcomeKind.PAYMENT_PROCESSING: 202,
    OutcomeKind.VALIDATION_ERROR: 400,
    OutcomeKind.COUPON_REJECTED: 400,
    OutcomeKind.PAYMENT_DECLINED: 402,
    OutcomeKind.GATEWAY_UNAVAILABLE: 503,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Wire Models
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineIn(BaseModel):
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    stock_limit: int
    variant: str | None = None

    def to_domain(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            name=self.name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            stock_limit=self.stock_limit,
            variant=self.variant,
        )


class AddressIn(BaseModel):
    """Loose on purpose: field rules live in checkout.address."""

    name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    postcode: str | None = None
    country: str | None = "GB"
    phone: str | None = None
    email: str | None = None


class QuoteIn(BaseModel):
    lines: list[CartLineIn]
    coupon_code: str | None = None


class SessionIn(BaseModel):
    lines: list[CartLineIn]
    address: AddressIn
    coupon_code: str | None = None


class ConfirmIn(BaseModel):
    payment_method: str = Field(min_length=1)


class BreakdownOut(BaseModel):
    subtotal: str
    tax: str
    gross_total: str
    discount: str
    final_total: str

    @classmethod
    def from_domain(cls, breakdown: PriceBreakdown) -> "BreakdownOut":
        return cls(**breakdown.to_dict())


class QuoteOut(BaseModel):
    breakdown: BreakdownOut
    coupon_code: str | None = None
    coupon_rejection: str | None = None

    @classmethod
    def from_domain(cls, quote: Quote) -> "QuoteOut":
        return cls(
            breakdown=BreakdownOut.from_domain(quote.breakdown),
            coupon_code=quote.coupon.code if quote.coupon else None,
            coupon_rejection=quote.rejection.message if quote.rejection else None,
        )


class SessionOut(BaseModel):
    intent_id: str
    client_secret: str
    breakdown: BreakdownOut

    @classmethod
    def from_domain(cls, begun: Begun) -> "SessionOut":
        return cls(
            intent_id=begun.session.intent_id,
            client_secret=begun.session.client_secret,
            breakdown=BreakdownOut.from_domain(begun.breakdown),
        )


class OutcomeOut(BaseModel):
    kind: str
    message: str
    order_id: str | None = None
    redirect_url: str | None = None
    breakdown: BreakdownOut | None = None

    @classmethod
    def from_domain(cls, outcome: CheckoutOutcome) -> "OutcomeOut":
        return cls(
            kind=outcome.kind.value,
            message=outcome.message,
            order_id=outcome.order_id,
            redirect_url=outcome.redirect_url,
            breakdown=BreakdownOut.from_domain(outcome.breakdown) if outcome.breakdown else None,
        )


def outcome_response(outcome: CheckoutOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_FOR[outcome.kind],
        content=OutcomeOut.from_domain(outcome).model_dump(mode="json"),
    )


def missing_session() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"kind": OutcomeKind.VALIDATION_ERROR.value, "message": "Missing checkout session."},
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def workflow_of(request: Request) -> CheckoutWorkflow:
    return request.app.state.wired.workflow


def create_app(
    settings: Settings | None = None,
    *,
    gateway: PaymentGateway | None = None,
    channel: EmailChannel | None = None,
    configure_logging: bool = True,
) -> fastapi.FastAPI:
    """Build the app; the checkout stack is wired on startup."""
    settings = settings or get_settings()
    if configure_logging:
        logs.configure(settings.log_level, json_output=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        wired = await wiring.build(settings, gateway=gateway, channel=channel)
        app.state.wired = wired
        try:
            yield
        finally:
            await wired.engine.dispose()

    app = fastapi.FastAPI(title="Storefront Checkout", lifespan=lifespan)

    @app.post("/checkout/quote")
    async def post_quote(body: QuoteIn, request: Request) -> QuoteOut:
        quote = await workflow_of(request).quote(
            [line.to_domain() for line in body.lines], body.coupon_code,
        )
        return QuoteOut.from_domain(quote)

    @app.post("/checkout/session", response_model=None)
    async def post_session(
        body: SessionIn,
        request: Request,
        session_key: Annotated[str | None, Header(alias="X-Checkout-Session")] = None,
    ) -> JSONResponse:
        if not session_key:
            return missing_session()
        begun = await workflow_of(request).begin(
            session_key,
            [line.to_domain() for line in body.lines],
            body.address.model_dump(),
            body.coupon_code,
        )
        match begun:
            case Ok(value):
                return JSONResponse(SessionOut.from_domain(value).model_dump(mode="json"))
            case Error(outcome):
                return outcome_response(outcome)

    @app.post("/checkout/confirm", response_model=None)
    async def post_confirm(
        body: ConfirmIn,
        request: Request,
        session_key: Annotated[str | None, Header(alias="X-Checkout-Session")] = None,
    ) -> JSONResponse:
        if not session_key:
            return missing_session()
        outcome = await workflow_of(request).submit(session_key, body.payment_method)
        return outcome_response(outcome)

    @app.get("/checkout/return", response_model=None)
    async def get_return(
        request: Request,
        session: str | None = None,
        session_header: Annotated[str | None, Header(alias="X-Checkout-Session")] = None,
    ) -> JSONResponse:
        session_key = session or session_header
        if not session_key:
            return missing_session()
        outcome = await workflow_of(request).resume(session_key, dict(request.query_params))
        if outcome is None:
            return JSONResponse({"kind": "fresh"})
        return outcome_response(outcome)

    return app


__all__ = ("create_app", "STATUS_FOR")
