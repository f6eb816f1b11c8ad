"""
Quote graph — coupon lookup feeding the pricing engine.

    QuoteRequestNode ──► CouponNode ──► BreakdownNode
            └──────────────────────────────┘

`quote()` is what the storefront calls while the shopper edits the cart:
it resolves the coupon (if any) and prices the cart in one graph run.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from kungfu import LazyCoroResult, Ok, Error

from checkout import graph as G
from checkout.errors import CheckoutError
from checkout.pricing._types import Cart, CouponTerms, PriceBreakdown
from checkout.pricing._engine import DEFAULT_TAX_RATE, price


class TermsResolver(Protocol):
    def resolve(self, code: str) -> LazyCoroResult[CouponTerms, CheckoutError]: ...


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    cart: Cart
    coupon_code: str | None
    resolver: TermsResolver
    tax_rate: Decimal = DEFAULT_TAX_RATE


@dataclass(frozen=True, slots=True)
class Quote:
    """Priced cart; `rejection` is set when a supplied code did not apply."""

    breakdown: PriceBreakdown
    coupon: CouponTerms | None
    rejection: CheckoutError | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class QuoteRequestNode:
    """Entry point: wraps the QuoteRequest input."""

    def __init__(self, data: QuoteRequest) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, request: QuoteRequest) -> "QuoteRequestNode":
        return cls(request)


@G.node
class CouponNode:
    """Resolved coupon terms, or the reason the code was refused."""

    def __init__(self, terms: CouponTerms | None, rejection: CheckoutError | None) -> None:
        self.terms = terms
        self.rejection = rejection

    @classmethod
    async def __compose__(cls, request: QuoteRequestNode) -> "CouponNode":
        code = (request.data.coupon_code or "").strip()
        if not code:
            return cls(None, None)

        match await request.data.resolver.resolve(code):
            case Ok(terms):
                return cls(terms, None)
            case Error(e):
                return cls(None, e)


@G.node
class BreakdownNode:
    """Final quote."""

    def __init__(self, quote: Quote) -> None:
        self.quote = quote

    @classmethod
    async def __compose__(cls, request: QuoteRequestNode, coupon: CouponNode) -> "BreakdownNode":
        breakdown = price(
            request.data.cart.lines,
            coupon.terms,
            tax_rate=request.data.tax_rate,
        )
        return cls(Quote(breakdown, coupon.terms, coupon.rejection))


async def quote(
    cart: Cart,
    coupon_code: str | None,
    resolver: TermsResolver,
    *,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> Quote:
    """Price `cart`, applying `coupon_code` when it resolves."""
    request = QuoteRequest(cart, coupon_code, resolver, tax_rate)
    node = await G.run(BreakdownNode).inject(request)
    return node.quote


__all__ = (
    "TermsResolver",
    "QuoteRequest",
    "Quote",
    "QuoteRequestNode",
    "CouponNode",
    "BreakdownNode",
    "quote",
)
