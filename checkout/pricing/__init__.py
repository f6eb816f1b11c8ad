"""
Pricing — cart totals, tax and coupon discount.

    from checkout import pricing as P

    breakdown = P.price(cart.lines, coupon_terms, tax_rate=Decimal("0.20"))
    quote = await P.quote(cart, "SAVE10", resolver)
"""

from checkout.pricing._types import (
    DiscountType,
    CouponTerms,
    CartLine,
    Cart,
    PriceBreakdown,
)
from checkout.pricing._engine import (
    DEFAULT_TAX_RATE,
    price,
    subtotal_of,
    tax_on,
    discount_on,
    gross_unit_price,
)
from checkout.pricing._graph import (
    Quote,
    QuoteRequest,
    TermsResolver,
    QuoteRequestNode,
    CouponNode,
    BreakdownNode,
    quote,
)

__all__ = (
    "DiscountType",
    "CouponTerms",
    "CartLine",
    "Cart",
    "PriceBreakdown",
    "DEFAULT_TAX_RATE",
    "price",
    "subtotal_of",
    "tax_on",
    "discount_on",
    "gross_unit_price",
    "Quote",
    "QuoteRequest",
    "TermsResolver",
    "QuoteRequestNode",
    "CouponNode",
    "BreakdownNode",
    "quote",
)
