"""
Pricing engine — pure arithmetic, no I/O.

Order of operations:

    subtotal    = Σ unit_price × quantity
    tax         = subtotal × tax_rate
    gross_total = subtotal + tax
    discount    = gross_total × value / 100   (percent)
                | value                       (fixed)
    final_total = max(0, gross_total − discount)

Note: The discount comes off the tax-inclusive gross total, not the pre-tax
subtotal. Moving it before tax would change every discounted total and VAT
figure on existing receipts.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from checkout._types import Money, ZERO, money
from checkout.pricing._types import (
    CartLine,
    CouponTerms,
    DiscountType,
    PriceBreakdown,
)

DEFAULT_TAX_RATE = Decimal("0.20")


def subtotal_of(lines: Iterable[CartLine]) -> Money:
    return money(sum((line.unit_price * line.quantity for line in lines), ZERO))


def tax_on(subtotal: Money, tax_rate: Decimal) -> Money:
    return money(subtotal * tax_rate)


def discount_on(gross_total: Money, coupon: CouponTerms | None) -> Money:
    if coupon is None:
        return ZERO
    match coupon.discount_type:
        case DiscountType.PERCENT:
            return money(gross_total * coupon.value / 100)
        case DiscountType.FIXED:
            return money(coupon.value)


def gross_unit_price(unit_price: Decimal, tax_rate: Decimal = DEFAULT_TAX_RATE) -> Money:
    """Tax-inclusive unit price, as recorded on order line items."""
    return money(unit_price * (1 + tax_rate))


def price(
    lines: Iterable[CartLine],
    coupon: CouponTerms | None = None,
    *,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> PriceBreakdown:
    """
    Price a cart.

    Example:
        >>> price([CartLine(1, "Lamp", Decimal("25"), 2, 5)])
        PriceBreakdown(subtotal=Decimal('50.00'), tax=Decimal('10.00'),
                       gross_total=Decimal('60.00'), discount=Decimal('0.00'),
                       final_total=Decimal('60.00'))
    """
    subtotal = subtotal_of(lines)
    tax = tax_on(subtotal, tax_rate)
    gross_total = money(subtotal + tax)
    discount = discount_on(gross_total, coupon)
    final_total = max(ZERO, money(gross_total - discount))

    return PriceBreakdown(
        subtotal=subtotal,
        tax=tax,
        gross_total=gross_total,
        discount=discount,
        final_total=final_total,
    )


__all__ = (
    "DEFAULT_TAX_RATE",
    "subtotal_of",
    "tax_on",
    "discount_on",
    "gross_unit_price",
    "price",
)
