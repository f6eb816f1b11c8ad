"""
Pricing types — cart, coupon terms, breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from kungfu import Result, Ok, Error

from checkout._types import Money, money, to_minor_units
from checkout.errors import CheckoutError, Errors


# ═══════════════════════════════════════════════════════════════════════════════
# Coupon Terms
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(Enum):
    PERCENT = "percent"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class CouponTerms:
    """Validated discount terms handed to the pricing engine."""

    code: str
    discount_type: DiscountType
    value: Decimal


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One product in the cart.

    unit_price is the pre-tax shelf price; stock_limit is the stock level
    seen when the product was added (the cart never lets quantity exceed it).
    """

    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    stock_limit: int
    variant: str | None = None

    @property
    def line_total(self) -> Money:
        return money(self.unit_price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "stock_limit": self.stock_limit,
            "variant": self.variant,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartLine:
        return cls(
            product_id=int(data["product_id"]),
            name=str(data["name"]),
            unit_price=Decimal(str(data["unit_price"])),
            quantity=int(data["quantity"]),
            stock_limit=int(data.get("stock_limit", data["quantity"])),
            variant=data.get("variant"),
        )


@dataclass(frozen=True, slots=True)
class Cart:
    lines: tuple[CartLine, ...]

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def validate(self) -> Result[Cart, CheckoutError]:
        """Non-empty, positive prices, 1 <= quantity <= stock_limit."""
        if self.is_empty:
            return Error(Errors.validation("Your cart is empty."))
        for line in self.lines:
            if line.unit_price <= 0:
                return Error(Errors.validation(
                    f"'{line.name}' has an invalid price.", product_id=line.product_id,
                ))
            if line.quantity < 1:
                return Error(Errors.validation(
                    f"Quantity for '{line.name}' must be at least 1.",
                    product_id=line.product_id,
                ))
            if line.quantity > line.stock_limit:
                return Error(Errors.validation(
                    f"Only {line.stock_limit} of '{line.name}' available.",
                    product_id=line.product_id,
                ))
        return Ok(self)

    def fingerprint(self, coupon_code: str | None) -> str:
        """Stable identity of what is being paid for; changes when cart or coupon do."""
        parts = [
            f"{line.product_id}:{line.variant or ''}:{line.unit_price}:{line.quantity}"
            for line in self.lines
        ]
        parts.append(f"coupon:{(coupon_code or '').strip().upper()}")
        return "|".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# Breakdown
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    subtotal: Money
    tax: Money
    gross_total: Money
    discount: Money
    final_total: Money

    @property
    def final_minor_units(self) -> int:
        return to_minor_units(self.final_total)

    def to_dict(self) -> dict[str, str]:
        return {
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "gross_total": str(self.gross_total),
            "discount": str(self.discount),
            "final_total": str(self.final_total),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriceBreakdown:
        return cls(
            subtotal=money(str(data["subtotal"])),
            tax=money(str(data["tax"])),
            gross_total=money(str(data["gross_total"])),
            discount=money(str(data["discount"])),
            final_total=money(str(data["final_total"])),
        )


__all__ = (
    "DiscountType",
    "CouponTerms",
    "CartLine",
    "Cart",
    "PriceBreakdown",
)
