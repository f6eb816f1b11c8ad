"""
Coupon resolver.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

from kungfu import LazyCoroResult, Result, Ok, Error

from checkout.errors import CheckoutError, ErrorKind, Errors
from checkout.logs import get_logger
from checkout.pricing import CouponTerms, DiscountType


@dataclass(frozen=True, slots=True)
class Coupon:
    """Coupon row as stored."""

    code: str
    discount_type: str
    value: Decimal
    active: bool


class CouponRepository(Protocol):
    async def find_coupon(self, code: str) -> Coupon | None:
        """Exact lookup on the upper-cased code."""
        ...


def normalize_code(code: str) -> str:
    return code.strip().upper()


def check_terms(coupon: Coupon) -> Result[CouponTerms, CheckoutError]:
    """Reject inactive or malformed coupons."""
    if not coupon.active:
        return Error(Errors.coupon_rejected(coupon.code, "This coupon has expired."))

    try:
        kind = DiscountType(coupon.discount_type.lower())
    except ValueError:
        return Error(Errors.coupon_rejected(coupon.code))

    try:
        value = Decimal(coupon.value)
    except (InvalidOperation, TypeError):
        return Error(Errors.coupon_rejected(coupon.code))

    if value <= 0 or (kind is DiscountType.PERCENT and value > 100):
        return Error(Errors.coupon_rejected(coupon.code))

    return Ok(CouponTerms(code=coupon.code, discount_type=kind, value=value))


class CouponResolver:
    """
    Turns a shopper-entered code into CouponTerms.

    Every failure, from a typo to a repository outage, comes back as a single
    COUPON_REJECTED error; the shopper can drop the code and continue.
    """

    def __init__(self, repository: CouponRepository) -> None:
        self._repository = repository

    def resolve(self, code: str) -> LazyCoroResult[CouponTerms, CheckoutError]:
        async def _resolve() -> Result[CouponTerms, CheckoutError]:
            normalized = normalize_code(code)
            if not normalized:
                return Error(Errors.coupon_rejected(code, "Please enter a coupon code."))

            try:
                coupon = await self._repository.find_coupon(normalized)
            except Exception as e:
                get_logger("coupons").exception("coupon_lookup_failed", code=normalized)
                return Error(CheckoutError(
                    ErrorKind.COUPON_REJECTED,
                    "Coupons cannot be checked right now. Remove the code to continue.",
                    cause=e,
                    context={"code": normalized},
                ))

            if coupon is None:
                return Error(Errors.coupon_rejected(normalized))
            return check_terms(coupon)

        return LazyCoroResult(_resolve)


__all__ = ("Coupon", "CouponRepository", "CouponResolver", "normalize_code", "check_terms")
