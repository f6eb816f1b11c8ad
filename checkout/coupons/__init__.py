"""
Coupons — code lookup and term validation.

    resolver = CouponResolver(datastore)
    match await resolver.resolve(" save10 "):
        case Ok(terms): ...
        case Error(e): e.kind  # ErrorKind.COUPON_REJECTED
"""

from checkout.coupons._resolver import Coupon, CouponRepository, CouponResolver

__all__ = ("Coupon", "CouponRepository", "CouponResolver")
