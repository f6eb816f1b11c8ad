"""Tests for coupon resolution."""

from decimal import Decimal

import pytest
from kungfu import Ok, Error

from checkout.coupons import Coupon, CouponResolver
from checkout.errors import ErrorKind
from checkout.pricing import DiscountType


class FakeRepository:
    def __init__(self, coupons: list[Coupon] | None = None, fail: bool = False) -> None:
        self.coupons = {c.code: c for c in coupons or []}
        self.fail = fail
        self.lookups: list[str] = []

    async def find_coupon(self, code: str) -> Coupon | None:
        self.lookups.append(code)
        if self.fail:
            raise ConnectionError("database down")
        return self.coupons.get(code)


async def rejected(resolver: CouponResolver, code: str) -> str:
    match await resolver.resolve(code):
        case Error(e):
            assert e.kind is ErrorKind.COUPON_REJECTED
            return e.message
        case Ok(terms):
            pytest.fail(f"{code!r} resolved to {terms}")


class TestCouponResolver:
    async def test_matches_trimmed_case_insensitive(self):
        repo = FakeRepository([Coupon("SAVE10", "percent", Decimal("10"), True)])
        match await CouponResolver(repo).resolve("  save10 "):
            case Ok(terms):
                assert terms.code == "SAVE10"
                assert terms.discount_type is DiscountType.PERCENT
                assert terms.value == Decimal("10")
            case Error(e):
                pytest.fail(str(e))
        assert repo.lookups == ["SAVE10"]

    async def test_unknown_code(self):
        await rejected(CouponResolver(FakeRepository()), "NOPE")

    async def test_inactive_code(self):
        repo = FakeRepository([Coupon("OLD20", "percent", Decimal("20"), False)])
        message = await rejected(CouponResolver(repo), "old20")
        assert "expired" in message

    async def test_blank_code_does_not_hit_repository(self):
        repo = FakeRepository()
        await rejected(CouponResolver(repo), "   ")
        assert repo.lookups == []

    @pytest.mark.parametrize("coupon", [
        Coupon("ZERO", "fixed", Decimal("0"), True),
        Coupon("NEG", "fixed", Decimal("-5"), True),
        Coupon("HUGE", "percent", Decimal("150"), True),
        Coupon("ODD", "bogo", Decimal("10"), True),
    ])
    async def test_malformed_terms(self, coupon):
        await rejected(CouponResolver(FakeRepository([coupon])), coupon.code)

    async def test_repository_failure_is_a_rejection(self):
        message = await rejected(CouponResolver(FakeRepository(fail=True)), "SAVE10")
        assert "cannot be checked" in message

    async def test_sql_repository(self, database, coupons):
        resolver = CouponResolver(database)
        match await resolver.resolve("take75"):
            case Ok(terms):
                assert terms.discount_type is DiscountType.FIXED
                assert terms.value == Decimal("75.00")
            case Error(e):
                pytest.fail(str(e))
        await rejected(resolver, "OLD20")
