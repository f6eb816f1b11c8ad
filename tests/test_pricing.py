"""Tests for the pricing engine and the quote graph."""

from decimal import Decimal

import pytest
from kungfu import Ok, Error

from checkout.errors import ErrorKind, Errors
from checkout.lift import from_result
from checkout.pricing import (
    Cart,
    CartLine,
    CouponTerms,
    DiscountType,
    gross_unit_price,
    price,
    quote,
)


def line(unit_price: str, quantity: int, stock: int = 10, product_id: int = 1) -> CartLine:
    return CartLine(product_id, f"Product {product_id}", Decimal(unit_price), quantity, stock)


class StaticResolver:
    def __init__(self, terms: dict[str, CouponTerms]) -> None:
        self.terms = terms
        self.calls: list[str] = []

    def resolve(self, code):
        self.calls.append(code)
        found = self.terms.get(code.strip().upper())
        if found is None:
            return from_result(Error(Errors.coupon_rejected(code)))
        return from_result(Ok(found))


class TestPrice:
    def test_no_coupon(self):
        b = price([line("25", 2)])
        assert b.subtotal == Decimal("50.00")
        assert b.tax == Decimal("10.00")
        assert b.gross_total == Decimal("60.00")
        assert b.discount == Decimal("0.00")
        assert b.final_total == Decimal("60.00")
        assert b.final_minor_units == 6000

    def test_percent_discount_applies_to_gross(self):
        b = price([line("100", 1)], CouponTerms("SAVE10", DiscountType.PERCENT, Decimal("10")))
        assert b.gross_total == Decimal("120.00")
        assert b.discount == Decimal("12.00")
        assert b.final_total == Decimal("108.00")

    def test_fixed_discount_clamps_at_zero(self):
        b = price([line("50", 1)], CouponTerms("TAKE75", DiscountType.FIXED, Decimal("75")))
        assert b.gross_total == Decimal("60.00")
        assert b.discount == Decimal("75.00")
        assert b.final_total == Decimal("0.00")

    @pytest.mark.parametrize("subtotal,percent,expected", [
        ("100", "10", "108.00"),
        ("33.33", "15", "34.00"),
        ("19.99", "100", "0.00"),
    ])
    def test_percent_formula(self, subtotal, percent, expected):
        b = price([line(subtotal, 1)], CouponTerms("X", DiscountType.PERCENT, Decimal(percent)))
        assert b.final_total == Decimal(expected)

    def test_rounding_is_half_up(self):
        # 0.125 → 0.13 (banker's rounding would give 0.12)
        b = price([line("0.125", 1)])
        assert b.subtotal == Decimal("0.13")
        assert b.tax == Decimal("0.03")

    def test_custom_tax_rate(self):
        b = price([line("10", 1)], tax_rate=Decimal("0.05"))
        assert b.tax == Decimal("0.50")
        assert b.final_total == Decimal("10.50")

    def test_gross_unit_price(self):
        assert gross_unit_price(Decimal("25.00")) == Decimal("30.00")
        assert gross_unit_price(Decimal("8.33")) == Decimal("10.00")


class TestCart:
    def test_empty_cart_is_invalid(self):
        match Cart(()).validate():
            case Error(e):
                assert e.kind is ErrorKind.VALIDATION
            case Ok(_):
                pytest.fail("empty cart accepted")

    def test_quantity_above_stock_is_invalid(self):
        match Cart((line("5", 3, stock=2),)).validate():
            case Error(e):
                assert "Only 2" in e.message
            case Ok(_):
                pytest.fail("quantity above stock accepted")

    def test_zero_quantity_is_invalid(self):
        assert isinstance(Cart((line("5", 0),)).validate(), Error)

    def test_zero_price_is_invalid(self):
        match Cart((line("0", 1),)).validate():
            case Error(e):
                assert "invalid price" in e.message
            case Ok(_):
                pytest.fail("free line accepted")

    def test_valid_cart(self):
        assert isinstance(Cart((line("5", 2),)).validate(), Ok)

    def test_fingerprint_tracks_cart_and_coupon(self):
        cart = Cart((line("5", 2),))
        assert cart.fingerprint("save10") == cart.fingerprint(" SAVE10 ")
        assert cart.fingerprint(None) != cart.fingerprint("SAVE10")
        assert cart.fingerprint(None) != Cart((line("5", 3),)).fingerprint(None)


class TestQuoteGraph:
    async def test_quote_without_code_skips_resolver(self):
        resolver = StaticResolver({})
        q = await quote(Cart((line("25", 2),)), None, resolver)
        assert q.breakdown.final_total == Decimal("60.00")
        assert q.coupon is None
        assert q.rejection is None
        assert resolver.calls == []

    async def test_quote_applies_resolved_coupon(self):
        terms = CouponTerms("SAVE10", DiscountType.PERCENT, Decimal("10"))
        q = await quote(Cart((line("100", 1),)), "save10", StaticResolver({"SAVE10": terms}))
        assert q.coupon == terms
        assert q.breakdown.final_total == Decimal("108.00")

    async def test_rejected_coupon_leaves_total_unchanged(self):
        q = await quote(Cart((line("100", 1),)), "NOPE", StaticResolver({}))
        assert q.coupon is None
        assert q.rejection is not None
        assert q.rejection.kind is ErrorKind.COUPON_REJECTED
        assert q.breakdown.final_total == Decimal("120.00")
