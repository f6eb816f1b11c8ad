"""Tests for order materialization and the inventory primitive."""

import asyncio
from decimal import Decimal

import pytest
from kungfu import Ok, Error
from structlog.testing import capture_logs

from checkout.errors import ErrorKind
from checkout.orders import (
    FulfillmentExceptionKind,
    OrderMaterializer,
    OrderStatus,
    StockOutcomeKind,
    UNKNOWN_CUSTOMER,
)
from checkout.pricing import CartLine
from checkout.store import IN_STOCK, OUT_OF_STOCK


async def materialized(materializer, reference, address, lines, total="60.00", **kwargs):
    match await materializer.materialize(reference, address, tuple(lines), Decimal(total), **kwargs):
        case Ok(done):
            return done
        case Error(e):
            pytest.fail(str(e))


class TestConditionalDecrement:
    async def test_decrements_when_stock_suffices(self, database, products):
        outcome = await database.decrement_stock(products["lamp"], 3)
        assert outcome.kind is StockOutcomeKind.OK
        assert outcome.remaining == 7
        assert await database.product_stock(products["lamp"]) == (7, IN_STOCK)

    async def test_insufficient_leaves_stock_unchanged(self, database, products):
        outcome = await database.decrement_stock(products["mug"], 2)
        assert outcome.kind is StockOutcomeKind.INSUFFICIENT
        assert outcome.remaining == 1
        assert await database.product_stock(products["mug"]) == (1, IN_STOCK)

    async def test_last_unit_flips_status(self, database, products):
        await database.decrement_stock(products["mug"], 1)
        assert await database.product_stock(products["mug"]) == (0, OUT_OF_STOCK)

    async def test_unknown_product(self, database):
        outcome = await database.decrement_stock(9999, 1)
        assert outcome.kind is StockOutcomeKind.INSUFFICIENT
        assert outcome.remaining is None


class TestMaterialize:
    async def test_creates_paid_order_with_gross_line_prices(
        self, materializer, database, products, address, lamp_line,
    ):
        done = await materialized(materializer, "pi_1", address, [lamp_line])
        assert done.created
        assert done.order.status is OrderStatus.PAID
        assert done.order.total_amount == Decimal("60.00")
        assert done.order.id.startswith("ORD-")
        assert [(i.quantity, i.price_at_purchase) for i in done.items] == [(2, Decimal("30.00"))]
        assert await database.product_stock(products["lamp"]) == (8, IN_STOCK)

        stored = await database.find_order_by_payment_reference("pi_1")
        assert stored is not None
        order, items = stored
        assert order.id == done.order.id
        assert order.shipping_address == address
        assert items == done.items

    async def test_idempotent_per_payment_reference(
        self, materializer, database, products, address, lamp_line,
    ):
        first = await materialized(materializer, "pi_1", address, [lamp_line])
        second = await materialized(materializer, "pi_1", address, [lamp_line])
        assert not second.created
        assert second.order.id == first.order.id
        assert await database.count_orders("pi_1") == 1
        assert await database.product_stock(products["lamp"]) == (8, IN_STOCK)

    async def test_concurrent_duplicates_yield_one_order(
        self, materializer, database, products, address, lamp_line,
    ):
        results = await asyncio.gather(*[
            materializer.materialize("pi_1", address, (lamp_line,), Decimal("60.00"))
            for _ in range(3)
        ])
        order_ids = set()
        for result in results:
            match result:
                case Ok(done):
                    order_ids.add(done.order.id)
                case Error(e):
                    pytest.fail(str(e))
        assert len(order_ids) == 1
        assert await database.count_orders() == 1
        assert await database.product_stock(products["lamp"]) == (8, IN_STOCK)

    async def test_concurrent_checkouts_for_last_unit(self, materializer, database, products, address):
        mug = CartLine(products["mug"], "Mug", Decimal("8.00"), 1, 1)
        first, second = await asyncio.gather(
            materialized(materializer, "pi_a", address, [mug], "9.60"),
            materialized(materializer, "pi_b", address, [mug], "9.60"),
        )
        kinds = sorted(o.kind.value for done in (first, second) for o in done.stock_outcomes)
        assert kinds == ["insufficient", "ok"]
        assert await database.product_stock(products["mug"]) == (0, OUT_OF_STOCK)
        # Both payments were captured, so both orders exist.
        assert await database.count_orders() == 2

    async def test_oversell_is_recorded_not_rolled_back(self, materializer, database, products, address):
        mugs = CartLine(products["mug"], "Mug", Decimal("8.00"), 3, 3)
        with capture_logs() as logs:
            done = await materialized(materializer, "pi_1", address, [mugs], "28.80")
        assert [o.product_id for o in done.oversold] == [products["mug"]]
        assert await database.product_stock(products["mug"]) == (1, IN_STOCK)
        exceptions = await database.list_exceptions(done.order.id)
        assert [e.kind for e in exceptions] == [FulfillmentExceptionKind.OVERSELL]
        assert any(e["event"] == "inventory_oversell" and e["log_level"] == "error" for e in logs)

    async def test_low_stock_warning(self, materializer, products, address):
        lamps = CartLine(products["lamp"], "Desk Lamp", Decimal("25.00"), 6, 10)
        with capture_logs() as logs:
            await materialized(materializer, "pi_1", address, [lamps], "180.00")
        warnings = [e for e in logs if e["event"] == "low_stock"]
        assert warnings and warnings[0]["remaining"] == 4

    async def test_degraded_order_without_context(self, materializer, database, products):
        done = await materialized(
            materializer, "pi_lost", None, [], "60.00",
            metadata={"customer_name": "Ada Lovelace", "email": "ada@example.com"},
        )
        assert done.order.degraded
        assert done.order.customer_name == "Ada Lovelace"
        assert done.order.email == "ada@example.com"
        assert done.items == ()
        assert await database.product_stock(products["lamp"]) == (10, IN_STOCK)
        exceptions = await database.list_exceptions(done.order.id)
        assert [e.kind for e in exceptions] == [FulfillmentExceptionKind.MISSING_CONTEXT]

    async def test_degraded_order_without_metadata(self, materializer):
        done = await materialized(materializer, "pi_lost", None, [], "12.00")
        assert done.order.customer_name == UNKNOWN_CUSTOMER
        assert done.order.email is None


class BrokenDatastore:
    async def find_order_by_payment_reference(self, payment_reference):
        return None

    def transaction(self):
        raise RuntimeError("datastore offline")

    async def record_exception(self, exception):
        raise RuntimeError("datastore offline")


class TestMaterializationFailure:
    async def test_failure_is_logged_with_context_and_returned(self, address, lamp_line):
        materializer = OrderMaterializer(BrokenDatastore())
        with capture_logs() as logs:
            result = await materializer.materialize("pi_1", address, (lamp_line,), Decimal("60.00"))
        match result:
            case Error(e):
                assert e.kind is ErrorKind.MATERIALIZATION
                assert not e.kind.before_capture
                assert "do not pay again" in e.message
            case Ok(_):
                pytest.fail("materialized without a datastore")
        critical = [entry for entry in logs if entry["event"] == "order_materialization_failed"]
        assert critical[0]["log_level"] == "critical"
        assert critical[0]["payment_reference"] == "pi_1"
        assert critical[0]["cart"][0]["quantity"] == 2
        assert critical[0]["address"]["postcode"] == address.postcode
