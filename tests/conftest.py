"""Pytest fixtures for checkout tests."""

from datetime import timedelta
from decimal import Decimal

import pytest

from checkout.address import Address
from checkout.confirmation import PaymentConfirmationHandler
from checkout.continuation import MemoryContinuationStore
from checkout.coupons import CouponResolver
from checkout.notify import FulfillmentNotifier, InvoiceRenderer, MemoryEmailChannel
from checkout.orders import OrderMaterializer
from checkout.payments import InMemoryGateway, PaymentSessionManager
from checkout.pricing import CartLine
from checkout.store import SqlDatastore, create_database
from checkout.workflow import CheckoutWorkflow

RETURN_URL = "https://shop.test/checkout/return"

ADDRESS_FIELDS = {
    "name": "Ada Lovelace",
    "line1": "10 Downing Street",
    "line2": None,
    "city": "London",
    "postcode": "SW1A 2AA",
    "country": "GB",
    "phone": "07700 900123",
    "email": "Ada@Example.com",
}


@pytest.fixture
def address() -> Address:
    return Address(
        name="Ada Lovelace",
        line1="10 Downing Street",
        city="London",
        postcode="SW1A 2AA",
        country="GB",
        phone="07700900123",
        email="ada@example.com",
    )


@pytest.fixture
async def database(tmp_path):
    """File-backed SQLite, so concurrent transactions use separate connections."""
    session_factory, engine = await create_database(
        f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}"
    )
    yield SqlDatastore(session_factory)
    await engine.dispose()


@pytest.fixture
async def products(database):
    """Two seeded products; ids keyed by name."""
    return {
        "lamp": await database.add_product("Desk Lamp", Decimal("25.00"), 10),
        "mug": await database.add_product("Mug", Decimal("8.00"), 1),
    }


@pytest.fixture
async def coupons(database):
    await database.add_coupon("SAVE10", "percent", Decimal("10"))
    await database.add_coupon("TAKE75", "fixed", Decimal("75"))
    await database.add_coupon("OLD20", "percent", Decimal("20"), active=False)


@pytest.fixture
def lamp_line(products) -> CartLine:
    return CartLine(products["lamp"], "Desk Lamp", Decimal("25.00"), 2, 10)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def continuations() -> MemoryContinuationStore:
    return MemoryContinuationStore(max_age=timedelta(hours=24))


@pytest.fixture
def mail() -> MemoryEmailChannel:
    return MemoryEmailChannel()


@pytest.fixture
def materializer(database) -> OrderMaterializer:
    return OrderMaterializer(database, tax_rate=Decimal("0.20"), low_stock_threshold=5)


@pytest.fixture
def handler(gateway, continuations) -> PaymentConfirmationHandler:
    return PaymentConfirmationHandler(gateway, continuations, RETURN_URL, timeout=0.5)


@pytest.fixture
def workflow(database, gateway, continuations, mail, materializer, handler, coupons) -> CheckoutWorkflow:
    return CheckoutWorkflow(
        resolver=CouponResolver(database),
        sessions=PaymentSessionManager(gateway, currency="gbp", timeout=0.5),
        handler=handler,
        materializer=materializer,
        notifier=FulfillmentNotifier(mail, InvoiceRenderer(), database),
        tax_rate=Decimal("0.20"),
    )
