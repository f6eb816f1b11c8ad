"""
Order types — orders, line items, inventory outcomes, datastore protocol.
"""

from __future__ import annotations

import secrets
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from checkout._types import Money
from checkout.address import Address
from checkout._types import utcnow


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


def new_order_id() -> str:
    """Short, human-presentable reference: ORD-9F3A11C2."""
    return f"ORD-{secrets.token_hex(4).upper()}"


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    payment_reference: str
    customer_name: str
    total_amount: Money
    currency: str
    email: str | None = None
    shipping_address: Address | None = None
    status: OrderStatus = OrderStatus.PAID
    degraded: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class OrderLineItem:
    """One purchased product; price_at_purchase is the tax-inclusive unit price."""

    order_id: str
    product_id: int
    product_name: str
    quantity: int
    price_at_purchase: Money
    variant: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


class StockOutcomeKind(Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"


@dataclass(frozen=True, slots=True)
class StockOutcome:
    """
    Result of one conditional decrement.

    remaining is the stock after the decrement when OK, and the untouched
    stock level (None for an unknown product) when INSUFFICIENT.
    """

    product_id: int
    requested: int
    kind: StockOutcomeKind
    remaining: int | None

    @property
    def ok(self) -> bool:
        return self.kind is StockOutcomeKind.OK


# ═══════════════════════════════════════════════════════════════════════════════
# Fulfillment Exceptions
# ═══════════════════════════════════════════════════════════════════════════════


class FulfillmentExceptionKind(Enum):
    OVERSELL = "oversell"
    MISSING_CONTEXT = "missing_context"
    RECEIPT_PENDING = "receipt_pending"


@dataclass(frozen=True, slots=True)
class FulfillmentException:
    """Operator-facing record of a paid order that needs a human."""

    order_id: str
    kind: FulfillmentExceptionKind
    detail: str
    product_id: int | None = None
    resolved: bool = False
    created_at: datetime = field(default_factory=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MaterializedOrder:
    order: Order
    items: tuple[OrderLineItem, ...]
    stock_outcomes: tuple[StockOutcome, ...] = ()
    created: bool = True

    @property
    def oversold(self) -> tuple[StockOutcome, ...]:
        return tuple(o for o in self.stock_outcomes if not o.ok)


# ═══════════════════════════════════════════════════════════════════════════════
# Datastore Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class OrderWriter(Protocol):
    """Operations inside one datastore transaction."""

    async def insert_order(self, order: Order) -> None:
        """Raises DuplicatePaymentReference when the reference is taken."""
        ...

    async def insert_items(self, items: tuple[OrderLineItem, ...]) -> None: ...

    async def decrement_stock(self, product_id: int, quantity: int) -> StockOutcome: ...

    async def record_exception(self, exception: FulfillmentException) -> None: ...


class OrderDatastore(Protocol):
    async def find_order_by_payment_reference(
        self,
        payment_reference: str,
    ) -> tuple[Order, tuple[OrderLineItem, ...]] | None: ...

    def transaction(self) -> AbstractAsyncContextManager[OrderWriter]:
        """Commits on clean exit, rolls back everything on exception."""
        ...

    async def record_exception(self, exception: FulfillmentException) -> None: ...


__all__ = (
    "OrderStatus",
    "new_order_id",
    "Order",
    "OrderLineItem",
    "StockOutcomeKind",
    "StockOutcome",
    "FulfillmentExceptionKind",
    "FulfillmentException",
    "MaterializedOrder",
    "OrderWriter",
    "OrderDatastore",
)
