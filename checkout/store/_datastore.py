"""
SQL datastore — coupons, orders, inventory and fulfillment exceptions.

    session_factory, engine = await create_database(settings.database_url)
    datastore = SqlDatastore(session_factory)

    async with datastore.transaction() as tx:
        await tx.insert_order(order)
        outcome = await tx.decrement_stock(product_id, 2)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout._types import money
from checkout.address import Address
from checkout.coupons import Coupon
from checkout.errors import DuplicatePaymentReference
from checkout.orders import (
    FulfillmentException,
    FulfillmentExceptionKind,
    Order,
    OrderLineItem,
    OrderStatus,
    StockOutcome,
    StockOutcomeKind,
)
from checkout.store._tables import (
    IN_STOCK,
    OUT_OF_STOCK,
    CouponTable,
    FulfillmentExceptionTable,
    OrderItemTable,
    OrderTable,
    ProductTable,
)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Row Mapping
# ═══════════════════════════════════════════════════════════════════════════════


def order_to_row(order: Order) -> OrderTable:
    address = order.shipping_address
    return OrderTable(
        id=order.id,
        payment_reference=order.payment_reference,
        customer_name=order.customer_name,
        email=order.email,
        phone=address.phone if address else None,
        address_line1=address.line1 if address else None,
        address_line2=address.line2 if address else None,
        city=address.city if address else None,
        postcode=address.postcode if address else None,
        country=address.country if address else None,
        total_amount=order.total_amount,
        currency=order.currency,
        status=order.status.value,
        degraded=order.degraded,
        created_at=order.created_at,
    )


def row_to_order(row: OrderTable) -> Order:
    address = None
    if row.address_line1:
        address = Address(
            name=row.customer_name,
            line1=row.address_line1,
            line2=row.address_line2,
            city=row.city or "",
            postcode=row.postcode or "",
            country=row.country or "",
            phone=row.phone or "",
            email=row.email or "",
        )
    return Order(
        id=row.id,
        payment_reference=row.payment_reference,
        customer_name=row.customer_name,
        total_amount=money(row.total_amount),
        currency=row.currency,
        email=row.email,
        shipping_address=address,
        status=OrderStatus(row.status),
        degraded=row.degraded,
        created_at=_aware(row.created_at),
    )


def row_to_item(row: OrderItemTable) -> OrderLineItem:
    return OrderLineItem(
        order_id=row.order_id,
        product_id=row.product_id,
        product_name=row.product_name,
        quantity=row.quantity,
        price_at_purchase=money(row.price_at_purchase),
        variant=row.variant,
    )


def exception_to_row(exception: FulfillmentException) -> FulfillmentExceptionTable:
    return FulfillmentExceptionTable(
        order_id=exception.order_id,
        kind=exception.kind.value,
        product_id=exception.product_id,
        detail=exception.detail,
        resolved=exception.resolved,
        created_at=exception.created_at,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory Primitive
# ═══════════════════════════════════════════════════════════════════════════════


async def conditional_decrement(
    session: AsyncSession,
    product_id: int,
    quantity: int,
) -> StockOutcome:
    """
    UPDATE products SET stock = stock - q WHERE id = :id AND stock >= q RETURNING stock

    The check and the write are one statement, so two writers can never both
    take the last unit. Status flips to "Out of Stock" in the same update.
    """
    new_stock = ProductTable.stock_quantity - quantity
    stmt = (
        update(ProductTable)
        .where(ProductTable.id == product_id, ProductTable.stock_quantity >= quantity)
        .values(
            stock_quantity=new_stock,
            status=case((new_stock <= 0, OUT_OF_STOCK), else_=IN_STOCK),
        )
        .returning(ProductTable.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    remaining = (await session.execute(stmt)).scalar_one_or_none()
    if remaining is not None:
        return StockOutcome(product_id, quantity, StockOutcomeKind.OK, remaining)

    current = (
        await session.execute(
            select(ProductTable.stock_quantity).where(ProductTable.id == product_id)
        )
    ).scalar_one_or_none()
    return StockOutcome(product_id, quantity, StockOutcomeKind.INSUFFICIENT, current)


# ═══════════════════════════════════════════════════════════════════════════════
# Unit of Work
# ═══════════════════════════════════════════════════════════════════════════════


class SqlOrderWriter:
    """Writes bound to one open transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_order(self, order: Order) -> None:
        self._session.add(order_to_row(order))
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicatePaymentReference(order.payment_reference) from e

    async def insert_items(self, items: tuple[OrderLineItem, ...]) -> None:
        self._session.add_all([
            OrderItemTable(
                order_id=item.order_id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                price_at_purchase=item.price_at_purchase,
                variant=item.variant,
            )
            for item in items
        ])
        await self._session.flush()

    async def decrement_stock(self, product_id: int, quantity: int) -> StockOutcome:
        return await conditional_decrement(self._session, product_id, quantity)

    async def record_exception(self, exception: FulfillmentException) -> None:
        self._session.add(exception_to_row(exception))
        await self._session.flush()


# ═══════════════════════════════════════════════════════════════════════════════
# Datastore
# ═══════════════════════════════════════════════════════════════════════════════


class SqlDatastore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlOrderWriter]:
        async with self._session() as session:
            async with session.begin():
                yield SqlOrderWriter(session)

    # ─── coupons ─────────────────────────────────────────────────────────────

    async def find_coupon(self, code: str) -> Coupon | None:
        async with self._session() as session:
            row = (
                await session.execute(select(CouponTable).where(CouponTable.code == code))
            ).scalar_one_or_none()
            if row is None:
                return None
            return Coupon(
                code=row.code,
                discount_type=row.discount_type,
                value=Decimal(row.value),
                active=row.is_active,
            )

    async def add_coupon(
        self,
        code: str,
        discount_type: str,
        value: Decimal,
        *,
        active: bool = True,
    ) -> None:
        async with self._session() as session, session.begin():
            session.add(CouponTable(
                code=code.strip().upper(),
                discount_type=discount_type,
                value=value,
                is_active=active,
            ))

    # ─── products ────────────────────────────────────────────────────────────

    async def add_product(self, name: str, price: Decimal, stock_quantity: int) -> int:
        async with self._session() as session, session.begin():
            row = ProductTable(
                name=name,
                price=price,
                stock_quantity=stock_quantity,
                status=IN_STOCK if stock_quantity > 0 else OUT_OF_STOCK,
            )
            session.add(row)
            await session.flush()
            return row.id

    async def product_stock(self, product_id: int) -> tuple[int, str] | None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(ProductTable.stock_quantity, ProductTable.status)
                    .where(ProductTable.id == product_id)
                )
            ).one_or_none()
            return (row[0], row[1]) if row is not None else None

    async def decrement_stock(self, product_id: int, quantity: int) -> StockOutcome:
        """Conditional decrement in its own transaction."""
        async with self._session() as session, session.begin():
            return await conditional_decrement(session, product_id, quantity)

    # ─── orders ──────────────────────────────────────────────────────────────

    async def find_order_by_payment_reference(
        self,
        payment_reference: str,
    ) -> tuple[Order, tuple[OrderLineItem, ...]] | None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(OrderTable).where(OrderTable.payment_reference == payment_reference)
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            items = (
                await session.execute(
                    select(OrderItemTable)
                    .where(OrderItemTable.order_id == row.id)
                    .order_by(OrderItemTable.id)
                )
            ).scalars().all()
            return row_to_order(row), tuple(row_to_item(i) for i in items)

    async def count_orders(self, payment_reference: str | None = None) -> int:
        stmt = select(func.count()).select_from(OrderTable)
        if payment_reference is not None:
            stmt = stmt.where(OrderTable.payment_reference == payment_reference)
        async with self._session() as session:
            return int((await session.execute(stmt)).scalar_one())

    # ─── fulfillment exceptions ──────────────────────────────────────────────

    async def record_exception(self, exception: FulfillmentException) -> None:
        async with self._session() as session, session.begin():
            session.add(exception_to_row(exception))

    async def list_exceptions(
        self,
        order_id: str | None = None,
        *,
        unresolved_only: bool = True,
    ) -> tuple[FulfillmentException, ...]:
        stmt = select(FulfillmentExceptionTable).order_by(FulfillmentExceptionTable.id)
        if order_id is not None:
            stmt = stmt.where(FulfillmentExceptionTable.order_id == order_id)
        if unresolved_only:
            stmt = stmt.where(FulfillmentExceptionTable.resolved.is_(False))
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return tuple(
                FulfillmentException(
                    order_id=r.order_id,
                    kind=FulfillmentExceptionKind(r.kind),
                    detail=r.detail,
                    product_id=r.product_id,
                    resolved=r.resolved,
                    created_at=_aware(r.created_at),
                )
                for r in rows
            )


__all__ = (
    "SqlDatastore",
    "SqlOrderWriter",
    "conditional_decrement",
    "order_to_row",
    "row_to_order",
)
