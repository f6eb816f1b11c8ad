"""
Order materializer — captured payment → order, line items, inventory.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from kungfu import LazyCoroResult, Result, Ok, Error

from checkout._types import Lazy, Money, money
from checkout.address import Address
from checkout.errors import CheckoutError, ErrorKind, DuplicatePaymentReference
from checkout.logs import get_logger
from checkout.pricing import CartLine, DEFAULT_TAX_RATE, gross_unit_price
from checkout.orders._types import (
    FulfillmentException,
    FulfillmentExceptionKind,
    MaterializedOrder,
    Order,
    OrderDatastore,
    OrderLineItem,
    StockOutcome,
    new_order_id,
)

UNKNOWN_CUSTOMER = "Unknown customer"


class OrderMaterializer:
    """
    Turns a confirmed payment into persisted records, exactly once.

    The payment reference is the idempotency key: a second call for the same
    reference, from this process or another, returns the first order and
    touches no inventory.

    Example:
        match await materializer.materialize(
            "pi_123", address, lines, Decimal("60.00"), currency="gbp",
        ):
            case Ok(done): done.order.id, done.created
            case Error(e): e.kind  # ErrorKind.MATERIALIZATION
    """

    def __init__(
        self,
        datastore: OrderDatastore,
        tax_rate: Decimal = DEFAULT_TAX_RATE,
        low_stock_threshold: int = 5,
    ) -> None:
        self._datastore = datastore
        self._tax_rate = tax_rate
        self._low_stock_threshold = low_stock_threshold
        self._log = get_logger("materializer")

    def materialize(
        self,
        payment_reference: str,
        address: Address | None,
        lines: tuple[CartLine, ...],
        total: Money,
        *,
        currency: str = "gbp",
        metadata: Mapping[str, str] | None = None,
    ) -> Lazy[MaterializedOrder, CheckoutError]:
        """
        Persist the order for `payment_reference`.

        Passing address=None is degraded mode: the checkout context was lost,
        so the order carries only what the gateway knows (amount, metadata),
        has no items, decrements nothing and is flagged for an operator.
        """
        async def _materialize() -> Result[MaterializedOrder, CheckoutError]:
            try:
                existing = await self._existing(payment_reference)
                if existing is not None:
                    return Ok(existing)

                order = self._build_order(
                    payment_reference, address, total, currency, metadata or {},
                )
                try:
                    done = await self._write(order, lines)
                except DuplicatePaymentReference:
                    # Another writer committed first; theirs is the order.
                    winner = await self._existing(payment_reference)
                    if winner is None:
                        raise
                    return Ok(winner)
            except Exception as e:
                return Error(self._failed(payment_reference, address, lines, total, e))

            self._report(done)
            return Ok(done)

        return LazyCoroResult(_materialize)

    # ─── steps ───────────────────────────────────────────────────────────────

    async def _existing(self, payment_reference: str) -> MaterializedOrder | None:
        found = await self._datastore.find_order_by_payment_reference(payment_reference)
        if found is None:
            return None
        order, items = found
        self._log.info(
            "order_already_materialized",
            order_id=order.id,
            payment_reference=payment_reference,
        )
        return MaterializedOrder(order=order, items=items, created=False)

    def _build_order(
        self,
        payment_reference: str,
        address: Address | None,
        total: Money,
        currency: str,
        metadata: Mapping[str, str],
    ) -> Order:
        if address is not None:
            return Order(
                id=new_order_id(),
                payment_reference=payment_reference,
                customer_name=address.name,
                total_amount=money(total),
                currency=currency,
                email=address.email,
                shipping_address=address,
            )
        return Order(
            id=new_order_id(),
            payment_reference=payment_reference,
            customer_name=metadata.get("customer_name") or UNKNOWN_CUSTOMER,
            total_amount=money(total),
            currency=currency,
            email=metadata.get("email") or None,
            degraded=True,
        )

    async def _write(self, order: Order, lines: tuple[CartLine, ...]) -> MaterializedOrder:
        items = tuple(
            OrderLineItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.name,
                quantity=line.quantity,
                price_at_purchase=gross_unit_price(line.unit_price, self._tax_rate),
                variant=line.variant,
            )
            for line in (() if order.degraded else lines)
        )

        outcomes: list[StockOutcome] = []
        async with self._datastore.transaction() as tx:
            await tx.insert_order(order)
            await tx.insert_items(items)

            # Fixed product order, so concurrent transactions lock rows alike.
            for item in sorted(items, key=lambda i: i.product_id):
                outcome = await tx.decrement_stock(item.product_id, item.quantity)
                outcomes.append(outcome)
                if not outcome.ok:
                    await tx.record_exception(FulfillmentException(
                        order_id=order.id,
                        kind=FulfillmentExceptionKind.OVERSELL,
                        product_id=item.product_id,
                        detail=(
                            f"Sold {item.quantity} x {item.product_name}; "
                            f"stock was {outcome.remaining}"
                        ),
                    ))

            if order.degraded:
                await tx.record_exception(FulfillmentException(
                    order_id=order.id,
                    kind=FulfillmentExceptionKind.MISSING_CONTEXT,
                    detail=(
                        f"Payment {order.payment_reference} captured without checkout "
                        "context; line items and shipping address must be recovered "
                        "from the gateway."
                    ),
                ))

        return MaterializedOrder(order=order, items=items, stock_outcomes=tuple(outcomes))

    def _report(self, done: MaterializedOrder) -> None:
        order = done.order
        self._log.info(
            "order_materialized",
            order_id=order.id,
            payment_reference=order.payment_reference,
            total=str(order.total_amount),
            items=len(done.items),
            degraded=order.degraded,
        )
        if order.degraded:
            self._log.warning(
                "order_missing_context",
                order_id=order.id,
                payment_reference=order.payment_reference,
            )

        for outcome in done.stock_outcomes:
            if not outcome.ok:
                self._log.error(
                    "inventory_oversell",
                    order_id=order.id,
                    product_id=outcome.product_id,
                    requested=outcome.requested,
                    available=outcome.remaining,
                )
            elif outcome.remaining is not None and outcome.remaining < self._low_stock_threshold:
                self._log.warning(
                    "low_stock",
                    product_id=outcome.product_id,
                    remaining=outcome.remaining,
                )

    def _failed(
        self,
        payment_reference: str,
        address: Address | None,
        lines: tuple[CartLine, ...],
        total: Money,
        exc: Exception,
    ) -> CheckoutError:
        context = {
            "payment_reference": payment_reference,
            "total": str(total),
            "cart": [line.to_dict() for line in lines],
            "address": address.to_dict() if address else None,
        }
        self._log.critical("order_materialization_failed", exc_info=exc, **context)
        return CheckoutError(
            ErrorKind.MATERIALIZATION,
            "Your payment was received, but we could not finalise your order yet. "
            "Please do not pay again; our team has been notified.",
            cause=exc,
            context=context,
        )


__all__ = ("OrderMaterializer", "UNKNOWN_CUSTOMER")
