"""
Orders — materialization of captured payments.

    materializer = OrderMaterializer(datastore, tax_rate=settings.tax_rate)
    result = await materializer.materialize(payment_reference, address, lines, total)
"""

from checkout.orders._types import (
    OrderStatus,
    new_order_id,
    Order,
    OrderLineItem,
    StockOutcomeKind,
    StockOutcome,
    FulfillmentExceptionKind,
    FulfillmentException,
    MaterializedOrder,
    OrderWriter,
    OrderDatastore,
)
from checkout.orders._materializer import OrderMaterializer, UNKNOWN_CUSTOMER

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
    "OrderMaterializer",
    "UNKNOWN_CUSTOMER",
)
