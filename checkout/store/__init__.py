"""
Store — SQLAlchemy persistence for the checkout.

    session_factory, engine = await create_database("sqlite+aiosqlite:///./checkout.db")
    datastore = SqlDatastore(session_factory)
"""

from checkout.store._tables import (
    IN_STOCK,
    OUT_OF_STOCK,
    Base,
    ProductTable,
    CouponTable,
    OrderTable,
    OrderItemTable,
    FulfillmentExceptionTable,
)
from checkout.store._database import create_database
from checkout.store._datastore import SqlDatastore, SqlOrderWriter, conditional_decrement

__all__ = (
    "IN_STOCK",
    "OUT_OF_STOCK",
    "Base",
    "ProductTable",
    "CouponTable",
    "OrderTable",
    "OrderItemTable",
    "FulfillmentExceptionTable",
    "create_database",
    "SqlDatastore",
    "SqlOrderWriter",
    "conditional_decrement",
)
