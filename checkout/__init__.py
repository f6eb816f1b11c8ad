"""
checkout — storefront checkout-to-fulfillment workflow.

    from checkout import pricing as P      # Totals, tax, coupons
    from checkout import payments          # Gateway sessions
    from checkout import saga as S         # Compensated steps
    from checkout import graph as G        # Computation graphs
    from checkout.workflow import CheckoutWorkflow
"""

from checkout import saga
from checkout import graph
from checkout import lift
from checkout import pricing
from checkout._types import (
    Lazy,
    Money,
    money,
)
from checkout.errors import CheckoutError, ErrorKind

__version__ = "0.1.0"

__all__ = (
    "saga",
    "graph",
    "lift",
    "pricing",
    "Lazy",
    "Money",
    "money",
    "CheckoutError",
    "ErrorKind",
)
