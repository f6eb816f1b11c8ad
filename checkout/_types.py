"""
Core types for checkout.

Re-exports from kungfu + money aliases shared by every component.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Major currency units (pounds), always quantized to two places."""

PENNY = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | str) -> Money:
    """Quantize to pennies, half-up (the rounding shoppers expect on receipts)."""
    return Decimal(value).quantize(PENNY, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Money) -> int:
    """£60.00 → 6000."""
    return int((money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Money:
    """6000 → £60.00."""
    return money(Decimal(amount_minor) / 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Time
# ═══════════════════════════════════════════════════════════════════════════════


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Type aliases
    "Lazy",
    "Money",
    # Money helpers
    "PENNY",
    "ZERO",
    "money",
    "to_minor_units",
    "from_minor_units",
    "utcnow",
)
