"""
Continuation record — checkout state that survives a redirect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from checkout._types import utcnow
from checkout.address import Address
from checkout.pricing import CartLine, PriceBreakdown


@dataclass(frozen=True, slots=True)
class CheckoutContinuation:
    """
    Everything needed to materialize the order after the shopper returns.

    Written before any gateway call that may navigate the browser away.
    """

    session_key: str
    intent_id: str
    address: Address
    lines: tuple[CartLine, ...]
    breakdown: PriceBreakdown
    coupon_code: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_key": self.session_key,
            "intent_id": self.intent_id,
            "address": self.address.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "breakdown": self.breakdown.to_dict(),
            "coupon_code": self.coupon_code,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckoutContinuation:
        created_at = datetime.fromisoformat(data["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            session_key=str(data["session_key"]),
            intent_id=str(data["intent_id"]),
            address=Address.from_dict(data["address"]),
            lines=tuple(CartLine.from_dict(line) for line in data["lines"]),
            breakdown=PriceBreakdown.from_dict(data["breakdown"]),
            coupon_code=data.get("coupon_code"),
            created_at=created_at,
        )


class ContinuationStore(Protocol):
    async def save(self, continuation: CheckoutContinuation) -> None:
        """Durable once this returns."""
        ...

    async def load(self, session_key: str) -> CheckoutContinuation | None:
        """None when absent, unreadable or expired."""
        ...

    async def clear(self, session_key: str) -> None: ...


__all__ = ("CheckoutContinuation", "ContinuationStore")
