"""
Checkout errors — one value type for the whole workflow.

Collaborators (gateway, email channel, stores) raise the exceptions below.
Component boundaries lift them into `CheckoutError` values via
`checkout.lift`, after which errors travel inside `Result`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind — Taxonomy
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """
    Kinds of checkout errors.

    Before capture (user fixes input or retries, cart intact):
        VALIDATION, COUPON_REJECTED, GATEWAY_UNAVAILABLE, GATEWAY_TIMEOUT,
        PAYMENT_DECLINED, CONTINUATION

    After capture (money has moved, never reported as a failed purchase):
        MATERIALIZATION, NOTIFICATION
    """

    VALIDATION = auto()
    COUPON_REJECTED = auto()
    GATEWAY_UNAVAILABLE = auto()
    GATEWAY_TIMEOUT = auto()
    PAYMENT_DECLINED = auto()
    CONTINUATION = auto()
    MATERIALIZATION = auto()
    NOTIFICATION = auto()

    @property
    def before_capture(self) -> bool:
        return self not in (ErrorKind.MATERIALIZATION, ErrorKind.NOTIFICATION)

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.GATEWAY_UNAVAILABLE, ErrorKind.GATEWAY_TIMEOUT)


# ═══════════════════════════════════════════════════════════════════════════════
# CheckoutError — Error Value
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutError:
    """
    Checkout error value.

    Note: `message` is safe to show to the shopper; `context` is for operators
    (payment reference, cart snapshot) and goes to logs only.
    """

    kind: ErrorKind
    message: str
    cause: Exception | None = None
    context: dict[str, Any] = field(default_factory=dict[str, Any])

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


class Errors:
    """Constructors for the common cases."""

    @staticmethod
    def validation(message: str, **context: Any) -> CheckoutError:
        return CheckoutError(ErrorKind.VALIDATION, message, context=context)

    @staticmethod
    def coupon_rejected(code: str, message: str | None = None) -> CheckoutError:
        return CheckoutError(
            ErrorKind.COUPON_REJECTED,
            message or f"Coupon '{code}' is not valid.",
            context={"code": code},
        )

    @staticmethod
    def declined(message: str = "Your payment was declined.") -> CheckoutError:
        return CheckoutError(ErrorKind.PAYMENT_DECLINED, message)


# ═══════════════════════════════════════════════════════════════════════════════
# Collaborator Exceptions
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayError(Exception):
    """Base for payment gateway failures."""


class GatewayUnavailableError(GatewayError):
    """Gateway unreachable or returned a server-side error."""


class GatewayTimeoutError(GatewayError):
    """Gateway did not answer in time. The charge may or may not have happened."""


class PaymentDeclinedError(GatewayError):
    """Card or payment method refused."""


class DeliveryError(Exception):
    """Notification channel could not deliver a message."""


class DuplicatePaymentReference(Exception):
    """An order already exists for this payment reference."""

    def __init__(self, payment_reference: str) -> None:
        super().__init__(f"Order already exists for {payment_reference}")
        self.payment_reference = payment_reference


# ═══════════════════════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════════════════════


def from_gateway_exception(exc: Exception) -> CheckoutError:
    """Map a gateway exception onto the taxonomy."""
    match exc:
        case PaymentDeclinedError():
            return CheckoutError(
                ErrorKind.PAYMENT_DECLINED,
                str(exc) or "Your payment was declined.",
                cause=exc,
            )
        case GatewayTimeoutError():
            return CheckoutError(
                ErrorKind.GATEWAY_TIMEOUT,
                "The payment provider took too long to respond. Please try again shortly.",
                cause=exc,
            )
        case _:
            return CheckoutError(
                ErrorKind.GATEWAY_UNAVAILABLE,
                "The payment provider is unavailable. Please try again shortly.",
                cause=exc,
            )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ErrorKind",
    "CheckoutError",
    "Errors",
    "GatewayError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    "PaymentDeclinedError",
    "DeliveryError",
    "DuplicatePaymentReference",
    "from_gateway_exception",
)
