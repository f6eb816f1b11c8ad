"""
Fulfillment notifier — invoice email after an order exists.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from kungfu import LazyCoroResult, Result, Ok, Error
from combinators import lift as L

from checkout._types import Lazy
from checkout.errors import CheckoutError, ErrorKind
from checkout.logs import get_logger
from checkout.notify._channels import EmailChannel
from checkout.notify._invoice import InvoiceRenderer
from checkout.orders import (
    FulfillmentException,
    FulfillmentExceptionKind,
    Order,
    OrderLineItem,
)


class ExceptionRecorder(Protocol):
    async def record_exception(self, exception: FulfillmentException) -> None: ...


@dataclass(frozen=True, slots=True)
class NotificationReceipt:
    order_id: str
    recipient: str
    message_id: str


def _notification_error(message: str, order: Order, cause: Exception | None = None) -> CheckoutError:
    return CheckoutError(
        ErrorKind.NOTIFICATION,
        message,
        cause=cause,
        context={"order_id": order.id},
    )


class FulfillmentNotifier:
    """
    Sends the invoice for a materialized order.

    Delivery problems never touch the order. They are logged and recorded as
    a receipt_pending fulfillment exception so an operator can resend.
    """

    def __init__(
        self,
        channel: EmailChannel,
        renderer: InvoiceRenderer,
        exceptions: ExceptionRecorder,
    ) -> None:
        self._channel = channel
        self._renderer = renderer
        self._exceptions = exceptions

    def notify(
        self,
        order: Order,
        items: Sequence[OrderLineItem],
    ) -> Lazy[NotificationReceipt, CheckoutError]:
        async def _notify() -> Result[NotificationReceipt, CheckoutError]:
            log = get_logger("notifier")
            if not order.email:
                await self._pending(order, "No email address on the order.")
                return Error(_notification_error("No email address for this order.", order))

            try:
                invoice = self._renderer.render(order, items)
            except Exception as e:
                log.exception("invoice_render_failed", order_id=order.id)
                await self._pending(order, f"Invoice could not be rendered: {e}")
                return Error(_notification_error("Invoice could not be generated.", order, e))

            email = order.email
            sent = await L.catching_async(
                lambda: self._channel.send_invoice(
                    email,
                    self._renderer.subject(order),
                    invoice.summary,
                    invoice.pdf,
                    invoice.filename,
                ),
                on_error=lambda e: _notification_error(
                    "We could not email your invoice; it will be resent shortly.", order, e,
                ),
            )
            match sent:
                case Ok(message_id):
                    log.info("invoice_sent", order_id=order.id, message_id=message_id)
                    return Ok(NotificationReceipt(order.id, email, message_id))
                case Error(e):
                    log.warning("invoice_delivery_failed", order_id=order.id, reason=str(e.cause))
                    await self._pending(order, f"Invoice delivery failed: {e.cause}")
                    return Error(e)

        return LazyCoroResult(_notify)

    async def _pending(self, order: Order, detail: str) -> None:
        try:
            await self._exceptions.record_exception(FulfillmentException(
                order_id=order.id,
                kind=FulfillmentExceptionKind.RECEIPT_PENDING,
                detail=detail,
            ))
        except Exception:
            get_logger("notifier").exception(
                "fulfillment_exception_record_failed", order_id=order.id,
            )


__all__ = ("FulfillmentNotifier", "NotificationReceipt", "ExceptionRecorder")
