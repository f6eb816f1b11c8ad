"""
Notify — invoice rendering and delivery.

    notifier = FulfillmentNotifier(
        ResendEmailChannel(api_key, sender=settings.mail_from),
        InvoiceRenderer(brand_name=settings.brand_name, vat_rate=settings.tax_rate),
        datastore,
    )
    await notifier.notify(order, items)
"""

from checkout.notify._invoice import (
    InvoiceLine,
    InvoiceTotals,
    Invoice,
    InvoiceRenderer,
    split_vat,
    invoice_lines,
)
from checkout.notify._channels import (
    EmailChannel,
    ResendEmailChannel,
    MemoryEmailChannel,
    SentEmail,
    RESEND_URL,
)
from checkout.notify._notifier import (
    FulfillmentNotifier,
    NotificationReceipt,
    ExceptionRecorder,
)

__all__ = (
    "InvoiceLine",
    "InvoiceTotals",
    "Invoice",
    "InvoiceRenderer",
    "split_vat",
    "invoice_lines",
    "EmailChannel",
    "ResendEmailChannel",
    "MemoryEmailChannel",
    "SentEmail",
    "RESEND_URL",
    "FulfillmentNotifier",
    "NotificationReceipt",
    "ExceptionRecorder",
)
