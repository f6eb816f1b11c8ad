"""
Wiring — builds the checkout stack from settings.

    wired = await build(get_settings())
    outcome = await wired.workflow.submit(session_key, payment_method)
    await wired.engine.dispose()

A missing Stripe or Resend key is a ConfigurationError unless the matching
use_fake_* setting opts in to the in-memory stand-in, which is logged loudly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine

from checkout.config import ConfigurationError, Settings
from checkout.confirmation import PaymentConfirmationHandler
from checkout.continuation import FileContinuationStore
from checkout.coupons import CouponResolver
from checkout.logs import get_logger
from checkout.notify import (
    EmailChannel,
    FulfillmentNotifier,
    InvoiceRenderer,
    MemoryEmailChannel,
    ResendEmailChannel,
)
from checkout.orders import OrderMaterializer
from checkout.payments import (
    InMemoryGateway,
    PaymentGateway,
    PaymentSessionManager,
    StripeGateway,
)
from checkout.store import SqlDatastore, create_database
from checkout.workflow import CheckoutWorkflow


@dataclass(frozen=True, slots=True)
class Wired:
    workflow: CheckoutWorkflow
    datastore: SqlDatastore
    engine: AsyncEngine
    gateway: PaymentGateway
    channel: EmailChannel


def default_gateway(settings: Settings) -> PaymentGateway:
    if settings.stripe_secret_key is not None:
        return StripeGateway(api_key=settings.stripe_secret_key.get_secret_value())
    if not settings.use_fake_gateway:
        raise ConfigurationError(
            "No payment gateway: set CHECKOUT_STRIPE_SECRET_KEY, "
            "or CHECKOUT_USE_FAKE_GATEWAY=true for a local run."
        )
    get_logger("wiring").warning("in_memory_gateway", reason="use_fake_gateway set")
    return InMemoryGateway()


def default_channel(settings: Settings) -> EmailChannel:
    if settings.resend_api_key is not None:
        return ResendEmailChannel(
            settings.resend_api_key.get_secret_value(),
            sender=settings.mail_from,
        )
    if not settings.use_fake_mail:
        raise ConfigurationError(
            "No mail channel: set CHECKOUT_RESEND_API_KEY, "
            "or CHECKOUT_USE_FAKE_MAIL=true for a local run."
        )
    get_logger("wiring").warning("in_memory_mail", reason="use_fake_mail set")
    return MemoryEmailChannel()


async def build(
    settings: Settings,
    *,
    gateway: PaymentGateway | None = None,
    channel: EmailChannel | None = None,
) -> Wired:
    # Resolved first so a misconfigured process fails before touching the database.
    gateway = gateway or default_gateway(settings)
    channel = channel or default_channel(settings)
    session_factory, engine = await create_database(settings.database_url)
    datastore = SqlDatastore(session_factory)

    workflow = CheckoutWorkflow(
        resolver=CouponResolver(datastore),
        sessions=PaymentSessionManager(
            gateway,
            currency=settings.currency,
            timeout=settings.gateway_timeout_seconds,
        ),
        handler=PaymentConfirmationHandler(
            gateway,
            FileContinuationStore(
                settings.continuation_dir,
                max_age=timedelta(hours=settings.continuation_max_age_hours),
            ),
            return_url=settings.return_url,
            timeout=settings.gateway_timeout_seconds,
            outcome_cache_size=settings.settled_outcome_cache_size,
        ),
        materializer=OrderMaterializer(
            datastore,
            tax_rate=settings.tax_rate,
            low_stock_threshold=settings.low_stock_threshold,
        ),
        notifier=FulfillmentNotifier(
            channel,
            InvoiceRenderer(brand_name=settings.brand_name, vat_rate=settings.tax_rate),
            datastore,
        ),
        tax_rate=settings.tax_rate,
        pending_ttl=timedelta(minutes=settings.pending_checkout_minutes),
    )
    return Wired(workflow, datastore, engine, gateway, channel)


__all__ = ("Wired", "build", "default_gateway", "default_channel")
