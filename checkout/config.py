"""
Configuration — environment-driven settings.

    CHECKOUT_TAX_RATE=0.20
    CHECKOUT_DATABASE_URL=sqlite+aiosqlite:///./checkout.db
    CHECKOUT_STRIPE_SECRET_KEY=sk_live_...

Local runs without provider keys opt in to the in-memory stand-ins:

    CHECKOUT_USE_FAKE_GATEWAY=true
    CHECKOUT_USE_FAKE_MAIL=true
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Checkout settings.

    Note: Read once per process via get_settings(); tests build their own
    instances with keyword overrides.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        extra="ignore",
    )

    # Pricing
    tax_rate: Decimal = Field(default=Decimal("0.20"), ge=0, le=1)
    currency: str = "gbp"

    # Inventory
    low_stock_threshold: int = Field(default=5, ge=0)

    # Datastore
    database_url: str = "sqlite+aiosqlite:///./checkout.db"

    # Continuations
    continuation_dir: Path = Path(".checkout/continuations")
    continuation_max_age_hours: float = Field(default=24, gt=0)

    # Gateway
    return_url: str = "http://localhost:5173/checkout/return"
    gateway_timeout_seconds: float = Field(default=20, gt=0)
    stripe_secret_key: SecretStr | None = None
    use_fake_gateway: bool = False

    # Confirmation
    pending_checkout_minutes: float = Field(default=60, gt=0)
    settled_outcome_cache_size: int = Field(default=1024, gt=0)

    # Notifications
    resend_api_key: SecretStr | None = None
    mail_from: str = "Aidezel Orders <orders@aidezel.co.uk>"
    brand_name: str = "Aidezel"
    use_fake_mail: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


class ConfigurationError(RuntimeError):
    """Settings cannot produce a working checkout."""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "ConfigurationError", "get_settings")
