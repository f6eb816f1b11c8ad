"""
Address — structural validation of shipping details.

    match validate_address(name="Ada", line1="1 High St", city="London",
                           postcode="sw1a1aa", country="GB",
                           phone="07700 900123", email="Ada@Example.com"):
        case Ok(address): address.postcode  # "SW1A 1AA"
        case Error(e): e.message

Checks are structural only: a well-formed UK postcode is not proof the
postcode exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Any

from kungfu import Result, Ok, Error

from checkout.errors import CheckoutError, Errors

# ═══════════════════════════════════════════════════════════════════════════════
# Patterns
# ═══════════════════════════════════════════════════════════════════════════════

UK_COUNTRIES = frozenset({"GB", "UK", "UNITED KINGDOM", "GREAT BRITAIN"})

# Outward code (area + district) then inward code (sector + unit).
_UK_POSTCODE = re.compile(r"^([A-Z]{1,2}[0-9][A-Z0-9]?)\s*([0-9][A-Z]{2})$")
_UK_MOBILE = re.compile(r"^(?:07\d{9}|\+447\d{9})$")
_INTL_PHONE = re.compile(r"^\+?\d{7,15}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


@dataclass(frozen=True, slots=True)
class Address:
    name: str
    line1: str
    city: str
    postcode: str
    country: str
    phone: str
    email: str
    line2: str | None = None

    @property
    def is_uk(self) -> bool:
        return self.country.upper() in UK_COUNTRIES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Address:
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


# ═══════════════════════════════════════════════════════════════════════════════
# Field checks
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_postcode(raw: str, *, uk: bool = True) -> str | None:
    """sw1a1aa → SW1A 1AA. None when not a well-formed UK postcode."""
    compact = raw.strip().upper()
    if not uk:
        return compact or None
    match = _UK_POSTCODE.match(compact)
    if match is None:
        return None
    return f"{match.group(1)} {match.group(2)}"


def normalize_phone(raw: str, *, uk: bool = True) -> str | None:
    compact = _PHONE_SEPARATORS.sub("", raw.strip())
    pattern = _UK_MOBILE if uk else _INTL_PHONE
    return compact if pattern.match(compact) else None


def normalize_email(raw: str) -> str | None:
    email = raw.strip().lower()
    return email if _EMAIL.match(email) else None


def validate_address(
    *,
    name: str | None,
    line1: str | None,
    city: str | None,
    postcode: str | None,
    country: str | None,
    phone: str | None,
    email: str | None,
    line2: str | None = None,
) -> Result[Address, CheckoutError]:
    """Validate and normalize. The first failing field is reported."""
    required = {
        "name": name,
        "line1": line1,
        "city": city,
        "postcode": postcode,
        "country": country,
        "phone": phone,
        "email": email,
    }
    for field_name, value in required.items():
        if value is None or not value.strip():
            return Error(Errors.validation(
                f"Please fill in {field_name.replace('line1', 'address line 1')}.",
                field=field_name,
            ))

    uk = str(country).strip().upper() in UK_COUNTRIES

    clean_postcode = normalize_postcode(str(postcode), uk=uk)
    if clean_postcode is None:
        return Error(Errors.validation("Please enter a valid UK postcode.", field="postcode"))

    clean_phone = normalize_phone(str(phone), uk=uk)
    if clean_phone is None:
        message = (
            "Please enter a valid UK mobile number."
            if uk
            else "Please enter a valid phone number."
        )
        return Error(Errors.validation(message, field="phone"))

    clean_email = normalize_email(str(email))
    if clean_email is None:
        return Error(Errors.validation("Please enter a valid email address.", field="email"))

    return Ok(Address(
        name=str(name).strip(),
        line1=str(line1).strip(),
        line2=line2.strip() if line2 and line2.strip() else None,
        city=str(city).strip(),
        postcode=clean_postcode,
        country=str(country).strip(),
        phone=clean_phone,
        email=clean_email,
    ))


__all__ = (
    "Address",
    "UK_COUNTRIES",
    "normalize_postcode",
    "normalize_phone",
    "normalize_email",
    "validate_address",
)
