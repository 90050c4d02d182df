"""Utility functions shared across anchor integrations."""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .constants import (
    STELLAR_ACCOUNT_ADDRESS_REGEX,
    STELLAR_NETWORK_TO_HORIZON_URL,
    STELLAR_NETWORK_TO_PASSPHRASE,
)

# Epoch values above this are treated as milliseconds.
_EPOCH_MS_THRESHOLD = 10**11


def get_network_passphrase(network: str) -> str:
    """Get the Stellar network passphrase for a CAIP-2 identifier."""
    passphrase = STELLAR_NETWORK_TO_PASSPHRASE.get(network)
    if not passphrase:
        raise ValueError(f"Unknown Stellar network: {network}")
    return passphrase


def get_horizon_url(network: str, custom_url: str | None = None) -> str:
    """Get the Horizon URL for a Stellar network."""
    if custom_url:
        return custom_url
    url = STELLAR_NETWORK_TO_HORIZON_URL.get(network)
    if not url:
        raise ValueError(f"Unknown Stellar network: {network}")
    return url


def validate_stellar_account_address(address: str) -> bool:
    """Validate a Stellar account address (G-account only)."""
    return bool(re.match(STELLAR_ACCOUNT_ADDRESS_REGEX, address or ""))


def display_currency(currency: str | None) -> str:
    """Strip the issuer from a ``CODE:ISSUER`` asset string."""
    if not currency:
        return ""
    return currency.split(":")[0]


def to_decimal(value: str | int | float | Decimal | None) -> Decimal:
    """Convert a provider amount to Decimal. Empty values count as zero."""
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def format_decimal(value: Decimal, decimals: int) -> str:
    """Round half-up to ``decimals`` places."""
    quantum = Decimal(1).scaleb(-decimals)
    return str(value.quantize(quantum, rounding=ROUND_HALF_UP))


def to_cents(amount: str | int | float | Decimal) -> int:
    """Convert a decimal amount to integer cents. ``"10.50"`` -> ``1050``"""
    cents = (to_decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def from_cents(cents: int | None) -> str:
    """Convert integer cents to a decimal string. ``1050`` -> ``"10.50"``"""
    return format_decimal(Decimal(cents or 0) / 100, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | int | float | datetime | None) -> datetime:
    """Parse an ISO-8601 string or epoch seconds/milliseconds into an aware datetime."""
    if value is None or value == "":
        raise ValueError("Missing timestamp")
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    text = value.strip()
    if text.isdigit():
        return parse_timestamp(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
