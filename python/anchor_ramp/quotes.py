"""Quote normalization.

Each provider reports fees and exchange rates differently. The helpers here
fold them into the canonical :class:`~anchor_ramp.types.Quote`: one total fee
at the currency's conventional precision, a rate expressed as destination
units per source unit, and an aware ``expires_at`` the engine checks before
redeeming the quote.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .constants import ASSET_DECIMALS, FIAT_CURRENCIES, FIAT_DECIMALS
from .errors import QuoteExpiredError
from .types import Quote
from .utils import display_currency, format_decimal, parse_timestamp, to_decimal, utcnow


class RateConvention(str, Enum):
    """How a provider expresses its exchange rate."""

    DESTINATION_PER_SOURCE = "destination_per_source"
    SOURCE_PER_DESTINATION = "source_per_destination"


def currency_decimals(currency: str) -> int:
    """2 decimals for fiat, 7 for on-chain assets."""
    if display_currency(currency).upper() in FIAT_CURRENCIES:
        return FIAT_DECIMALS
    return ASSET_DECIMALS


def fiat_currency(from_currency: str, to_currency: str) -> str:
    """The fiat side of a pair; fees are charged in it."""
    if display_currency(to_currency).upper() in FIAT_CURRENCIES:
        return to_currency
    return from_currency


def format_amount(value: str | int | float | Decimal | None, currency: str) -> str:
    return format_decimal(to_decimal(value), currency_decimals(currency))


def total_fee(
    fee_items: Iterable[str | int | float | Decimal | None],
    currency: str,
) -> str:
    """Sum every fee line item and format it for ``currency``.

    Missing items (``None`` or empty strings) count as zero.
    """
    total = sum((to_decimal(item) for item in fee_items), Decimal(0))
    return format_decimal(total, currency_decimals(currency))


def normalize_rate(
    rate: str | int | float | Decimal | None,
    convention: RateConvention = RateConvention.DESTINATION_PER_SOURCE,
) -> str:
    """Express ``rate`` as destination units per one source unit."""
    value = to_decimal(rate)
    if convention is RateConvention.SOURCE_PER_DESTINATION:
        if value == 0:
            return "0"
        value = Decimal(1) / value
    return format_decimal(value, ASSET_DECIMALS)


def normalize_quote(
    *,
    quote_id: str,
    from_currency: str,
    to_currency: str,
    from_amount: str | int | float | Decimal,
    to_amount: str | int | float | Decimal,
    rate: str | int | float | Decimal | None,
    fee_items: Iterable[str | int | float | Decimal | None],
    expires_at: str | int | float | datetime,
    created_at: str | int | float | datetime | None = None,
    convention: RateConvention = RateConvention.DESTINATION_PER_SOURCE,
    fee_currency: str | None = None,
) -> Quote:
    """Build a canonical Quote from provider fields."""
    return Quote(
        id=quote_id,
        from_currency=from_currency,
        to_currency=to_currency,
        from_amount=format_amount(from_amount, from_currency),
        to_amount=format_amount(to_amount, to_currency),
        exchange_rate=normalize_rate(rate, convention),
        fee=total_fee(fee_items, fee_currency or from_currency),
        expires_at=parse_timestamp(expires_at),
        created_at=parse_timestamp(created_at) if created_at else utcnow(),
    )


def is_quote_expired(quote: Quote, now: datetime | None = None) -> bool:
    return quote.expires_at <= (now or utcnow())


def ensure_quote_fresh(quote: Quote, now: datetime | None = None) -> Quote:
    """Raise QuoteExpiredError if the quote can no longer be redeemed."""
    if is_quote_expired(quote, now):
        raise QuoteExpiredError(quote.id, quote.expires_at)
    return quote


def expires_in(quote: Quote, now: datetime | None = None) -> str:
    """Human readable time left on a quote, e.g. ``"2m 5s"``."""
    remaining = (quote.expires_at - (now or utcnow())).total_seconds()
    if remaining <= 0:
        return "Expired"
    minutes, seconds = divmod(int(remaining), 60)
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
