from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


SERVICE_FEE_RATE = Decimal("0.10")


@dataclass(frozen=True)
class PriceQuote:
    days: int
    price_per_day: Decimal
    subtotal: Decimal
    service_fee: Decimal
    total: Decimal


def as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def as_money(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps 18.5 as Decimal("18.5") instead of its binary expansion
        return Decimal(str(value))
    return Decimal(value)


def rental_days(start_date: date | datetime | str, end_date: date | datetime | str) -> int:
    """Whole calendar days between pick-up and return, never less than one.

    Same-day and inverted ranges are clamped to a single day rather than
    rejected.
    """
    rental_days = (as_date(end_date) - as_date(start_date)).days
    if rental_days < 1:
        rental_days = 1
    return rental_days


def quote_rental(
    price_per_day: Decimal | int | float | str,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
) -> PriceQuote:
    daily = as_money(price_per_day)
    if daily < 0:
        raise ValueError("price per day must not be negative")
    days = rental_days(start_date, end_date)
    subtotal = daily * days
    service_fee = subtotal * SERVICE_FEE_RATE
    return PriceQuote(
        days=days,
        price_per_day=daily,
        subtotal=subtotal,
        service_fee=service_fee,
        total=subtotal + service_fee,
    )
