"""Money and date helpers shared by the computation core.

Amounts are plain base-currency values ("500000000" is 500,000,000 of the
fund currency). Nothing here scales to minor units.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")

SECONDS_PER_DAY = 86_400


def to_decimal(value) -> Decimal:
    """Coerce ORM/JSON numerics to Decimal; None counts as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a money amount")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # via str so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(str(value).strip())


def sum_money(values: Iterable) -> Decimal:
    total = ZERO
    for v in values:
        total += to_decimal(v)
    return total


def quantize_ratio(value: Decimal, places: int = 2) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return value.quantize(exp, rounding=ROUND_HALF_UP)


def safe_ratio(numerator: Decimal, denominator: Decimal, places: int = 2) -> Decimal:
    """numerator / denominator rounded, or exactly 0 when the denominator is not positive."""
    if denominator <= ZERO:
        return quantize_ratio(ZERO, places)
    return quantize_ratio(numerator / denominator, places)


def as_utc_datetime(value: dt.date | dt.datetime) -> dt.datetime:
    """Dates become midnight UTC; naive datetimes are taken as UTC."""
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value
    return dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)


def whole_days_between(start: dt.date | dt.datetime, end: dt.date | dt.datetime) -> int:
    delta = as_utc_datetime(end) - as_utc_datetime(start)
    return math.floor(delta.total_seconds() / SECONDS_PER_DAY)
