"""Whole-unit rounding helpers for every monetary value in KidSavings."""

from __future__ import annotations

import math
from decimal import ROUND_CEILING, Decimal
from typing import Union

AmountLike = Union[Decimal, int, float, str]


def round_up(amount: AmountLike) -> int:
    """Round ``amount`` towards positive infinity (``1.01`` -> ``2``, ``-0.5`` -> ``0``)."""

    if isinstance(amount, int):
        return amount
    if isinstance(amount, str):
        amount = Decimal(amount)
    if isinstance(amount, Decimal):
        return int(amount.to_integral_value(rounding=ROUND_CEILING))
    return math.ceil(amount)


def percentage_of(base: int, percent: AmountLike) -> int:
    """Return ``percent`` percent of ``base`` rounded up to a whole unit."""

    return round_up(Decimal(base) * Decimal(str(percent)) / Decimal(100))


def cap_to(amount: AmountLike, maximum: AmountLike) -> int:
    """Return the smaller of ``amount`` and ``maximum`` after rounding both up."""

    return min(round_up(amount), round_up(maximum))


def ensure_non_negative(amount: AmountLike) -> int:
    return max(0, round_up(amount))


def format_currency(amount: int) -> str:
    """Return ``amount`` as a whole-unit currency string (e.g. ``$1,250``)."""

    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,}"


__all__ = ["AmountLike", "cap_to", "ensure_non_negative", "format_currency", "percentage_of", "round_up"]
