"""Calendar-aware accrual schedules for allowance and interest.

All schedule arithmetic happens on *local calendar dates*: an instant is first
converted into the device zone, reduced to its date, and due instants are
produced as local midnight of the period boundary. Working on dates rather
than fixed-width durations keeps weekly periods exact across DST changes and
lets monthly periods follow real month lengths.

The zone used is, in order of preference, the ``tz`` argument or the zone of
``last_instant``. Naive instants are treated as already being local time.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional

from .models import Frequency

_WEEK_DAYS = {Frequency.WEEKLY: 7, Frequency.BIWEEKLY: 14}


def _zone(moment: datetime, tz: Optional[tzinfo]) -> Optional[tzinfo]:
    return tz if tz is not None else moment.tzinfo


def local_date(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Return the calendar date of ``moment`` in the local zone."""

    zone = _zone(moment, tz)
    if zone is None or moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(zone).date()


def local_midnight(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """Return 00:00 local time on ``day``."""

    return datetime.combine(day, time(), tzinfo=tz)


def start_of_day(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    zone = _zone(moment, tz)
    return local_midnight(local_date(moment, zone), zone)


def add_months(day: date, months: int) -> date:
    """Advance ``day`` by ``months`` keeping its day-of-month.

    When the target month is shorter the result is clamped to its last day,
    so ``Jan 31 + 1`` is ``Feb 28`` (or ``Feb 29`` in a leap year).
    """

    index = day.month - 1 + months
    year = day.year + index // 12
    month = index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _coerce(frequency: Frequency | str) -> Frequency:
    return frequency if isinstance(frequency, Frequency) else Frequency(frequency)


def periods_elapsed(
    last_instant: datetime,
    current_instant: datetime,
    frequency: Frequency | str,
    *,
    tz: Optional[tzinfo] = None,
) -> int:
    """Return how many whole periods separate ``last_instant`` and ``current_instant``."""

    if current_instant < last_instant:
        return 0
    frequency = _coerce(frequency)
    zone = _zone(last_instant, tz)
    start = local_date(last_instant, zone)
    end = local_date(current_instant, zone)
    if end <= start:
        return 0

    if frequency is Frequency.MONTHLY:
        months = (end.year - start.year) * 12 + (end.month - start.month)
        if add_months(start, months) > end:
            months -= 1
        return max(0, months)
    return (end - start).days // _WEEK_DAYS[frequency]


def _boundary(start: date, frequency: Frequency, index: int) -> date:
    if frequency is Frequency.MONTHLY:
        return add_months(start, index)
    return start + timedelta(days=_WEEK_DAYS[frequency] * index)


def due_instants(
    last_instant: datetime,
    current_instant: datetime,
    frequency: Frequency | str,
    *,
    tz: Optional[tzinfo] = None,
) -> List[datetime]:
    """Return local midnight of every period boundary after ``last_instant``.

    The list is strictly increasing, never extends past the local midnight of
    ``current_instant`` and is empty when no whole period has elapsed.
    """

    frequency = _coerce(frequency)
    zone = _zone(last_instant, tz)
    count = periods_elapsed(last_instant, current_instant, frequency, tz=zone)
    start = local_date(last_instant, zone)
    return [local_midnight(_boundary(start, frequency, index), zone) for index in range(1, count + 1)]


def is_accrual_due(
    last_instant: datetime,
    current_instant: datetime,
    frequency: Frequency | str,
    *,
    tz: Optional[tzinfo] = None,
) -> bool:
    return periods_elapsed(last_instant, current_instant, frequency, tz=tz) > 0


def next_accrual_instant(
    last_instant: datetime,
    current_instant: datetime,
    frequency: Frequency | str,
    *,
    tz: Optional[tzinfo] = None,
) -> Optional[datetime]:
    """Return the first boundary after ``last_instant`` or ``None`` under clock skew."""

    if current_instant < last_instant:
        return None
    frequency = _coerce(frequency)
    zone = _zone(last_instant, tz)
    return local_midnight(_boundary(local_date(last_instant, zone), frequency, 1), zone)


__all__ = [
    "add_months",
    "due_instants",
    "is_accrual_due",
    "local_date",
    "local_midnight",
    "next_accrual_instant",
    "periods_elapsed",
    "start_of_day",
]
