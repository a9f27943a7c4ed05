from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from kidsavings.models import Frequency
from kidsavings.schedule import (
    add_months,
    due_instants,
    is_accrual_due,
    local_midnight,
    next_accrual_instant,
    periods_elapsed,
)

NY = ZoneInfo("America/New_York")


def ny(*args: int) -> datetime:
    return datetime(*args, tzinfo=NY)


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2023, 12, 31), 2) == date(2024, 2, 29)
    assert add_months(date(2024, 1, 15), -1) == date(2023, 12, 15)
    assert add_months(date(2024, 3, 31), 1) == date(2024, 4, 30)


def test_weekly_periods_use_local_midnights() -> None:
    last = ny(2024, 1, 1, 9, 30)
    current = ny(2024, 1, 15, 8, 0)

    assert periods_elapsed(last, current, Frequency.WEEKLY) == 2
    assert due_instants(last, current, Frequency.WEEKLY) == [ny(2024, 1, 8), ny(2024, 1, 15)]


def test_biweekly_needs_fourteen_days() -> None:
    last = ny(2024, 1, 1, 12)

    assert periods_elapsed(last, ny(2024, 1, 14, 23, 59), Frequency.BIWEEKLY) == 0
    assert due_instants(last, ny(2024, 1, 15), "bi-weekly") == [ny(2024, 1, 15)]


def test_monthly_anchor_on_31st_lands_on_last_day_of_february() -> None:
    assert due_instants(ny(2024, 1, 31, 18), ny(2024, 3, 1, 7), Frequency.MONTHLY) == [ny(2024, 2, 29)]
    assert due_instants(ny(2023, 1, 31, 18), ny(2023, 3, 1, 7), Frequency.MONTHLY) == [ny(2023, 2, 28)]


def test_monthly_periods_stay_anchored_to_starting_day() -> None:
    instants = due_instants(ny(2024, 1, 31), ny(2024, 5, 31, 12), Frequency.MONTHLY)

    assert [moment.date() for moment in instants] == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_monthly_period_not_due_before_anchor_day() -> None:
    assert periods_elapsed(ny(2023, 12, 20), ny(2024, 1, 19, 23), Frequency.MONTHLY) == 0
    assert periods_elapsed(ny(2023, 12, 20), ny(2024, 1, 20), Frequency.MONTHLY) == 1


def test_weekly_period_survives_dst_change() -> None:
    # local midnights on either side of the spring-forward are only 167 hours apart
    last = ny(2024, 3, 9, 20)
    current = ny(2024, 3, 16, 0, 5)

    instants = due_instants(last, current, Frequency.WEEKLY)

    assert instants == [ny(2024, 3, 16)]
    assert instants[0].utcoffset() != last.utcoffset()


def test_local_zone_decides_the_calendar_day() -> None:
    last = ny(2024, 1, 1, 9)
    # 03:00 UTC on the 8th is still the evening of the 7th in New York
    current = datetime(2024, 1, 8, 3, tzinfo=timezone.utc)

    assert periods_elapsed(last, current, Frequency.WEEKLY, tz=NY) == 0
    assert periods_elapsed(last, current, Frequency.WEEKLY, tz=timezone.utc) == 1


def test_no_periods_when_current_precedes_last() -> None:
    last = ny(2024, 2, 1)
    current = ny(2024, 1, 1)

    assert periods_elapsed(last, current, Frequency.WEEKLY) == 0
    assert due_instants(last, current, Frequency.MONTHLY) == []
    assert not is_accrual_due(last, current, Frequency.WEEKLY)
    assert next_accrual_instant(last, current, Frequency.WEEKLY) is None


def test_zero_elapsed_periods_yield_empty_list() -> None:
    assert due_instants(ny(2024, 1, 1, 8), ny(2024, 1, 1, 20), Frequency.WEEKLY) == []


@pytest.mark.parametrize("frequency", list(Frequency))
def test_due_instants_are_deterministic_and_increasing(frequency: Frequency) -> None:
    last = ny(2023, 11, 5, 13, 45)
    current = ny(2024, 6, 30, 22)

    first = due_instants(last, current, frequency)
    second = due_instants(last, current, frequency)

    assert first == second
    assert len(first) == periods_elapsed(last, current, frequency)
    assert all(earlier < later for earlier, later in zip(first, first[1:]))
    assert all(moment <= local_midnight(current.date(), NY) for moment in first)
    assert all((moment.hour, moment.minute) == (0, 0) for moment in first)


def test_next_accrual_instant() -> None:
    last = ny(2024, 1, 31, 10)

    assert next_accrual_instant(last, ny(2024, 2, 1), Frequency.MONTHLY) == ny(2024, 2, 29)
    assert next_accrual_instant(last, ny(2024, 2, 1), Frequency.WEEKLY) == ny(2024, 2, 7)


def test_naive_instants_are_treated_as_local() -> None:
    last = datetime(2024, 1, 1, 10)
    current = datetime(2024, 1, 8, 1)

    assert due_instants(last, current, Frequency.WEEKLY) == [datetime(2024, 1, 8)]
