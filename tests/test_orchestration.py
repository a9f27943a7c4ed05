from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from kidsavings import orchestration
from kidsavings.models import AccountType, AllowanceConfig, Frequency, GoalConfig, InterestConfig, InterestType
from kidsavings.repositories import account_key, child_key
from kidsavings.service import KidSavings

TZ = ZoneInfo("America/New_York")


@pytest.fixture
def family(bank) -> KidSavings:
    bank.create_child("Ava")
    bank.create_child("Ben")
    bank.create_account("Ava", "Jar", allowance=AllowanceConfig(True, 10, Frequency.WEEKLY))
    bank.create_account(
        "Ava",
        "Bike",
        AccountType.GOAL,
        allowance=AllowanceConfig(True, 5, Frequency.WEEKLY),
        goal=GoalConfig("Bike", 5),
    )
    bank.create_account(
        "Ben", "Jar", interest=InterestConfig(True, InterestType.ABSOLUTE, 2, Frequency.BIWEEKLY)
    )
    return bank


def test_run_updates_every_child(family, clock, logger) -> None:
    clock.advance(days=14)

    summary = family.recalculate_all()

    assert summary.success
    assert summary.children_processed == 2
    # Ava: 2 x $10 + 2 x $5, Ben: 1 x $2
    assert summary.total_accruals == 5
    assert summary.total_accrued_amount == 32
    assert [result.new_balance for result in summary.results] == [30, 2]
    assert all(family.get_child(name).cbts == clock() for name in ("Ava", "Ben"))
    assert logger.events("calculation_finished")[-1]["accruals"] == 5


def test_achieved_goal_is_frozen_and_excluded_from_total(family, clock) -> None:
    family.deposit("Ava", "Bike", 5)
    family.mark_goal_achieved("Ava", "Bike")
    clock.advance(days=21)

    result = family.recalculate("Ava")

    assert family.account_balance("Ava", "Bike") == 5
    assert family.account_balance("Ava", "Jar") == 30
    assert result.new_balance == 30
    assert family.get_child("Ava").cb == 30


def test_clock_skew_skips_child_without_changes(family, clock, logger) -> None:
    clock.advance(days=7)
    family.recalculate("Ava")
    before = family.get_child("Ava")
    clock.set(datetime(2023, 12, 1, tzinfo=TZ))

    result = family.recalculate("Ava")

    assert result.clock_skew_detected
    assert result.new_balance == before.cb == 15
    after = family.get_child("Ava")
    assert (after.cb, after.cbts) == (before.cb, before.cbts)
    assert logger.events("clock_skew")[-1]["child"] == "Ava"

    summary = family.recalculate_all()
    assert summary.clock_skew_children == ("Ava", "Ben")
    assert summary.total_accruals == 0


def test_broken_child_does_not_stop_the_batch(family, store, clock) -> None:
    key = child_key("Ben")
    store.delete(key)
    store.put(key, "{broken")
    clock.advance(days=7)

    summary = family.recalculate_all()

    assert not summary.success
    assert summary.children_processed == 1
    assert summary.errors[0].startswith("Error calculating for child Ben")
    assert family.get_child("Ava").cb == 15


def test_unreadable_account_does_not_stop_its_siblings(family, store, clock, logger) -> None:
    key = account_key("Ava", "Bike")
    store.delete(key)
    store.put(key, "{broken")
    clock.advance(days=7)

    summary = family.recalculate_all()

    assert not summary.success
    assert summary.children_processed == 2
    ava = summary.results[0]
    assert len(ava.errors) == 1
    assert ava.errors[0].startswith("Error calculating account Ava/Bike")
    assert (ava.accounts_processed, ava.total_accruals, ava.new_balance) == (1, 1, 10)
    assert family.account_balance("Ava", "Jar") == 10
    child = family.get_child("Ava")
    assert (child.cb, child.cbts) == (10, clock())
    assert logger.events("account_calculation_failed")[-1]["account"] == "Bike"


def test_failing_account_is_reported_and_others_still_accrue(family, clock, monkeypatch) -> None:
    real_calculate = orchestration.calculate

    def flaky(account, last, current, **kwargs):
        if account.name == "Bike":
            raise RuntimeError("boom")
        return real_calculate(account, last, current, **kwargs)

    monkeypatch.setattr(orchestration, "calculate", flaky)
    clock.advance(days=7)

    result = family.recalculate("Ava")

    assert result.errors == ("Error calculating account Ava/Bike: boom",)
    assert result.total_accruals == 1
    assert result.new_balance == 10
    assert family.get_child("Ava").cbts == clock()


def test_preview_does_not_persist(family, clock) -> None:
    clock.advance(days=14)

    preview = family.calculator.preview_account("Ava", "Jar")

    assert (preview.accruals, preview.accrued_amount, preview.new_balance) == (2, 20, 20)
    assert family.account_balance("Ava", "Jar") == 0
    assert family.get_child("Ava").cbts == datetime(2024, 1, 1, 9, 30, tzinfo=TZ)


def test_calculation_needed_only_when_period_elapsed(family, clock) -> None:
    calculator = family.calculator

    assert not calculator.is_calculation_needed("Ava")
    clock.advance(days=7)
    assert calculator.is_calculation_needed("Ava")
    assert not calculator.is_calculation_needed("Ben")
    assert not calculator.is_calculation_needed("Nobody")
    assert calculator.last_calculation_time("Ava") == datetime(2024, 1, 1, 9, 30, tzinfo=TZ)
    assert calculator.last_calculation_time("Nobody") is None


def test_run_without_parent_is_empty(store, clock) -> None:
    summary = KidSavings(store, clock=clock, tz=TZ).recalculate_all()

    assert summary.success
    assert summary.results == []
