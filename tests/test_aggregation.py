from datetime import datetime, timezone
from decimal import Decimal

from kidsavings.aggregation import account_balance, child_total_balance, goal_progress, is_goal_achieved, ledger_sum
from kidsavings.models import Account, AccountType, EntryType, GoalConfig, LedgerEntry

OPENED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def account_with(*values: int, goal: GoalConfig | None = None) -> Account:
    account = Account(
        name="Jar",
        type=AccountType.GOAL if goal else AccountType.SAVINGS,
        created_at=OPENED,
        goal=goal,
    )
    for value in values:
        kind = EntryType.DEPOSIT if value >= 0 else EntryType.WITHDRAW
        account.ledger.append(LedgerEntry(OPENED, kind, "", value))
    return account


def test_balance_is_ledger_sum_clamped_at_zero() -> None:
    assert account_balance(account_with()) == 0
    assert account_balance(account_with(30, -12, 5)) == 23
    overdrawn = account_with(10, -25)
    assert ledger_sum(overdrawn) == -15
    assert account_balance(overdrawn) == 0


def test_child_total_skips_achieved_goals() -> None:
    accounts = [
        account_with(40),
        account_with(60, goal=GoalConfig("Skates", 50)),
        account_with(90, goal=GoalConfig("Bike", 90, achieved=True)),
        account_with(5, -20),
    ]

    assert child_total_balance(accounts) == 100
    assert child_total_balance([]) == 0


def test_goal_query_does_not_set_flag() -> None:
    goal = GoalConfig("Lego", 25)
    account = account_with(25, goal=goal)

    assert is_goal_achieved(account)
    assert goal.achieved is False
    assert not is_goal_achieved(account_with(100))
    assert not is_goal_achieved(account_with(24, goal=GoalConfig("Lego", 25)))


def test_goal_progress_is_capped_percentage() -> None:
    assert goal_progress(account_with(1, goal=GoalConfig("Kite", 3))) == Decimal("33.3")
    assert goal_progress(account_with(30, goal=GoalConfig("Kite", 20))) == Decimal("100.0")
    assert goal_progress(account_with(30)) == Decimal("0.0")
