"""Balance queries over accounts and their ledgers."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .models import Account, AccountType


def ledger_sum(account: Account) -> int:
    return sum(entry.value for entry in account.ledger)


def account_balance(account: Account) -> int:
    """Return the account balance clamped to zero."""

    return max(0, ledger_sum(account))


def child_total_balance(accounts: Iterable[Account]) -> int:
    """Sum balances of every account whose goal has not been flagged achieved."""

    return sum(account_balance(account) for account in accounts if not account.is_read_only)


def is_goal_achieved(account: Account) -> bool:
    """Return ``True`` when a Goal account's balance covers its cost.

    This only answers the question; the ``achieved`` flag is set exclusively by
    an explicit confirmation in :class:`~kidsavings.service.KidSavings`.
    """

    if account.type is not AccountType.GOAL or account.goal is None:
        return False
    return account_balance(account) >= account.goal.cost


def goal_progress(account: Account) -> Decimal:
    """Return progress towards the goal as a percentage between 0 and 100."""

    if account.goal is None or account.goal.cost <= 0:
        return Decimal("0.0")
    ratio = Decimal(account_balance(account)) * Decimal(100) / Decimal(account.goal.cost)
    return min(Decimal(100), ratio).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


__all__ = ["account_balance", "child_total_balance", "goal_progress", "is_goal_achieved", "ledger_sum"]
