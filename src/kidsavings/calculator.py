"""Allowance and interest accrual for a single account.

Key rules:

* achieved goal accounts are never touched;
* a ``current_instant`` earlier than the last calculation is a no-op (clock skew);
* allowance and interest due dates are merged into one chronological timeline;
* within one timeline point interest is applied *before* allowance, so
  percentage interest never includes that period's allowance;
* every posted amount is rounded up to a whole currency unit.

:func:`calculate` has no side effects. Persisting the returned ledger entries
and timestamp is the job of :mod:`kidsavings.orchestration`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Dict, List, Optional

from .aggregation import account_balance
from .models import (
    Account,
    AccrualEntry,
    AccrualKind,
    AllowanceConfig,
    BalanceCalculationResult,
    InterestConfig,
    InterestType,
)
from .money import percentage_of, round_up
from .schedule import due_instants


@dataclass(slots=True)
class AccrualPeriod:
    timestamp: datetime
    allowance_due: bool = False
    interest_due: bool = False


def _allowance_active(config: AllowanceConfig) -> bool:
    return bool(config.enabled and config.frequency and config.amount)


def _interest_active(config: InterestConfig) -> bool:
    return bool(config.enabled and config.frequency and config.type and config.value is not None)


def _format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def describe_interest(config: InterestConfig) -> str:
    frequency = config.frequency.value if config.frequency else ""
    if config.type is InterestType.PERCENTAGE:
        return f"Interest {_format_number(config.value)}% ({frequency})"
    return f"Interest ${_format_number(config.value)} ({frequency})"


def describe_allowance(config: AllowanceConfig) -> str:
    frequency = config.frequency.value if config.frequency else ""
    return f"Allowance ${_format_number(config.amount)} ({frequency})"


def interest_for_period(balance: int, config: InterestConfig) -> int:
    """Return the interest earned on ``balance`` for one period."""

    if not _interest_active(config):
        return 0
    if config.type is InterestType.PERCENTAGE:
        return percentage_of(balance, config.value)
    return round_up(config.value)


def collect_periods(
    account: Account,
    last_instant: datetime,
    current_instant: datetime,
    *,
    tz: Optional[tzinfo] = None,
) -> List[AccrualPeriod]:
    """Merge allowance and interest due instants into one sorted timeline."""

    periods: Dict[datetime, AccrualPeriod] = {}
    if _allowance_active(account.allowance):
        for instant in due_instants(last_instant, current_instant, account.allowance.frequency, tz=tz):
            periods.setdefault(instant, AccrualPeriod(instant)).allowance_due = True
    if _interest_active(account.interest):
        for instant in due_instants(last_instant, current_instant, account.interest.frequency, tz=tz):
            periods.setdefault(instant, AccrualPeriod(instant)).interest_due = True
    return sorted(periods.values(), key=lambda period: period.timestamp)


def calculate(
    account: Account,
    last_instant: datetime,
    current_instant: datetime,
    *,
    tz: Optional[tzinfo] = None,
) -> BalanceCalculationResult:
    """Compute accruals due for ``account`` between two calculation instants."""

    balance = account_balance(account)
    if account.is_read_only or current_instant < last_instant:
        return BalanceCalculationResult(new_balance=balance, new_timestamp=last_instant)

    accruals: List[AccrualEntry] = []
    running = balance
    for period in collect_periods(account, last_instant, current_instant, tz=tz):
        if period.interest_due:
            amount = interest_for_period(running, account.interest)
            if amount > 0:
                accruals.append(
                    AccrualEntry(
                        timestamp=period.timestamp,
                        account_name=account.name,
                        kind=AccrualKind.INTEREST,
                        amount=amount,
                        description=describe_interest(account.interest),
                    )
                )
                running += amount
        if period.allowance_due:
            amount = round_up(account.allowance.amount)
            if amount > 0:
                accruals.append(
                    AccrualEntry(
                        timestamp=period.timestamp,
                        account_name=account.name,
                        kind=AccrualKind.ALLOWANCE,
                        amount=amount,
                        description=describe_allowance(account.allowance),
                    )
                )
                running += amount

    return BalanceCalculationResult(
        new_balance=running,
        new_timestamp=current_instant,
        accruals=tuple(accruals),
        ledger_entries=tuple(accrual.to_ledger_entry() for accrual in accruals),
    )


__all__ = [
    "AccrualPeriod",
    "calculate",
    "collect_periods",
    "describe_allowance",
    "describe_interest",
    "interest_for_period",
]
