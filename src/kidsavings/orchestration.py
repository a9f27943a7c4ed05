"""Balance calculation runs across children and their accounts.

A run reads each child, skips it under clock skew, lets the calculator derive
due accruals per account, appends them to the stored ledgers and finally
refreshes the child's cached balance snapshot. Failures are collected per
account and per child so one bad document never stops the rest of the batch.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import List, Optional, Tuple

from .aggregation import account_balance, child_total_balance
from .calculator import calculate
from .config import Clock
from .models import Account, Frequency
from .ops import StructuredLogger
from .repositories import AccountRepository, ChildRepository, ParentRepository
from .schedule import is_accrual_due


@dataclass(slots=True)
class ChildCalculationResult:
    child_name: str
    clock_skew_detected: bool
    accounts_processed: int
    total_accruals: int
    total_accrued_amount: int
    new_balance: int
    errors: Tuple[str, ...] = ()


@dataclass(slots=True)
class AccountCalculationResult:
    account_name: str
    clock_skew_detected: bool
    accruals: int
    accrued_amount: int
    new_balance: int


@dataclass(slots=True)
class CalculationSummary:
    success: bool
    children_processed: int
    total_accruals: int
    total_accrued_amount: int
    duration_ms: int
    errors: List[str] = field(default_factory=list)
    results: List[ChildCalculationResult] = field(default_factory=list)

    @property
    def clock_skew_children(self) -> Tuple[str, ...]:
        return tuple(result.child_name for result in self.results if result.clock_skew_detected)


class BalanceCalculationService:
    """Apply due allowance and interest to every stored account."""

    def __init__(
        self,
        *,
        parents: ParentRepository,
        children: ChildRepository,
        accounts: AccountRepository,
        clock: Clock,
        tz: Optional[tzinfo] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._parents = parents
        self._children = children
        self._accounts = accounts
        self._clock = clock
        self._tz = tz
        self._logger = logger or StructuredLogger()

    def calculate_all(self) -> CalculationSummary:
        started = time.perf_counter()
        now = self._clock()
        results: List[ChildCalculationResult] = []
        errors: List[str] = []

        parent = self._parents.get()
        for child_name in parent.children if parent else []:
            try:
                result = self.calculate_for_child(child_name, now=now)
            except Exception as exc:
                message = f"Error calculating for child {child_name}: {exc}"
                self._logger.log("child_calculation_failed", child=child_name, error=str(exc))
                errors.append(message)
                continue
            results.append(result)
            errors.extend(result.errors)

        summary = CalculationSummary(
            success=not errors,
            children_processed=len(results),
            total_accruals=sum(result.total_accruals for result in results),
            total_accrued_amount=sum(result.total_accrued_amount for result in results),
            duration_ms=int((time.perf_counter() - started) * 1000),
            errors=errors,
            results=results,
        )
        self._logger.log(
            "calculation_finished",
            children=summary.children_processed,
            accruals=summary.total_accruals,
            amount=summary.total_accrued_amount,
            errors=len(errors),
            duration_ms=summary.duration_ms,
        )
        return summary

    def calculate_for_child(self, child_name: str, *, now: Optional[datetime] = None) -> ChildCalculationResult:
        child = self._children.require(child_name)
        now = now or self._clock()
        if now < child.cbts:
            self._logger.log("clock_skew", child=child.name, now=now.isoformat(), cbts=child.cbts.isoformat())
            return ChildCalculationResult(
                child_name=child.name,
                clock_skew_detected=True,
                accounts_processed=0,
                total_accruals=0,
                total_accrued_amount=0,
                new_balance=child.cb,
            )

        errors: List[str] = []
        loaded: List[Account] = []
        total_accruals = 0
        total_amount = 0
        for account_name in child.accounts:
            try:
                account = self._accounts.get(child.name, account_name)
                if account is None:
                    continue
                loaded.append(account)
                result = calculate(account, child.cbts, now, tz=self._tz)
                if result.ledger_entries:
                    account = self._accounts.append_ledger_entries(child.name, account.name, result.ledger_entries)
                    loaded[-1] = account
                    self._logger.log(
                        "accruals_posted",
                        child=child.name,
                        account=account.name,
                        count=len(result.accruals),
                        amount=result.accrued_amount,
                    )
            except Exception as exc:
                self._logger.log("account_calculation_failed", child=child.name, account=account_name, error=str(exc))
                errors.append(f"Error calculating account {child.name}/{account_name}: {exc}")
                continue
            total_accruals += len(result.accruals)
            total_amount += result.accrued_amount

        # accounts that could not be read contribute nothing until they load again
        new_balance = child_total_balance(loaded)
        self._children.set_balance(child.name, new_balance, now)
        return ChildCalculationResult(
            child_name=child.name,
            clock_skew_detected=False,
            accounts_processed=len(loaded),
            total_accruals=total_accruals,
            total_accrued_amount=total_amount,
            new_balance=new_balance,
            errors=tuple(errors),
        )

    def preview_account(
        self, child_name: str, account_name: str, *, now: Optional[datetime] = None
    ) -> AccountCalculationResult:
        """Report what a run would accrue for one account without persisting anything."""

        child = self._children.require(child_name)
        account = self._accounts.require(child.name, account_name)
        now = now or self._clock()
        if now < child.cbts:
            return AccountCalculationResult(
                account_name=account.name,
                clock_skew_detected=True,
                accruals=0,
                accrued_amount=0,
                new_balance=account_balance(account),
            )

        result = calculate(account, child.cbts, now, tz=self._tz)
        return AccountCalculationResult(
            account_name=account.name,
            clock_skew_detected=False,
            accruals=len(result.accruals),
            accrued_amount=result.accrued_amount,
            new_balance=result.new_balance,
        )

    def is_calculation_needed(self, child_name: str, *, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when at least one active schedule has a period due."""

        child = self._children.get(child_name)
        if child is None:
            return False
        now = now or self._clock()
        if now < child.cbts:
            return False
        for account in self._accounts.list_for_child(child):
            if account.is_read_only:
                continue
            frequencies: List[Frequency] = []
            if account.allowance.enabled and account.allowance.frequency:
                frequencies.append(account.allowance.frequency)
            if account.interest.enabled and account.interest.frequency:
                frequencies.append(account.interest.frequency)
            if any(is_accrual_due(child.cbts, now, frequency, tz=self._tz) for frequency in frequencies):
                return True
        return False

    def last_calculation_time(self, child_name: str) -> Optional[datetime]:
        child = self._children.get(child_name)
        return child.cbts if child else None


__all__ = [
    "AccountCalculationResult",
    "BalanceCalculationService",
    "CalculationSummary",
    "ChildCalculationResult",
]
