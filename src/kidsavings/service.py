"""High level service coordinating a parent's children and their accounts."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Optional, Tuple

from sqlalchemy.engine import Engine

from .aggregation import account_balance, child_total_balance, goal_progress, is_goal_achieved
from .config import Clock, Settings, load_settings, system_clock
from .exceptions import (
    AccountNotFoundError,
    DuplicateAccountError,
    DuplicateChildError,
    GoalNotReachedError,
    InsufficientFundsError,
    KidSavingsError,
    ReadOnlyAccountError,
    ValidationError,
)
from .models import (
    Account,
    AccountSummary,
    AccountType,
    AllowanceConfig,
    Child,
    ChildSummary,
    EntryType,
    GoalConfig,
    GoalSummary,
    InterestConfig,
    LedgerEntry,
    LedgerStats,
    Parent,
    TransferResult,
    WithdrawResult,
)
from .money import cap_to
from .ops import StructuredLogger
from .orchestration import BalanceCalculationService, CalculationSummary, ChildCalculationResult
from .repositories import AccountRepository, ChildRepository, ParentRepository
from .storage import KeyValueStore, create_store_engine
from .validation import (
    normalize_name,
    validate_allowance,
    validate_description,
    validate_goal,
    validate_interest,
    validate_name,
    validate_positive_amount,
    validate_unique_name,
)


class KidSavings:
    """Manage children, accounts, ledgers and balance recalculation."""

    __slots__ = (
        "_store",
        "_clock",
        "_tz",
        "_logger",
        "_parents",
        "_children",
        "_accounts",
        "_calculator",
    )

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Clock,
        tz: Optional[tzinfo] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._tz = tz
        self._logger = logger or StructuredLogger()
        self._parents = ParentRepository(store, self._logger)
        self._children = ChildRepository(store, self._logger)
        self._accounts = AccountRepository(store, self._logger)
        self._calculator = BalanceCalculationService(
            parents=self._parents,
            children=self._children,
            accounts=self._accounts,
            clock=clock,
            tz=tz,
            logger=self._logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        engine: Engine | None = None,
        clock: Clock | None = None,
    ) -> "KidSavings":
        settings = settings or load_settings()
        store = KeyValueStore(engine or create_store_engine(settings))
        tz = settings.tz
        return cls(
            store,
            clock=clock or system_clock(tz),
            tz=tz,
            logger=StructuredLogger(path=settings.log_path),
        )

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def calculator(self) -> BalanceCalculationService:
        return self._calculator

    # ------------------------------------------------------------------
    # Balance recalculation
    # ------------------------------------------------------------------
    def recalculate_all(self) -> CalculationSummary:
        return self._calculator.calculate_all()

    def recalculate(self, child_name: str) -> ChildCalculationResult:
        return self._calculator.calculate_for_child(child_name)

    # ------------------------------------------------------------------
    # Parent onboarding
    # ------------------------------------------------------------------
    def setup_parent(self, name: str) -> Parent:
        validate_name(name, "Parent name")
        existing = self._parents.get()
        if existing is not None:
            existing.name = name
            return self._parents.save(existing)
        return self._parents.save(Parent(name=name))

    def is_onboarded(self) -> bool:
        return self._parents.exists()

    def parent(self) -> Parent:
        return self._parents.require()

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------
    def create_child(self, name: str, *, avatar: str | None = None) -> Child:
        validate_name(name, "Child name")
        parent = self._parents.require()
        validate_unique_name(name, parent.children, "child", error=DuplicateChildError)
        child = Child(name=name, cbts=self._clock())
        if avatar:
            child.avatar = avatar
        self._children.save(child)
        self._parents.add_child(name)
        self._logger.log("child_created", child=name)
        return child

    def list_children(self) -> Tuple[Child, ...]:
        parent = self._parents.get()
        if parent is None:
            return tuple()
        return tuple(self._children.get_all(parent.children))

    def get_child(self, name: str) -> Child:
        return self._children.require(name)

    def child_summary(self, name: str) -> ChildSummary:
        child = self._children.require(name)
        accounts = self._accounts.list_for_child(child)
        achieved = sum(1 for account in accounts if account.is_read_only)
        return ChildSummary(
            name=child.name,
            avatar=child.avatar,
            total_balance=child_total_balance(accounts),
            account_count=len(accounts),
            active_account_count=len(accounts) - achieved,
            achieved_goal_count=achieved,
            last_calculation_time=child.cbts,
        )

    def child_summaries(self) -> Tuple[ChildSummary, ...]:
        """Summaries for every child; a child whose documents cannot be read is left out."""

        parent = self._parents.get()
        summaries = []
        for name in parent.children if parent else []:
            try:
                summaries.append(self.child_summary(name))
            except KidSavingsError as exc:
                self._logger.log("child_summary_failed", child=name, error=str(exc))
        return tuple(summaries)

    def delete_child(self, name: str) -> None:
        child = self._children.require(name)
        for account_name in child.accounts:
            self._accounts.delete(child.name, account_name)
        self._children.delete(child.name)
        self._parents.remove_child(child.name)
        self._logger.log("child_deleted", child=child.name, accounts=len(child.accounts))

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def create_account(
        self,
        child_name: str,
        name: str,
        account_type: AccountType | str = AccountType.SAVINGS,
        *,
        allowance: AllowanceConfig | None = None,
        interest: InterestConfig | None = None,
        goal: GoalConfig | None = None,
    ) -> Account:
        validate_name(name, "Account name")
        account_type = AccountType(account_type)
        child = self._children.require(child_name)
        validate_unique_name(name, child.accounts, "account", error=DuplicateAccountError)
        goal = validate_goal(account_type, goal)
        if goal is not None:
            goal.achieved = False
        allowance = validate_allowance(allowance or AllowanceConfig())
        interest = validate_interest(interest or InterestConfig())

        # settle existing accounts so the new one is not credited for past periods
        self._calculator.calculate_for_child(child.name)
        account = Account(
            name=name,
            type=account_type,
            created_at=self._clock(),
            allowance=allowance,
            interest=interest,
            goal=goal,
        )
        self._accounts.save(child.name, account)
        self._children.add_account(child.name, name)
        self._logger.log("account_created", child=child.name, account=name, type=account_type.value)
        self._calculator.calculate_for_child(child.name)
        return account

    def list_accounts(self, child_name: str) -> Tuple[Account, ...]:
        child = self._children.require(child_name)
        return tuple(self._accounts.list_for_child(child))

    def get_account(self, child_name: str, account_name: str) -> Account:
        return self._accounts.require(child_name, account_name)

    def account_balance(self, child_name: str, account_name: str) -> int:
        return account_balance(self.get_account(child_name, account_name))

    def is_read_only(self, child_name: str, account_name: str) -> bool:
        account = self._accounts.get(child_name, account_name)
        return bool(account and account.is_read_only)

    def delete_account(self, child_name: str, account_name: str, *, confirm_if_achieved: bool = False) -> None:
        account = self._accounts.require(child_name, account_name)
        if account.is_read_only and not confirm_if_achieved:
            raise ReadOnlyAccountError("Deleting an achieved goal requires confirmation.")
        child = self._children.require(child_name)
        self._children.remove_account(child.name, account.name)
        self._accounts.delete(child.name, account.name)
        self._logger.log("account_deleted", child=child.name, account=account.name)
        self._calculator.calculate_for_child(child.name)

    def account_summary(self, child_name: str, account_name: str) -> AccountSummary:
        account = self.get_account(child_name, account_name)
        goal = None
        if account.goal is not None:
            goal = GoalSummary(
                name=account.goal.name,
                cost=account.goal.cost,
                achieved=account.goal.achieved,
                progress=goal_progress(account),
            )
        return AccountSummary(
            name=account.name,
            type=account.type,
            balance=account_balance(account),
            is_read_only=account.is_read_only,
            transaction_count=len(account.ledger),
            has_allowance=account.allowance.enabled,
            has_interest=account.interest.enabled,
            created_at=account.created_at,
            goal=goal,
        )

    def update_configuration(
        self,
        child_name: str,
        account_name: str,
        *,
        allowance: AllowanceConfig | None = None,
        interest: InterestConfig | None = None,
    ) -> Account:
        account = self._writable_account(child_name, account_name)
        if allowance is not None:
            validate_allowance(allowance)
        if interest is not None:
            validate_interest(interest)
        self._calculator.calculate_for_child(child_name)
        account = self._writable_account(child_name, account_name)
        if allowance is not None:
            account.allowance = allowance
        if interest is not None:
            account.interest = interest
        self._accounts.save(child_name, account)
        self._logger.log(
            "config_updated",
            child=child_name,
            account=account.name,
            allowance=allowance is not None,
            interest=interest is not None,
        )
        return account

    # ------------------------------------------------------------------
    # Ledger operations
    # ------------------------------------------------------------------
    def deposit(self, child_name: str, account_name: str, amount: int, description: str = "Deposit") -> LedgerEntry:
        value = validate_positive_amount(amount, "Deposit amount")
        validate_description(description)
        self._writable_account(child_name, account_name)
        self._calculator.calculate_for_child(child_name)

        entry = LedgerEntry(timestamp=self._clock(), type=EntryType.DEPOSIT, description=description, value=value)
        account = self._accounts.append_ledger_entries(child_name, account_name, [entry])
        self._logger.log("deposit", child=child_name, account=account.name, amount=value)
        self._calculator.calculate_for_child(child_name)
        return entry

    def withdraw(
        self, child_name: str, account_name: str, amount: int, description: str = "Withdrawal"
    ) -> WithdrawResult:
        requested = validate_positive_amount(amount, "Withdraw amount")
        validate_description(description)
        self._writable_account(child_name, account_name)
        self._calculator.calculate_for_child(child_name)

        account = self._accounts.require(child_name, account_name)
        available = account_balance(account)
        if available == 0:
            raise InsufficientFundsError(f"Account '{account.name}' has no funds to withdraw.")
        actual = cap_to(requested, available)
        entry = LedgerEntry(timestamp=self._clock(), type=EntryType.WITHDRAW, description=description, value=-actual)
        self._accounts.append_ledger_entries(child_name, account.name, [entry])
        result = WithdrawResult(entry=entry, requested_amount=requested, actual_amount=actual)
        self._logger.log(
            "withdraw",
            child=child_name,
            account=account.name,
            requested=requested,
            amount=actual,
            capped=result.was_capped,
        )
        self._calculator.calculate_for_child(child_name)
        return result

    def transfer(self, child_name: str, from_account: str, to_account: str, amount: int) -> TransferResult:
        requested = validate_positive_amount(amount, "Transfer amount")
        if normalize_name(from_account) == normalize_name(to_account):
            raise ValidationError("Cannot transfer to the same account.")
        self._writable_account(child_name, from_account, role="Source")
        self._writable_account(child_name, to_account, role="Destination")
        self._calculator.calculate_for_child(child_name)

        source = self._accounts.require(child_name, from_account)
        destination = self._accounts.require(child_name, to_account)
        available = account_balance(source)
        if available == 0:
            raise InsufficientFundsError("Insufficient funds for transfer.")
        actual = cap_to(requested, available)
        moment = self._clock()
        outgoing = LedgerEntry(
            timestamp=moment,
            type=EntryType.WITHDRAW,
            description=f"Transfer to {destination.name}",
            value=-actual,
        )
        incoming = LedgerEntry(
            timestamp=moment,
            type=EntryType.DEPOSIT,
            description=f"Transfer from {source.name}",
            value=actual,
        )
        self._accounts.append_to_many(child_name, {source.name: [outgoing], destination.name: [incoming]})
        result = TransferResult(
            from_account=source.name,
            to_account=destination.name,
            requested_amount=requested,
            actual_amount=actual,
            withdraw_entry=outgoing,
            deposit_entry=incoming,
        )
        self._logger.log(
            "transfer",
            child=child_name,
            source=source.name,
            destination=destination.name,
            amount=actual,
            capped=result.was_capped,
        )
        self._calculator.calculate_for_child(child_name)
        return result

    def max_transfer_amount(self, child_name: str, account_name: str) -> int:
        account = self._accounts.get(child_name, account_name)
        if account is None or account.is_read_only:
            return 0
        return account_balance(account)

    def recent_entries(self, child_name: str, account_name: str, count: int = 10) -> Tuple[LedgerEntry, ...]:
        """Return the newest ``count`` entries, newest first."""

        if count < 0:
            raise ValueError("count must not be negative")
        ledger = self.get_account(child_name, account_name).ledger
        return tuple(reversed(ledger))[:count]

    def entries_between(
        self, child_name: str, account_name: str, start: datetime, end: datetime
    ) -> Tuple[LedgerEntry, ...]:
        ledger = self.get_account(child_name, account_name).ledger
        return tuple(entry for entry in ledger if start <= entry.timestamp <= end)

    def ledger_stats(self, child_name: str, account_name: str) -> LedgerStats:
        ledger = self.get_account(child_name, account_name).ledger
        deposits = [entry.value for entry in ledger if entry.type is EntryType.DEPOSIT]
        withdrawals = [abs(entry.value) for entry in ledger if entry.type is EntryType.WITHDRAW]
        return LedgerStats(
            total_entries=len(ledger),
            total_deposits=sum(deposits),
            total_withdrawals=sum(withdrawals),
            deposit_count=len(deposits),
            withdraw_count=len(withdrawals),
            first_entry=ledger[0].timestamp if ledger else None,
            last_entry=ledger[-1].timestamp if ledger else None,
        )

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------
    def should_mark_goal_achieved(self, child_name: str, account_name: str) -> bool:
        account = self._accounts.get(child_name, account_name)
        if account is None or account.goal is None or account.goal.achieved:
            return False
        return is_goal_achieved(account)

    def mark_goal_achieved(self, child_name: str, account_name: str) -> Account:
        """Flag a funded goal as achieved, making the account permanently read-only."""

        account = self._accounts.require(child_name, account_name)
        if account.type is not AccountType.GOAL or account.goal is None:
            raise ValidationError("Only Goal accounts can be marked as achieved.")
        if account.goal.achieved:
            raise ReadOnlyAccountError("Goal is already achieved.")
        balance = account_balance(account)
        if balance < account.goal.cost:
            raise GoalNotReachedError(
                f"Goal not yet achieved. Current: ${balance}, Target: ${account.goal.cost}"
            )
        account.goal.achieved = True
        self._accounts.save(child_name, account)
        self._logger.log("goal_achieved", child=child_name, account=account.name, cost=account.goal.cost)
        self._calculator.calculate_for_child(child_name)
        return account

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _writable_account(self, child_name: str, account_name: str, *, role: str = "") -> Account:
        try:
            account = self._accounts.require(child_name, account_name)
        except AccountNotFoundError as exc:
            if role:
                raise AccountNotFoundError(f"{role} account not found: {account_name}") from exc
            raise
        if account.is_read_only:
            label = f"{role} account" if role else "Account"
            raise ReadOnlyAccountError(f"{label} '{account.name}' is an achieved goal (read-only).")
        return account


__all__ = ["KidSavings"]
