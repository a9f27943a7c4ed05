"""Domain models used by the KidSavings package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

InterestValue = Union[int, float]


class AccountType(str, Enum):
    """Kinds of account a child can own."""

    SAVINGS = "Savings"
    GOAL = "Goal"


class EntryType(str, Enum):
    """Direction of a ledger entry."""

    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"


class Frequency(str, Enum):
    """Supported accrual frequencies."""

    WEEKLY = "weekly"
    BIWEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class InterestType(str, Enum):
    ABSOLUTE = "Absolute"
    PERCENTAGE = "Percentage"


class AccrualKind(str, Enum):
    ALLOWANCE = "allowance"
    INTEREST = "interest"


def dump_instant(moment: datetime) -> str:
    """Serialise ``moment`` with millisecond precision."""

    return moment.isoformat(timespec="milliseconds")


def load_instant(raw: str) -> datetime:
    return datetime.fromisoformat(raw)


def _optional_enum(enum_type: type[Enum], raw: Any) -> Any:
    if raw is None or raw == "":
        return None
    return enum_type(raw)


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A single immutable ledger line; withdrawals carry a negative ``value``."""

    timestamp: datetime
    type: EntryType
    description: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": dump_instant(self.timestamp),
            "type": self.type.value,
            "description": self.description,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerEntry":
        return cls(
            timestamp=load_instant(data["timestamp"]),
            type=EntryType(data["type"]),
            description=str(data.get("description", "")),
            value=int(data["value"]),
        )


@dataclass(slots=True)
class AllowanceConfig:
    """Recurring allowance paid into an account."""

    enabled: bool = False
    amount: Optional[int] = None
    frequency: Optional[Frequency] = None

    def __post_init__(self) -> None:
        if self.frequency is not None and not isinstance(self.frequency, Frequency):
            self.frequency = Frequency(self.frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "amount": self.amount,
            "frequency": self.frequency.value if self.frequency else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AllowanceConfig":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            amount=data.get("amount"),
            frequency=_optional_enum(Frequency, data.get("frequency")),
        )


@dataclass(slots=True)
class InterestConfig:
    """Recurring interest, either a fixed amount or a percentage of the balance."""

    enabled: bool = False
    type: Optional[InterestType] = None
    value: Optional[InterestValue] = None
    frequency: Optional[Frequency] = None

    def __post_init__(self) -> None:
        if self.type is not None and not isinstance(self.type, InterestType):
            self.type = InterestType(self.type)
        if self.frequency is not None and not isinstance(self.frequency, Frequency):
            self.frequency = Frequency(self.frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "type": self.type.value if self.type else None,
            "value": self.value,
            "frequency": self.frequency.value if self.frequency else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "InterestConfig":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            type=_optional_enum(InterestType, data.get("type")),
            value=data.get("value"),
            frequency=_optional_enum(Frequency, data.get("frequency")),
        )


@dataclass(slots=True)
class GoalConfig:
    """Savings target for a Goal account. ``achieved`` only ever flips to ``True``."""

    name: str
    cost: int
    achieved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "cost": self.cost, "achieved": self.achieved}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GoalConfig":
        return cls(name=str(data["name"]), cost=int(data["cost"]), achieved=bool(data.get("achieved", False)))


@dataclass(slots=True)
class Account:
    """A child's Savings or Goal account together with its ledger."""

    name: str
    type: AccountType
    created_at: datetime
    allowance: AllowanceConfig = field(default_factory=AllowanceConfig)
    interest: InterestConfig = field(default_factory=InterestConfig)
    goal: Optional[GoalConfig] = None
    ledger: List[LedgerEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.type, AccountType):
            self.type = AccountType(self.type)

    @property
    def is_read_only(self) -> bool:
        """True once the account's goal has been flagged as achieved."""

        return bool(self.goal and self.goal.achieved)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "allowance": self.allowance.to_dict(),
            "interest": self.interest.to_dict(),
            "goal": self.goal.to_dict() if self.goal else None,
            "ledger": [entry.to_dict() for entry in self.ledger],
            "createdAt": dump_instant(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Account":
        goal = data.get("goal")
        return cls(
            name=str(data["name"]),
            type=AccountType(data["type"]),
            created_at=load_instant(data["createdAt"]),
            allowance=AllowanceConfig.from_dict(data.get("allowance")),
            interest=InterestConfig.from_dict(data.get("interest")),
            goal=GoalConfig.from_dict(goal) if goal else None,
            ledger=[LedgerEntry.from_dict(item) for item in data.get("ledger", [])],
        )


@dataclass(slots=True)
class Child:
    """A child with references to their accounts and a cached balance snapshot."""

    name: str
    cbts: datetime
    cb: int = 0
    accounts: List[str] = field(default_factory=list)
    avatar: str = "\U0001F476"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "avatar": self.avatar,
            "accounts": list(self.accounts),
            "cb": self.cb,
            "cbts": dump_instant(self.cbts),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Child":
        return cls(
            name=str(data["name"]),
            cbts=load_instant(data["cbts"]),
            cb=int(data.get("cb", 0)),
            accounts=[str(name) for name in data.get("accounts", [])],
            avatar=data.get("avatar") or "\U0001F476",
        )


@dataclass(slots=True)
class Parent:
    name: str
    children: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "children": list(self.children)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Parent":
        return cls(name=str(data["name"]), children=[str(name) for name in data.get("children", [])])


@dataclass(frozen=True, slots=True)
class AccrualEntry:
    """Allowance or interest posted by the balance calculator."""

    timestamp: datetime
    account_name: str
    kind: AccrualKind
    amount: int
    description: str

    def to_ledger_entry(self) -> LedgerEntry:
        return LedgerEntry(
            timestamp=self.timestamp,
            type=EntryType.DEPOSIT,
            description=self.description,
            value=self.amount,
        )


@dataclass(frozen=True, slots=True)
class BalanceCalculationResult:
    new_balance: int
    new_timestamp: datetime
    accruals: Tuple[AccrualEntry, ...] = ()
    ledger_entries: Tuple[LedgerEntry, ...] = ()

    @property
    def accrued_amount(self) -> int:
        return sum(accrual.amount for accrual in self.accruals)


@dataclass(frozen=True, slots=True)
class WithdrawResult:
    """Outcome of a withdrawal; ``actual_amount`` is capped to the available balance."""

    entry: LedgerEntry
    requested_amount: int
    actual_amount: int

    @property
    def was_capped(self) -> bool:
        return self.actual_amount < self.requested_amount

    @property
    def capped_message(self) -> Optional[str]:
        if not self.was_capped:
            return None
        return f"Withdrawal amount adjusted to available balance (${self.actual_amount})"


@dataclass(frozen=True, slots=True)
class TransferResult:
    from_account: str
    to_account: str
    requested_amount: int
    actual_amount: int
    withdraw_entry: LedgerEntry
    deposit_entry: LedgerEntry

    @property
    def was_capped(self) -> bool:
        return self.actual_amount < self.requested_amount

    @property
    def capped_message(self) -> Optional[str]:
        if not self.was_capped:
            return None
        return f"Transfer amount adjusted to available balance (${self.actual_amount})"


@dataclass(frozen=True, slots=True)
class GoalSummary:
    name: str
    cost: int
    achieved: bool
    progress: Decimal


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """Snapshot used by the child dashboard account cards."""

    name: str
    type: AccountType
    balance: int
    is_read_only: bool
    transaction_count: int
    has_allowance: bool
    has_interest: bool
    created_at: datetime
    goal: Optional[GoalSummary] = None


@dataclass(frozen=True, slots=True)
class ChildSummary:
    """Dashboard card for one child."""

    name: str
    avatar: str
    total_balance: int
    account_count: int
    active_account_count: int
    achieved_goal_count: int
    last_calculation_time: datetime


@dataclass(frozen=True, slots=True)
class LedgerStats:
    total_entries: int
    total_deposits: int
    total_withdrawals: int
    deposit_count: int
    withdraw_count: int
    first_entry: Optional[datetime]
    last_entry: Optional[datetime]


__all__ = [
    "Account",
    "AccountSummary",
    "AccountType",
    "AccrualEntry",
    "AccrualKind",
    "AllowanceConfig",
    "BalanceCalculationResult",
    "Child",
    "ChildSummary",
    "EntryType",
    "Frequency",
    "GoalConfig",
    "GoalSummary",
    "InterestConfig",
    "InterestType",
    "LedgerEntry",
    "LedgerStats",
    "Parent",
    "TransferResult",
    "WithdrawResult",
    "dump_instant",
    "load_instant",
]
