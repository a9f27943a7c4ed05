"""KidSavings package: allowance and interest savings accounts for children."""

from .aggregation import account_balance, child_total_balance, is_goal_achieved
from .calculator import calculate
from .config import Settings, load_settings, system_clock
from .exceptions import (
    AccountNotFoundError,
    ChildNotFoundError,
    DuplicateAccountError,
    DuplicateChildError,
    GoalNotReachedError,
    InsufficientFundsError,
    KidSavingsError,
    NotFoundError,
    ParentNotFoundError,
    ReadOnlyAccountError,
    StorageError,
    ValidationError,
)
from .models import (
    Account,
    AccountType,
    AccrualEntry,
    AccrualKind,
    AllowanceConfig,
    BalanceCalculationResult,
    Child,
    ChildSummary,
    EntryType,
    Frequency,
    GoalConfig,
    InterestConfig,
    InterestType,
    LedgerEntry,
    Parent,
    TransferResult,
    WithdrawResult,
)
from .money import cap_to, percentage_of, round_up
from .ops import StructuredLogger
from .orchestration import BalanceCalculationService, CalculationSummary, ChildCalculationResult
from .schedule import due_instants, periods_elapsed
from .service import KidSavings
from .storage import KeyValueStore

__all__ = [
    "Account",
    "AccountNotFoundError",
    "AccountType",
    "AccrualEntry",
    "AccrualKind",
    "AllowanceConfig",
    "BalanceCalculationResult",
    "BalanceCalculationService",
    "CalculationSummary",
    "Child",
    "ChildCalculationResult",
    "ChildSummary",
    "ChildNotFoundError",
    "DuplicateAccountError",
    "DuplicateChildError",
    "EntryType",
    "Frequency",
    "GoalConfig",
    "GoalNotReachedError",
    "InsufficientFundsError",
    "InterestConfig",
    "InterestType",
    "KeyValueStore",
    "KidSavings",
    "KidSavingsError",
    "LedgerEntry",
    "NotFoundError",
    "Parent",
    "ParentNotFoundError",
    "ReadOnlyAccountError",
    "Settings",
    "StorageError",
    "StructuredLogger",
    "TransferResult",
    "ValidationError",
    "WithdrawResult",
    "account_balance",
    "calculate",
    "cap_to",
    "child_total_balance",
    "due_instants",
    "is_goal_achieved",
    "load_settings",
    "percentage_of",
    "periods_elapsed",
    "round_up",
    "system_clock",
]
