"""Custom exception hierarchy for the KidSavings package."""

from __future__ import annotations


class KidSavingsError(Exception):
    """Base class for all KidSavings specific errors."""


class ValidationError(KidSavingsError, ValueError):
    """Raised when user supplied data fails a validation rule."""


class NotFoundError(KidSavingsError, LookupError):
    """Raised when a referenced entity does not exist."""


class ParentNotFoundError(NotFoundError):
    """Raised before onboarding, when no parent has been created yet."""


class ChildNotFoundError(NotFoundError):
    """Raised when a child lookup fails."""


class AccountNotFoundError(NotFoundError):
    """Raised when an account lookup fails."""


class DuplicateChildError(ValidationError):
    """Raised when attempting to create a child that already exists."""


class DuplicateAccountError(ValidationError):
    """Raised when a child already owns an account with the same name."""


class ReadOnlyAccountError(KidSavingsError):
    """Raised when mutating an account whose goal has been achieved."""


class InsufficientFundsError(KidSavingsError):
    """Raised when withdrawing or transferring from an empty account."""


class GoalNotReachedError(KidSavingsError):
    """Raised when marking a goal achieved before its cost is covered."""


class StorageError(KidSavingsError):
    """Raised when a stored document cannot be read or written."""
