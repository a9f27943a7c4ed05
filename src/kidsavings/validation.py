"""Validation and name normalisation helpers.

Names accept any printable UTF-8 text and are compared case-insensitively.
"""

from __future__ import annotations

from typing import Iterable, Optional, Type

from .config import (
    MAX_DESCRIPTION_LENGTH,
    MAX_INTEREST_PERCENTAGE,
    MAX_NAME_LENGTH,
    MIN_INTEREST_PERCENTAGE,
    MIN_NAME_LENGTH,
)
from .exceptions import ValidationError
from .models import AccountType, AllowanceConfig, GoalConfig, InterestConfig, InterestType

_ALLOWED_CONTROL = {"\t", "\n", "\r"}


def validate_text(value: str, field_name: str) -> None:
    for char in value:
        code = ord(char)
        if (code < 32 and char not in _ALLOWED_CONTROL) or code == 127:
            raise ValidationError(f"{field_name} contains invalid control characters.")


def validate_name(name: str, field_name: str) -> str:
    if not name or not name.strip():
        raise ValidationError(f"{field_name} cannot be empty.")
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"{field_name} must be at least {MIN_NAME_LENGTH} character(s).")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"{field_name} must be at most {MAX_NAME_LENGTH} characters.")
    validate_text(name, field_name)
    return name


def validate_description(description: str) -> str:
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters.")
    validate_text(description, "Description")
    return description


def validate_positive_amount(amount: object, field_name: str) -> int:
    """Ensure ``amount`` is a positive whole number of currency units."""

    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError(f"{field_name} must be a number.")
    if isinstance(amount, float) and not amount.is_integer():
        raise ValidationError(f"{field_name} must be a whole number.")
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than zero.")
    return int(amount)


def normalize_name(name: str) -> str:
    return name.strip().casefold()


def validate_unique_name(
    name: str,
    existing: Iterable[str],
    entity: str,
    *,
    error: Type[ValidationError] = ValidationError,
) -> None:
    normalized = normalize_name(name)
    if any(normalize_name(other) == normalized for other in existing):
        raise error(f"A {entity} named '{name}' already exists.")


def validate_allowance(config: AllowanceConfig) -> AllowanceConfig:
    if not config.enabled:
        return config
    if config.amount is None or config.frequency is None:
        raise ValidationError("Allowance requires amount and frequency.")
    config.amount = validate_positive_amount(config.amount, "Allowance amount")
    return config


def validate_interest(config: InterestConfig) -> InterestConfig:
    if not config.enabled:
        return config
    if config.type is None or config.value is None or config.frequency is None:
        raise ValidationError("Interest requires type, value, and frequency.")
    if isinstance(config.value, bool) or not isinstance(config.value, (int, float)):
        raise ValidationError("Interest value must be a number.")
    if config.type is InterestType.PERCENTAGE:
        if not MIN_INTEREST_PERCENTAGE < config.value <= MAX_INTEREST_PERCENTAGE:
            raise ValidationError(
                f"Interest percentage must be above {MIN_INTEREST_PERCENTAGE} "
                f"and at most {MAX_INTEREST_PERCENTAGE}."
            )
    else:
        config.value = validate_positive_amount(config.value, "Interest value")
    return config


def validate_goal(account_type: AccountType, goal: Optional[GoalConfig]) -> Optional[GoalConfig]:
    if account_type is not AccountType.GOAL:
        if goal is not None:
            raise ValidationError("Only Goal accounts can carry a goal.")
        return None
    if goal is None:
        raise ValidationError("Goal account must have goal configuration.")
    validate_name(goal.name, "Goal name")
    goal.cost = validate_positive_amount(goal.cost, "Goal cost")
    return goal


__all__ = [
    "normalize_name",
    "validate_allowance",
    "validate_description",
    "validate_goal",
    "validate_interest",
    "validate_name",
    "validate_positive_amount",
    "validate_text",
    "validate_unique_name",
]
