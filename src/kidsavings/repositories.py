"""Parent, child and account documents stored in the key-value store.

Each entity lives under its own key as a JSON document:

* ``PARENT.txt``
* ``CHILD-<child>.txt``
* ``ACCOUNT-<child>-<account>.txt``

Names inside keys are normalised so lookups are case-insensitive.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from .exceptions import (
    AccountNotFoundError,
    ChildNotFoundError,
    DuplicateAccountError,
    DuplicateChildError,
    ParentNotFoundError,
    StorageError,
)
from .models import Account, Child, LedgerEntry, Parent
from .ops import StructuredLogger
from .storage import KeyValueStore
from .validation import normalize_name

PARENT_KEY = "PARENT.txt"
CHILD_KEY_PREFIX = "CHILD-"
ACCOUNT_KEY_PREFIX = "ACCOUNT-"

T = TypeVar("T")


def child_key(child_name: str) -> str:
    return f"{CHILD_KEY_PREFIX}{normalize_name(child_name)}.txt"


def account_key(child_name: str, account_name: str) -> str:
    return f"{ACCOUNT_KEY_PREFIX}{normalize_name(child_name)}-{normalize_name(account_name)}.txt"


def _merge_entries(account: Account, entries: Sequence[LedgerEntry]) -> None:
    account.ledger.extend(entries)
    account.ledger.sort(key=lambda entry: entry.timestamp)


class _DocumentRepository:
    def __init__(self, store: KeyValueStore, logger: StructuredLogger) -> None:
        self.store = store
        self.logger = logger

    def _load(self, key: str, factory: Callable[[Dict[str, Any]], T]) -> Optional[T]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return factory(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            backup = self.store.get_backup(key)
            if backup is None:
                raise StorageError(f"Stored document {key} is unreadable.") from exc
            try:
                document = factory(json.loads(backup))
            except (ValueError, KeyError, TypeError) as backup_exc:
                raise StorageError(f"Stored document {key} and its backup are unreadable.") from backup_exc
            self.store.restore_backup(key)
            self.logger.log("storage_restored", key=key)
            return document

    @staticmethod
    def _dump(document: Any) -> str:
        return json.dumps(document.to_dict(), ensure_ascii=False, indent=2)


class ParentRepository(_DocumentRepository):
    def get(self) -> Optional[Parent]:
        return self._load(PARENT_KEY, Parent.from_dict)

    def require(self) -> Parent:
        parent = self.get()
        if parent is None:
            raise ParentNotFoundError("No parent has been set up yet.")
        return parent

    def exists(self) -> bool:
        return self.store.exists(PARENT_KEY)

    def save(self, parent: Parent) -> Parent:
        self.store.put(PARENT_KEY, self._dump(parent))
        return parent

    def add_child(self, child_name: str) -> Parent:
        parent = self.require()
        normalized = normalize_name(child_name)
        if any(normalize_name(name) == normalized for name in parent.children):
            raise DuplicateChildError(f"Child '{child_name}' already exists.")
        parent.children.append(child_name)
        return self.save(parent)

    def remove_child(self, child_name: str) -> Parent:
        parent = self.require()
        normalized = normalize_name(child_name)
        parent.children = [name for name in parent.children if normalize_name(name) != normalized]
        return self.save(parent)


class ChildRepository(_DocumentRepository):
    def get(self, child_name: str) -> Optional[Child]:
        return self._load(child_key(child_name), Child.from_dict)

    def require(self, child_name: str) -> Child:
        child = self.get(child_name)
        if child is None:
            raise ChildNotFoundError(f"Child '{child_name}' does not exist.")
        return child

    def save(self, child: Child) -> Child:
        self.store.put(child_key(child.name), self._dump(child))
        return child

    def get_all(self, names: Sequence[str]) -> List[Child]:
        children: List[Child] = []
        for name in names:
            child = self.get(name)
            if child is not None:
                children.append(child)
        return children

    def add_account(self, child_name: str, account_name: str) -> Child:
        child = self.require(child_name)
        normalized = normalize_name(account_name)
        if any(normalize_name(name) == normalized for name in child.accounts):
            raise DuplicateAccountError(f"Account '{account_name}' already exists for {child.name}.")
        child.accounts.append(account_name)
        return self.save(child)

    def remove_account(self, child_name: str, account_name: str) -> Child:
        child = self.require(child_name)
        normalized = normalize_name(account_name)
        child.accounts = [name for name in child.accounts if normalize_name(name) != normalized]
        return self.save(child)

    def set_balance(self, child_name: str, balance: int, timestamp: datetime) -> Child:
        """Persist the cached balance snapshot (``cb``/``cbts``)."""

        child = self.require(child_name)
        child.cb = balance
        child.cbts = timestamp
        return self.save(child)

    def delete(self, child_name: str) -> None:
        self.store.delete(child_key(child_name))


class AccountRepository(_DocumentRepository):
    def get(self, child_name: str, account_name: str) -> Optional[Account]:
        return self._load(account_key(child_name, account_name), Account.from_dict)

    def require(self, child_name: str, account_name: str) -> Account:
        account = self.get(child_name, account_name)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_name}' does not exist for {child_name}.")
        return account

    def exists(self, child_name: str, account_name: str) -> bool:
        return self.store.exists(account_key(child_name, account_name))

    def save(self, child_name: str, account: Account) -> Account:
        self.store.put(account_key(child_name, account.name), self._dump(account))
        return account

    def save_many(self, child_name: str, accounts: Sequence[Account]) -> None:
        self.store.put_many({account_key(child_name, account.name): self._dump(account) for account in accounts})

    def list_for_child(self, child: Child) -> List[Account]:
        accounts: List[Account] = []
        for name in child.accounts:
            account = self.get(child.name, name)
            if account is not None:
                accounts.append(account)
        return accounts

    def append_ledger_entries(
        self, child_name: str, account_name: str, entries: Sequence[LedgerEntry]
    ) -> Account:
        """Append ``entries`` and keep the ledger sorted by timestamp."""

        account = self.require(child_name, account_name)
        if not entries:
            return account
        _merge_entries(account, entries)
        return self.save(child_name, account)

    def append_to_many(self, child_name: str, entries: Mapping[str, Sequence[LedgerEntry]]) -> List[Account]:
        """Append entries to several accounts of one child in a single write."""

        accounts = [self.require(child_name, name) for name in entries]
        for account, new_entries in zip(accounts, entries.values()):
            _merge_entries(account, new_entries)
        self.save_many(child_name, accounts)
        return accounts

    def delete(self, child_name: str, account_name: str) -> None:
        self.store.delete(account_key(child_name, account_name))


__all__ = [
    "ACCOUNT_KEY_PREFIX",
    "AccountRepository",
    "CHILD_KEY_PREFIX",
    "ChildRepository",
    "PARENT_KEY",
    "ParentRepository",
    "account_key",
    "child_key",
]
