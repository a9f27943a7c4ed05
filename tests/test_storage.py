import json
from datetime import datetime, timezone

import pytest

from kidsavings.exceptions import StorageError
from kidsavings.models import Account, AccountType, Child, EntryType, LedgerEntry
from kidsavings.repositories import AccountRepository, ChildRepository, account_key, child_key


def test_overwrite_keeps_previous_value_as_backup(store) -> None:
    store.put("A.txt", "one")
    assert store.get_backup("A.txt") is None

    store.put("A.txt", "two")
    store.put("A.txt", "three")

    assert store.get("A.txt") == "three"
    assert store.get_backup("A.txt") == "two"


def test_restore_backup(store) -> None:
    store.put("A.txt", "good")
    store.put("A.txt", "bad")

    assert store.restore_backup("A.txt") is True
    assert store.get("A.txt") == "good"
    assert store.restore_backup("missing") is False


def test_put_many_and_prefix_listing(store) -> None:
    store.put_many({"ACCOUNT-a-x.txt": "1", "ACCOUNT-a-y.txt": "2", "CHILD-a.txt": "3"})

    assert store.list_keys("ACCOUNT-") == ["ACCOUNT-a-x.txt", "ACCOUNT-a-y.txt"]
    assert len(store.list_keys()) == 3


def test_delete_drops_value_and_backup(store) -> None:
    store.put("A.txt", "one")
    store.put("A.txt", "two")

    store.delete("A.txt")
    store.delete("A.txt")

    assert not store.exists("A.txt")
    assert store.get_backup("A.txt") is None


def test_keys_are_case_insensitive() -> None:
    assert child_key("Ava") == child_key(" ava ") == "CHILD-ava.txt"
    assert account_key("Ava", "Bike Fund") == "ACCOUNT-ava-bike fund.txt"


def test_corrupt_document_falls_back_to_backup(store, logger) -> None:
    children = ChildRepository(store, logger)
    cbts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    children.save(Child(name="Ava", cbts=cbts, cb=12))
    store.put(child_key("Ava"), "{not json")

    child = children.require("Ava")

    assert child.cb == 12
    assert json.loads(store.get(child_key("Ava")))["cb"] == 12
    assert logger.events("storage_restored")[0]["key"] == child_key("Ava")


def test_corrupt_document_without_backup_raises(store, logger) -> None:
    store.put(account_key("Ava", "Jar"), "{broken")

    with pytest.raises(StorageError):
        AccountRepository(store, logger).get("Ava", "Jar")


def test_append_keeps_ledger_sorted(store, logger) -> None:
    accounts = AccountRepository(store, logger)
    opened = datetime(2024, 1, 1, tzinfo=timezone.utc)
    accounts.save("Ava", Account(name="Jar", type=AccountType.SAVINGS, created_at=opened))
    late = LedgerEntry(datetime(2024, 1, 9, tzinfo=timezone.utc), EntryType.DEPOSIT, "late", 2)
    early = LedgerEntry(datetime(2024, 1, 8, tzinfo=timezone.utc), EntryType.DEPOSIT, "early", 1)

    accounts.append_ledger_entries("Ava", "Jar", [late])
    account = accounts.append_ledger_entries("Ava", "jar", [early])

    assert [entry.description for entry in account.ledger] == ["early", "late"]
    assert accounts.require("AVA", "JAR").ledger == account.ledger
