"""SQLite backed key-value store with one backup slot per key."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .config import Settings
from .exceptions import StorageError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreEntry(SQLModel, table=True):
    k: str = Field(primary_key=True)
    v: str
    backup: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)


def create_store_engine(settings: Settings, **kwargs: Any) -> Engine:
    return create_engine(
        settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
        **kwargs,
    )


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


class KeyValueStore:
    """String keyed documents; every overwrite keeps the previous value as backup."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        create_db_and_tables(engine)

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(StoreEntry, key)
            return entry.v if entry else None

    def get_backup(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(StoreEntry, key)
            return entry.backup if entry else None

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def put(self, key: str, value: str) -> None:
        self.put_many({key: value})

    def put_many(self, values: Mapping[str, str]) -> None:
        """Write several keys in a single transaction."""

        try:
            with Session(self.engine) as session:
                for key, value in values.items():
                    entry = session.get(StoreEntry, key)
                    if entry is None:
                        entry = StoreEntry(k=key, v=value)
                    else:
                        entry.backup = entry.v
                        entry.v = value
                        entry.updated_at = _utcnow()
                    session.add(entry)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to write {', '.join(values)}.") from exc

    def delete(self, key: str) -> None:
        """Remove ``key`` together with its backup slot."""

        try:
            with Session(self.engine) as session:
                entry = session.get(StoreEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete {key}.") from exc

    def list_keys(self, prefix: str = "") -> List[str]:
        with Session(self.engine) as session:
            query = select(StoreEntry.k).order_by(StoreEntry.k)
            if prefix:
                query = query.where(StoreEntry.k.startswith(prefix))
            return list(session.exec(query).all())

    def restore_backup(self, key: str) -> bool:
        """Copy the backup slot of ``key`` over its current value."""

        with Session(self.engine) as session:
            entry = session.get(StoreEntry, key)
            if entry is None or entry.backup is None:
                return False
            entry.v = entry.backup
            entry.updated_at = _utcnow()
            session.add(entry)
            session.commit()
            return True


__all__ = ["KeyValueStore", "StoreEntry", "create_db_and_tables", "create_store_engine"]
