"""Key/value persistence used for drafts, bill history and staff sessions.

Values are JSON text so every backend behaves like the browser storage the
floor tablets originally wrote to. Backends raise :class:`StoreError` for any
failure so callers only ever handle one persistence exception.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError

from .db import db_transaction, get_conn, init_db


class StoreError(Exception):
    """The underlying storage could not be read or written."""


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Volatile store, handy for tests and for running without a disk."""

    __slots__ = ("_data",)

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StoreError(f"value for {key!r} must be text")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(sorted(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SqliteStore:
    """Store backed by the ``kv_store`` table of the POS database."""

    __slots__ = ("db_path",)

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path
        try:
            init_db(db_path)
        except (sqlite3.Error, SQLAlchemyError) as exc:
            raise StoreError(f"could not open store: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        try:
            conn = get_conn(self.db_path)
            try:
                cur = conn.cursor()
                cur.execute("SELECT value FROM kv_store WHERE key=?", (key,))
                row = cur.fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, SQLAlchemyError) as exc:
            raise StoreError(f"could not read {key!r}: {exc}") from exc
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StoreError(f"value for {key!r} must be text")
        try:
            with db_transaction(db_path=self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store(key, value, updated_at) VALUES(?,?,?)",
                    (key, value, datetime.now(timezone.utc).isoformat()),
                )
        except (sqlite3.Error, SQLAlchemyError) as exc:
            raise StoreError(f"could not write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with db_transaction(db_path=self.db_path) as conn:
                conn.execute("DELETE FROM kv_store WHERE key=?", (key,))
        except (sqlite3.Error, SQLAlchemyError) as exc:
            raise StoreError(f"could not delete {key!r}: {exc}") from exc

    def keys(self) -> Iterator[str]:
        try:
            conn = get_conn(self.db_path)
            try:
                cur = conn.cursor()
                cur.execute("SELECT key FROM kv_store ORDER BY key")
                rows = [row["key"] for row in cur.fetchall()]
            finally:
                conn.close()
        except (sqlite3.Error, SQLAlchemyError) as exc:
            raise StoreError(f"could not list keys: {exc}") from exc
        return iter(rows)
