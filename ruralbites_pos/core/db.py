"""SQLite helpers wired through SQLAlchemy for durable local storage."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Dict, Iterator, Optional, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from .config_store import get_config_value, set_config_value
from .paths import DB_PATH, ensure_storage_dirs

_VALID_SYNC = {"OFF", "NORMAL", "FULL", "EXTRA"}
_DEFAULT_SYNC = "FULL"

_ENGINES: Dict[str, Engine] = {}
_ENGINES_LOCK = RLock()


def _current_sync() -> str:
    value = str(get_config_value("sqlite_synchronous", _DEFAULT_SYNC)).upper()
    if value not in _VALID_SYNC:
        value = _DEFAULT_SYNC
        set_config_value("sqlite_synchronous", value)
    return value


def _apply_pragmas(dbapi_conn, _):  # pragma: no cover - exercised via runtime
    dbapi_conn.row_factory = sqlite3.Row
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON;")
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute(f"PRAGMA synchronous={_current_sync()};")
        cursor.execute("PRAGMA temp_store=MEMORY;")
    finally:
        cursor.close()


def _resolve(db_path: Optional[Path]) -> Path:
    if db_path is None:
        ensure_storage_dirs()
        db_path = DB_PATH
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_engine(db_path: Optional[Path] = None) -> Engine:
    path = _resolve(db_path)
    key = path.as_posix()
    with _ENGINES_LOCK:
        engine = _ENGINES.get(key)
        if engine is None:
            engine = create_engine(
                f"sqlite:///{key}",
                connect_args={"check_same_thread": False},
            )
            event.listen(engine, "connect", _apply_pragmas)
            _ENGINES[key] = engine
        return engine


def get_conn(db_path: Optional[Path] = None) -> sqlite3.Connection:
    conn = get_engine(db_path).raw_connection()
    driver = getattr(conn, "driver_connection", None) or conn
    driver.isolation_level = None  # explicit transactions via BEGIN
    return conn


@contextmanager
def db_transaction(begin_stmt: str = "BEGIN IMMEDIATE", db_path: Optional[Path] = None):
    conn = get_conn(db_path)
    try:
        conn.execute(begin_stmt)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def close_engine() -> None:
    with _ENGINES_LOCK:
        for engine in _ENGINES.values():
            engine.dispose()
        _ENGINES.clear()


def init_db(db_path: Optional[Path] = None) -> None:
    conn = get_conn(db_path)
    try:
        cur = conn.cursor()
        cur.execute(
            """CREATE TABLE IF NOT EXISTS kv_store(
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )"""
        )
        cur.execute(
            """CREATE TABLE IF NOT EXISTS audit_log(
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TEXT NOT NULL,
                    username TEXT NOT NULL,
                    action TEXT NOT NULL,
                    entity_type TEXT,
                    entity_name TEXT,
                    old_value TEXT,
                    new_value TEXT,
                    extra TEXT
                )"""
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_ts ON audit_log(ts)")
        conn.commit()
    finally:
        conn.close()


def log_action(
    username,
    action,
    entity_type=None,
    entity_name=None,
    old_value=None,
    new_value=None,
    extra=None,
    *,
    db_path: Optional[Path] = None,
):
    with db_transaction(db_path=db_path) as conn:
        conn.execute(
            """INSERT INTO audit_log(ts,username,action,entity_type,entity_name,old_value,new_value,extra)
                   VALUES(?,?,?,?,?,?,?,?)""",
            (
                datetime.now(timezone.utc).isoformat(),
                username,
                action,
                entity_type,
                entity_name,
                old_value,
                new_value,
                extra,
            ),
        )


def recent_actions(limit: int = 50, db_path: Optional[Path] = None) -> list[dict]:
    conn = get_conn(db_path)
    try:
        cur = conn.cursor()
        cur.execute(
            """SELECT ts, username, action, entity_type, entity_name, old_value, new_value, extra
                   FROM audit_log ORDER BY id DESC LIMIT ?""",
            (limit,),
        )
        return [dict(row) for row in cur.fetchall()]
    finally:
        conn.close()


def run_integrity_check(db_path: Optional[Path] = None) -> str:
    conn = get_conn(db_path)
    try:
        cur = conn.cursor()
        cur.execute("PRAGMA integrity_check;")
        row = cur.fetchone()
        return row[0] if row else "error"
    finally:
        conn.close()


def maybe_run_integrity_check(force: bool = False, db_path: Optional[Path] = None) -> Tuple[bool, str]:
    today = date.today()
    if not force:
        last = str(get_config_value("last_integrity_check", ""))
        if last:
            try:
                last_date = date.fromisoformat(last)
                if (today - last_date).days < 7:
                    return True, ""
            except ValueError:
                pass
    result = run_integrity_check(db_path)
    set_config_value("last_integrity_check", today.isoformat())
    ok = result.strip().lower() == "ok"
    return ok, result


def iter_tables(db_path: Optional[Path] = None) -> Iterator[str]:
    conn = get_conn(db_path)
    try:
        cur = conn.cursor()
        cur.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        rows = [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
    yield from rows
