"""Tests for the key/value backends and the SQLite helpers behind them."""

import sqlite3

import pytest

from ruralbites_pos.core import db
from ruralbites_pos.core.config_store import get_config_value, set_config_value
from ruralbites_pos.core.store import KeyValueStore, MemoryStore, SqliteStore, StoreError


@pytest.mark.parametrize("factory", ["memory_store", "sqlite_store"])
def test_set_get_delete(factory, request):
    store = request.getfixturevalue(factory)
    assert isinstance(store, KeyValueStore)
    assert store.get("k") is None
    store.set("k", '{"a": 1}')
    assert store.get("k") == '{"a": 1}'
    store.set("k", "replaced")
    assert store.get("k") == "replaced"
    store.delete("k")
    assert store.get("k") is None
    store.delete("k")  # deleting a missing key is fine


@pytest.mark.parametrize("factory", ["memory_store", "sqlite_store"])
def test_rejects_non_text_values(factory, request):
    store = request.getfixturevalue(factory)
    with pytest.raises(StoreError):
        store.set("k", {"a": 1})


def test_keys_are_sorted(sqlite_store):
    sqlite_store.set("b", "1")
    sqlite_store.set("a", "2")
    assert list(sqlite_store.keys()) == ["a", "b"]
    memory = MemoryStore({"z": "1", "m": "2"})
    assert list(memory.keys()) == ["m", "z"]
    assert len(memory) == 2


def test_sqlite_values_survive_a_new_engine(db_path):
    SqliteStore(db_path).set("rural-bites-table-1", '{"items": {}}')
    db.close_engine()
    assert SqliteStore(db_path).get("rural-bites-table-1") == '{"items": {}}'


def test_sqlite_store_wraps_driver_errors(sqlite_store, monkeypatch):
    def broken(*_args, **_kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr("ruralbites_pos.core.store.get_conn", broken)
    with pytest.raises(StoreError, match="disk I/O error"):
        sqlite_store.get("k")


def test_init_db_creates_tables(db_path):
    db.init_db(db_path)
    names = set(db.iter_tables(db_path))
    assert {"kv_store", "audit_log"} <= names


def test_log_action_and_recent_actions(db_path):
    db.init_db(db_path)
    db.log_action("abx", "first", db_path=db_path)
    db.log_action("abx", "second", "table", "4", None, "10", db_path=db_path)
    rows = db.recent_actions(limit=1, db_path=db_path)
    assert len(rows) == 1
    assert rows[0]["action"] == "second"
    assert rows[0]["entity_name"] == "4"


def test_transaction_rolls_back_on_error(db_path):
    db.init_db(db_path)
    with pytest.raises(RuntimeError):
        with db.db_transaction(db_path=db_path) as conn:
            conn.execute("INSERT INTO kv_store(key, value, updated_at) VALUES('x', 'y', 'z')")
            raise RuntimeError("boom")
    assert SqliteStore(db_path).get("x") is None


def test_integrity_check_runs_weekly(db_path, settings_file):
    db.init_db(db_path)
    ok, result = db.maybe_run_integrity_check(db_path=db_path)
    assert ok and result == "ok"
    # Second call within the week is skipped.
    assert db.maybe_run_integrity_check(db_path=db_path) == (True, "")
    assert db.maybe_run_integrity_check(force=True, db_path=db_path) == (True, "ok")


def test_invalid_synchronous_setting_is_reset(db_path):
    set_config_value("sqlite_synchronous", "SOMETIMES")
    SqliteStore(db_path).set("k", "v")
    assert get_config_value("sqlite_synchronous") == "FULL"
