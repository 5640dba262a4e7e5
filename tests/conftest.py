"""Shared fixtures: an isolated data root, settings file and test catalogs."""

import os
import tempfile

# Module-level paths are resolved on import; point them at a scratch root first.
os.environ.setdefault("RURALBITES_DATA_ROOT", tempfile.mkdtemp(prefix="ruralbites-tests-"))

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from ruralbites_pos.core import config_store, db  # noqa: E402
from ruralbites_pos.core.bus import EventBus  # noqa: E402
from ruralbites_pos.core.store import MemoryStore, SqliteStore, StoreError  # noqa: E402
from ruralbites_pos.services.catalog import (  # noqa: E402
    MenuCatalog,
    MenuCatalogEntry,
    TableCatalog,
    TableRecord,
)
from ruralbites_pos.services.orders import OrderManager  # noqa: E402


class FlakyStore(MemoryStore):
    """MemoryStore whose reads, writes or deletes can be switched to fail."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_get = False
        self.fail_set = False
        self.fail_delete = False
        self.fail_keys = set()
        self.writes = []

    def get(self, key):
        if self.fail_get:
            raise StoreError(f"read of {key} refused")
        return super().get(key)

    def set(self, key, value):
        if self.fail_set or key in self.fail_keys:
            raise StoreError(f"write of {key} refused")
        self.writes.append(key)
        super().set(key, value)

    def delete(self, key):
        if self.fail_delete:
            raise StoreError(f"delete of {key} refused")
        super().delete(key)


@pytest.fixture(autouse=True)
def settings_file(tmp_path, monkeypatch):
    """Every test gets its own settings.json."""
    path = tmp_path / "config" / "settings.json"
    monkeypatch.setattr(config_store, "SETTINGS_FILE", path)
    return path


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "data" / "pos.db"
    yield path
    db.close_engine()


@pytest.fixture
def sqlite_store(db_path):
    return SqliteStore(db_path)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def menu():
    return MenuCatalog(
        [
            MenuCatalogEntry("butter-chicken", "Butter Chicken", "mains", 360),
            MenuCatalogEntry("dal-makhani", "Dal Makhani", "mains", 280),
            MenuCatalogEntry("garlic-naan", "Garlic Naan", "breads", 60, "Tandoor baked"),
            MenuCatalogEntry("masala-chaas", "Masala Chaas", "beverages", 80),
            MenuCatalogEntry("gulab-jamun", "Gulab Jamun", "desserts", 5),
        ]
    )


@pytest.fixture
def tables():
    return TableCatalog(
        [
            TableRecord(1, "Table 1", 4, "garden"),
            TableRecord(2, "Table 2", 2, "garden"),
            TableRecord(3, "Table 3", 6, "roof"),
        ]
    )


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorded(events):
    """Collect every engine event as ``(name, args)`` tuples."""
    from ruralbites_pos.core import bus as bus_module

    seen = []
    names = [
        bus_module.DRAFT_SAVED,
        bus_module.DRAFT_SAVE_FAILED,
        bus_module.DRAFT_LOAD_FAILED,
        bus_module.HISTORY_LOAD_FAILED,
        bus_module.BILL_FINALIZED,
        bus_module.BILL_SAVE_FAILED,
        bus_module.TABLE_STATE_CHANGED,
        bus_module.TABLE_TOTAL_CHANGED,
    ]
    for name in names:
        events.subscribe(name, lambda *args, _name=name: seen.append((_name, args)))
    return seen


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 3, 1, 19, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_manager(menu, tables, events, fixed_clock):
    def _make(store):
        return OrderManager(menu, tables, store, clock=fixed_clock, events=events)

    return _make


@pytest.fixture
def manager(make_manager, memory_store):
    return make_manager(memory_store)
