"""Per-table order lifecycle: hydrate, adjust quantities, finalize the bill.

The manager is the only writer of the draft and history records. Every
mutation replaces the whole draft record, and a checkout writes the bill
before it removes the draft so a failed write never loses an order.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Union

from sqlalchemy.exc import SQLAlchemyError

from ..core.bus import (
    BILL_FINALIZED,
    BILL_SAVE_FAILED,
    DRAFT_LOAD_FAILED,
    DRAFT_SAVE_FAILED,
    DRAFT_SAVED,
    HISTORY_LOAD_FAILED,
    TABLE_STATE_CHANGED,
    TABLE_TOTAL_CHANGED,
    EventBus,
    bus,
)
from ..core.config_store import get_config_value
from ..core.db import log_action
from ..core.money import to_rate
from ..core.store import KeyValueStore, SqliteStore, StoreError
from .catalog import MenuCatalog, TableCatalog, TableRecord
from .drafts import DEFAULT_KEY_PREFIX, DraftStore, OrderDraft, apply_delta
from .history import DEFAULT_HISTORY_KEY, BillHistoryEntry, BillHistoryStore
from .totals import DEFAULT_TAX_RATE, Totals, compute_totals

logger = logging.getLogger(__name__)

CHECKOUT_FINALIZED = "finalized"
CHECKOUT_EMPTY = "empty"
CHECKOUT_READ_ONLY = "read_only"
CHECKOUT_SAVE_FAILED = "save_failed"
CHECKOUT_LOAD_FAILED = "load_failed"


class TableNotFoundError(LookupError):
    """The table id is not part of the floor plan."""

    def __init__(self, table_id) -> None:
        super().__init__(f"table {table_id!r} not found")
        self.table_id = table_id


@dataclass(frozen=True, slots=True)
class EditableHydration:
    draft: OrderDraft

    editable = True

    @property
    def table_id(self) -> int:
        return self.draft.table_id

    @property
    def items(self) -> Dict[str, int]:
        return dict(self.draft.items)

    @property
    def order(self) -> List[str]:
        return list(self.draft.order)


@dataclass(frozen=True, slots=True)
class ReadOnlyHydration:
    """Replay of the latest finalized bill for a table with no live draft."""

    entry: BillHistoryEntry

    editable = False

    @property
    def table_id(self) -> int:
        return self.entry.table_id

    @property
    def items(self) -> Dict[str, int]:
        return dict(self.entry.items)

    @property
    def order(self) -> List[str]:
        return list(self.entry.items)

    @property
    def discount(self) -> int:
        return self.entry.totals.discount_applied

    @property
    def customer_name(self) -> Optional[str]:
        return self.entry.customer_name

    @property
    def customer_phone(self) -> Optional[str]:
        return self.entry.customer_phone


@dataclass(frozen=True, slots=True)
class EmptyHydration:
    table_id: int

    editable = True

    @property
    def items(self) -> Dict[str, int]:
        return {}

    @property
    def order(self) -> List[str]:
        return []


Hydration = Union[EditableHydration, ReadOnlyHydration, EmptyHydration]


@dataclass(frozen=True, slots=True)
class MutationResult:
    applied: bool
    saved: bool
    hydration: Hydration


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    status: str
    entry: Optional[BillHistoryEntry] = None
    draft_cleared: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CHECKOUT_FINALIZED


@dataclass(frozen=True, slots=True)
class OrderLine:
    item_id: str
    name: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_text(value: Optional[str]) -> Optional[str]:
    cleaned = (value or "").strip()
    return cleaned or None


class OrderManager:
    __slots__ = (
        "menu",
        "tables",
        "store",
        "drafts",
        "history",
        "tax_rate",
        "events",
        "_clock",
        "_sessions",
        "_unsaved",
        "_pending_clear",
        "_load_failed",
    )

    def __init__(
        self,
        menu: MenuCatalog,
        tables: TableCatalog,
        store: KeyValueStore,
        *,
        tax_rate=None,
        clock: Optional[Callable[[], datetime]] = None,
        draft_key_prefix: Optional[str] = None,
        history_key: Optional[str] = None,
        events: EventBus = bus,
    ) -> None:
        self.menu = menu
        self.tables = tables
        self.store = store
        self.drafts = DraftStore(
            store,
            draft_key_prefix or get_config_value("draft_key_prefix", DEFAULT_KEY_PREFIX),
        )
        self.history = BillHistoryStore(
            store,
            history_key or get_config_value("history_key", DEFAULT_HISTORY_KEY),
        )
        if tax_rate is None:
            tax_rate = get_config_value("tax_rate", DEFAULT_TAX_RATE)
        self.tax_rate = to_rate(tax_rate)
        self.events = events
        self._clock = clock or _utc_now
        self._sessions: Dict[int, Hydration] = {}
        self._unsaved: Set[int] = set()        # last draft write failed
        self._pending_clear: Set[int] = set()  # billed, draft delete failed
        self._load_failed: Set[int] = set()   # stored draft could not be read

    # ----- lookups -----
    def _require_table(self, table_id: int) -> TableRecord:
        table = self.tables.get_table(table_id)
        if table is None:
            raise TableNotFoundError(table_id)
        return table

    def _session(self, table_id: int) -> Hydration:
        session = self._sessions.get(table_id)
        if session is None or table_id in self._load_failed:
            session = self.hydrate(table_id)
        return session

    def _blocked_by_unread_draft(self, table_id: int, session: Hydration) -> bool:
        # Writing from an empty session would replace a stored order we never saw.
        return table_id in self._load_failed and isinstance(session, EmptyHydration)

    # ----- persistence -----
    def _persist(self, draft: OrderDraft) -> bool:
        try:
            self.drafts.save(draft)
        except StoreError as exc:
            logger.warning("Could not save draft for table %s: %s", draft.table_id, exc)
            self._unsaved.add(draft.table_id)
            self.events.emit(DRAFT_SAVE_FAILED, draft.table_id, exc)
            return False
        self._unsaved.discard(draft.table_id)
        # The stored record is now this draft, not the billed one awaiting deletion.
        self._pending_clear.discard(draft.table_id)
        self.events.emit(DRAFT_SAVED, draft.table_id, draft)
        return True

    def _retry_pending_clear(self, table_id: int) -> bool:
        if table_id not in self._pending_clear:
            return True
        try:
            self.drafts.delete(table_id)
        except StoreError as exc:
            logger.warning("Draft for billed table %s still not cleared: %s", table_id, exc)
            return False
        self._pending_clear.discard(table_id)
        return True

    def _audit_bill(self, entry: BillHistoryEntry) -> None:
        if not isinstance(self.store, SqliteStore):
            return
        try:
            log_action(
                entry.staff or "system",
                "finalize_bill",
                "table",
                str(entry.table_id),
                None,
                str(entry.totals.grand_total),
                entry.bill_id,
                db_path=self.store.db_path,
            )
        except (sqlite3.Error, SQLAlchemyError):
            logger.warning("Could not write audit row for bill %s", entry.bill_id, exc_info=True)

    # ----- hydrate -----
    def hydrate(self, table_id: int) -> Hydration:
        """Load what the table should show.

        A live draft wins; otherwise the newest bill for the table is replayed
        read-only; otherwise the table starts empty. A table whose last draft
        write failed keeps its in-memory draft. A table whose draft could not
        be read is re-read before any change is written over it.
        """
        self._require_table(table_id)

        cached = self._sessions.get(table_id)
        if table_id in self._unsaved and isinstance(cached, EditableHydration):
            self._persist(cached.draft)
            return cached

        draft: Optional[OrderDraft] = None
        if self._retry_pending_clear(table_id):
            try:
                draft = self.drafts.load(table_id)
            except StoreError as exc:
                logger.warning("Could not read draft for table %s: %s", table_id, exc)
                self._load_failed.add(table_id)
                self.events.emit(DRAFT_LOAD_FAILED, table_id, exc)
                session = cached or EmptyHydration(table_id)
                self._sessions[table_id] = session
                return session
            self._load_failed.discard(table_id)

        if draft is not None:
            session = EditableHydration(draft)
        else:
            try:
                entry = self.history.latest_for_table(table_id)
            except StoreError as exc:
                logger.warning("Could not read bill history: %s", exc)
                self.events.emit(HISTORY_LOAD_FAILED, exc)
                entry = None
            session = ReadOnlyHydration(entry) if entry is not None else EmptyHydration(table_id)

        self._sessions[table_id] = session
        return session

    def start_new_order(self, table_id: int) -> Hydration:
        """Leave bill replay so a new sitting can order; writes nothing."""
        self._require_table(table_id)
        session = self._session(table_id)
        if isinstance(session, EditableHydration):
            return session
        session = EmptyHydration(table_id)
        self._sessions[table_id] = session
        return session

    # ----- quantities -----
    def adjust_quantity(self, table_id: int, item_id: str, delta: int) -> MutationResult:
        self._require_table(table_id)
        session = self._session(table_id)
        if isinstance(session, ReadOnlyHydration):
            return MutationResult(applied=False, saved=True, hydration=session)
        if self._blocked_by_unread_draft(table_id, session):
            return MutationResult(applied=False, saved=False, hydration=session)

        current = session.draft if isinstance(session, EditableHydration) else OrderDraft(table_id)
        updated = apply_delta(current, item_id, delta)
        if updated == current:
            return MutationResult(applied=False, saved=table_id not in self._unsaved, hydration=session)

        hydrated = EditableHydration(updated)
        self._sessions[table_id] = hydrated
        saved = self._persist(updated)

        if current.is_empty and not updated.is_empty:
            self.events.emit(TABLE_STATE_CHANGED, table_id, "occupied")
        self.events.emit(TABLE_TOTAL_CHANGED, table_id, self.totals(table_id).grand_total)
        return MutationResult(applied=True, saved=saved, hydration=hydrated)

    def add_item(self, table_id: int, item_id: str) -> MutationResult:
        return self.adjust_quantity(table_id, item_id, 1)

    def save_draft(self, table_id: int) -> bool:
        """Write the live draft again, e.g. after a "could not save" signal."""
        self._require_table(table_id)
        session = self._session(table_id)
        if isinstance(session, ReadOnlyHydration):
            return False
        if isinstance(session, EmptyHydration):
            return not self._blocked_by_unread_draft(table_id, session)
        return self._persist(session.draft)

    # ----- derived views -----
    def totals(self, table_id: int, discount: int = 0) -> Totals:
        self._require_table(table_id)
        session = self._session(table_id)
        if isinstance(session, ReadOnlyHydration):
            return session.entry.totals
        return compute_totals(session.items, self.menu, discount, self.tax_rate)

    def item_count(self, table_id: int) -> int:
        self._require_table(table_id)
        return sum(self._session(table_id).items.values())

    def order_lines(self, table_id: int) -> List[OrderLine]:
        self._require_table(table_id)
        session = self._session(table_id)
        items = session.items
        lines: List[OrderLine] = []
        for item_id in session.order:
            entry = self.menu.get_item(item_id)
            lines.append(
                OrderLine(
                    item_id=item_id,
                    name=entry.name if entry else item_id,
                    quantity=items[item_id],
                    unit_price=entry.unit_price if entry else 0,
                )
            )
        return lines

    # ----- checkout -----
    def finalize(
        self,
        table_id: int,
        discount: int = 0,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        *,
        staff: str = "",
    ) -> CheckoutResult:
        """Move the table's draft into bill history.

        The bill is written first; the draft is deleted only after that write
        succeeds. A failed delete is retried on the next hydrate.
        """
        self._require_table(table_id)
        session = self._session(table_id)
        if isinstance(session, ReadOnlyHydration):
            return CheckoutResult(CHECKOUT_READ_ONLY)
        if self._blocked_by_unread_draft(table_id, session):
            return CheckoutResult(CHECKOUT_LOAD_FAILED, error=f"order for table {table_id} could not be read")
        if not isinstance(session, EditableHydration) or session.draft.is_empty:
            return CheckoutResult(CHECKOUT_EMPTY)

        draft = session.draft
        entry = BillHistoryEntry(
            table_id=table_id,
            items={item_id: draft.items[item_id] for item_id in draft.order},
            totals=compute_totals(draft.items, self.menu, discount, self.tax_rate),
            created_at=self._clock(),
            customer_name=_clean_text(customer_name),
            customer_phone=_clean_text(customer_phone),
            staff=staff,
        )

        try:
            self.history.prepend(entry)
        except StoreError as exc:
            logger.warning("Could not save bill for table %s: %s", table_id, exc)
            self.events.emit(BILL_SAVE_FAILED, table_id, exc)
            return CheckoutResult(CHECKOUT_SAVE_FAILED, error=str(exc))

        draft_cleared = True
        try:
            self.drafts.delete(table_id)
        except StoreError as exc:
            logger.warning("Bill saved but draft for table %s not cleared: %s", table_id, exc)
            self._pending_clear.add(table_id)
            draft_cleared = False

        self._unsaved.discard(table_id)
        self._sessions[table_id] = ReadOnlyHydration(entry)
        self._audit_bill(entry)

        self.events.emit(BILL_FINALIZED, table_id, entry)
        self.events.emit(TABLE_STATE_CHANGED, table_id, "free")
        self.events.emit(TABLE_TOTAL_CHANGED, table_id, 0)
        return CheckoutResult(CHECKOUT_FINALIZED, entry=entry, draft_cleared=draft_cleared)
