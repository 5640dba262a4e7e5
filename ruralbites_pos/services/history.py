"""Append-only log of finalized bills, newest first."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, List, Mapping, Optional
from uuid import uuid4

from ..core.store import KeyValueStore, StoreError
from .drafts import items_snapshot
from .totals import Totals

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_KEY = "rural-bites-history"


class HistoryFormatError(StoreError):
    """The persisted history record is not a list of bills."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_created_at(payload: Mapping[str, Any]) -> datetime:
    raw = payload.get("createdAt")
    if raw:
        created = datetime.fromisoformat(str(raw))
        return created if created.tzinfo else created.replace(tzinfo=timezone.utc)
    # Tablet-era entries carry epoch milliseconds.
    millis = payload.get("timestamp")
    if isinstance(millis, (int, float)) and not isinstance(millis, bool):
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    raise ValueError("bill has no creation time")


@dataclass(frozen=True, slots=True)
class BillHistoryEntry:
    table_id: int
    items: Mapping[str, int]
    totals: Totals
    created_at: datetime = field(default_factory=_utc_now)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    bill_id: str = field(default_factory=lambda: uuid4().hex)
    staff: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", MappingProxyType(items_snapshot(self.items)))

    def to_payload(self) -> dict:
        payload = {
            "billId": self.bill_id,
            "tableId": self.table_id,
            "items": dict(self.items),
            "totals": self.totals.to_payload(),
            "createdAt": self.created_at.isoformat(),
            "staff": self.staff,
        }
        if self.customer_name:
            payload["customerName"] = self.customer_name
        if self.customer_phone:
            payload["customerPhone"] = self.customer_phone
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BillHistoryEntry":
        table_id = payload["tableId"]
        if isinstance(table_id, bool) or not isinstance(table_id, int):
            raise ValueError(f"bill has invalid table id: {table_id!r}")
        items = payload.get("items") or {}
        if not isinstance(items, dict):
            raise ValueError("bill items must be an object")
        return cls(
            table_id=table_id,
            items=items,
            totals=Totals.from_payload(payload.get("totals") or {}),
            created_at=_parse_created_at(payload),
            customer_name=payload.get("customerName") or None,
            customer_phone=payload.get("customerPhone") or None,
            bill_id=str(payload.get("billId") or uuid4().hex),
            staff=str(payload.get("staff") or ""),
        )


class BillHistoryStore:
    """Single persisted record holding every finalized bill, newest first."""

    __slots__ = ("store", "key")

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_HISTORY_KEY) -> None:
        self.store = store
        self.key = key

    def _load_raw(self) -> list:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise HistoryFormatError("bill history is not valid JSON") from exc
        if not isinstance(data, list):
            raise HistoryFormatError(f"bill history must be a list, got {type(data).__name__}")
        return data

    def entries(self) -> List[BillHistoryEntry]:
        out: List[BillHistoryEntry] = []
        for index, payload in enumerate(self._load_raw()):
            try:
                out.append(BillHistoryEntry.from_payload(payload))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed bill at position %d", index, exc_info=True)
        return out

    def latest_for_table(self, table_id: int) -> Optional[BillHistoryEntry]:
        for entry in self.entries():
            if entry.table_id == table_id:
                return entry
        return None

    def for_table(self, table_id: int) -> List[BillHistoryEntry]:
        return [entry for entry in self.entries() if entry.table_id == table_id]

    def prepend(self, entry: BillHistoryEntry) -> None:
        """Write ``entry`` at the front; the rest of the record is untouched."""
        existing = self._load_raw()
        existing.insert(0, entry.to_payload())
        self.store.set(self.key, json.dumps(existing, ensure_ascii=False))

    def __len__(self) -> int:
        return len(self._load_raw())
