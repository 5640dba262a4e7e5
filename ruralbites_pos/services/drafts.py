"""Live per-table order drafts and their persisted layout.

A draft is persisted as ``{"items": {item_id: qty}, "order": [item_id, ...]}``
where the front of ``order`` is the most recently touched item. Older floor
tablets stored the bare ``items`` mapping; :func:`parse_draft_payload` reads
both layouts and every write uses the wrapped one.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..core.store import KeyValueStore

logger = logging.getLogger(__name__)

SHAPE_LEGACY = 1
SHAPE_WRAPPED = 2

DEFAULT_KEY_PREFIX = "rural-bites-table-"


class DraftFormatError(ValueError):
    """A persisted draft payload could not be understood."""


@dataclass(frozen=True)
class OrderDraft:
    table_id: int
    items: Dict[str, int] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(self.items.values())

    def to_payload(self) -> dict:
        return {"items": dict(self.items), "order": list(self.order)}


def apply_delta(draft: OrderDraft, item_id: str, delta: int) -> OrderDraft:
    """Return a new draft with ``delta`` applied to ``item_id``.

    Quantities never go below zero and an item reaching zero leaves both
    ``items`` and ``order``. An increment moves the item to the front; an item
    seen for the first time is inserted at the front; a decrement that keeps
    the item keeps its position.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise TypeError(f"delta must be an integer, got {delta!r}")

    current = draft.items.get(item_id, 0)
    next_count = max(0, current + delta)

    items = dict(draft.items)
    if next_count == 0:
        items.pop(item_id, None)
    else:
        items[item_id] = next_count

    others = [existing for existing in draft.order if existing != item_id and existing in items]
    if next_count > 0 and (delta > 0 or item_id not in draft.order):
        order = [item_id, *others]
    elif next_count > 0:
        order = [existing for existing in draft.order if existing in items]
    else:
        order = others

    return OrderDraft(table_id=draft.table_id, items=items, order=order)


def _coerce_quantity(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def detect_shape(payload: Any) -> int:
    if not isinstance(payload, dict):
        raise DraftFormatError(f"draft payload must be an object, got {type(payload).__name__}")
    return SHAPE_WRAPPED if "items" in payload else SHAPE_LEGACY


def parse_draft_payload(table_id: int, raw: Any) -> OrderDraft:
    """Normalize either persisted layout into an :class:`OrderDraft`.

    ``raw`` may be JSON text or an already decoded object. Entries with
    non-positive or non-integer quantities are dropped, ``order`` is reduced
    to known ids without duplicates, and ids missing from ``order`` are
    appended in mapping order.
    """
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DraftFormatError(f"draft for table {table_id} is not valid JSON") from exc
    else:
        payload = raw

    shape = detect_shape(payload)
    if shape == SHAPE_WRAPPED:
        raw_items = payload.get("items")
        raw_order = payload.get("order")
        if not isinstance(raw_items, dict):
            raise DraftFormatError(f"draft items for table {table_id} must be an object")
    else:
        raw_items = payload
        raw_order = None

    items: Dict[str, int] = {}
    for item_id, value in raw_items.items():
        quantity = _coerce_quantity(value)
        if quantity is None or quantity <= 0:
            continue
        items[str(item_id)] = quantity

    order: List[str] = []
    if isinstance(raw_order, list):
        for item_id in raw_order:
            if isinstance(item_id, str) and item_id in items and item_id not in order:
                order.append(item_id)
    for item_id in items:
        if item_id not in order:
            order.append(item_id)

    return OrderDraft(table_id=table_id, items=items, order=order)


class DraftStore:
    """Per-table draft persistence over a :class:`KeyValueStore`."""

    __slots__ = ("store", "key_prefix")

    def __init__(self, store: KeyValueStore, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self.store = store
        self.key_prefix = key_prefix

    def key_for(self, table_id: int) -> str:
        return f"{self.key_prefix}{table_id}"

    def load(self, table_id: int) -> Optional[OrderDraft]:
        """Read the draft for ``table_id``; ``StoreError`` propagates.

        A payload that cannot be parsed is logged and treated as absent.
        """
        raw = self.store.get(self.key_for(table_id))
        if raw is None:
            return None
        try:
            draft = parse_draft_payload(table_id, raw)
        except DraftFormatError:
            logger.warning("Ignoring unreadable draft for table %s", table_id, exc_info=True)
            return None
        return draft

    def save(self, draft: OrderDraft) -> None:
        self.store.set(self.key_for(draft.table_id), json.dumps(draft.to_payload(), ensure_ascii=False))

    def delete(self, table_id: int) -> None:
        self.store.delete(self.key_for(table_id))


def items_snapshot(items: Mapping[str, int]) -> Dict[str, int]:
    return {str(item_id): int(qty) for item_id, qty in items.items() if int(qty) > 0}
