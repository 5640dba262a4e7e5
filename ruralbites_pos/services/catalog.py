"""Read-only menu and floor-plan catalogs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

MENU_CATEGORIES: Tuple[str, ...] = ("starters", "mains", "breads", "desserts", "beverages")
CATEGORY_LABELS: Dict[str, str] = {
    "all": "All",
    "starters": "Starters",
    "mains": "Main Course",
    "breads": "Breads",
    "desserts": "Desserts",
    "beverages": "Beverages",
}
TABLE_ZONES: Tuple[str, ...] = ("garden", "family-hall", "roof", "floor-1")


@dataclass(frozen=True, slots=True)
class MenuCatalogEntry:
    id: str
    name: str
    category: str
    unit_price: int
    description: str = ""
    signature: bool = False
    chef_special: bool = False


@dataclass(frozen=True, slots=True)
class TableRecord:
    id: int
    name: str
    seats: int
    zone: str


class MenuCatalog:
    __slots__ = ("_items", "_by_id")

    def __init__(self, items: Iterable[MenuCatalogEntry]) -> None:
        ordered: List[MenuCatalogEntry] = []
        by_id: Dict[str, MenuCatalogEntry] = {}
        for item in items:
            if not item.id:
                raise ValueError("menu item id is required")
            if item.id in by_id:
                raise ValueError(f"duplicate menu item id: {item.id}")
            if item.category not in MENU_CATEGORIES:
                raise ValueError(f"unknown menu category: {item.category}")
            if isinstance(item.unit_price, bool) or not isinstance(item.unit_price, int) or item.unit_price < 0:
                raise ValueError(f"invalid price for {item.id}: {item.unit_price!r}")
            ordered.append(item)
            by_id[item.id] = item
        self._items: Tuple[MenuCatalogEntry, ...] = tuple(ordered)
        self._by_id = by_id

    def get_item(self, item_id: str) -> Optional[MenuCatalogEntry]:
        return self._by_id.get(item_id)

    def list_items(self) -> Tuple[MenuCatalogEntry, ...]:
        return self._items

    def categories(self) -> List[str]:
        present = {item.category for item in self._items}
        return [category for category in MENU_CATEGORIES if category in present]

    def search(self, term: str = "", category: str = "all") -> List[MenuCatalogEntry]:
        """Filter by category and a case-insensitive name/description match."""
        needle = (term or "").strip().lower()
        results = []
        for item in self._items:
            if category != "all" and item.category != category:
                continue
            if needle and needle not in item.name.lower() and needle not in item.description.lower():
                continue
            results.append(item)
        return results

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id


class TableCatalog:
    __slots__ = ("_tables", "_by_id")

    def __init__(self, tables: Iterable[TableRecord]) -> None:
        ordered: List[TableRecord] = []
        by_id: Dict[int, TableRecord] = {}
        for table in tables:
            if isinstance(table.id, bool) or not isinstance(table.id, int) or table.id <= 0:
                raise ValueError(f"table id must be a positive integer: {table.id!r}")
            if table.id in by_id:
                raise ValueError(f"duplicate table id: {table.id}")
            if table.zone not in TABLE_ZONES:
                raise ValueError(f"unknown table zone: {table.zone}")
            ordered.append(table)
            by_id[table.id] = table
        self._tables: Tuple[TableRecord, ...] = tuple(ordered)
        self._by_id = by_id

    def get_table(self, table_id: int) -> Optional[TableRecord]:
        return self._by_id.get(table_id)

    def list_tables(self, zone: Optional[str] = None) -> List[TableRecord]:
        if zone in (None, "all"):
            return list(self._tables)
        return [table for table in self._tables if table.zone == zone]

    def zones(self) -> List[str]:
        seen: List[str] = []
        for table in self._tables:
            if table.zone not in seen:
                seen.append(table.zone)
        return seen

    def __len__(self) -> int:
        return len(self._tables)


def default_menu() -> MenuCatalog:
    return MenuCatalog(
        [
            MenuCatalogEntry(
                "ragi-poppers",
                "Millet Ragi Poppers",
                "starters",
                180,
                "Crispy village millet bites with tamarind chutney.",
                signature=True,
            ),
            MenuCatalogEntry(
                "smoked-paneer",
                "Smoked Tandoor Paneer",
                "starters",
                240,
                "Charred paneer skewers brushed with forest honey glaze.",
            ),
            MenuCatalogEntry(
                "mahua-curry",
                "Mahua Blossom Curry",
                "mains",
                320,
                "Slow braised seasonal vegetables in mahua flower broth.",
                chef_special=True,
            ),
            MenuCatalogEntry(
                "millet-thali",
                "Village Millet Thali",
                "mains",
                360,
                "Seasonal millet platter with dal, sabzi and pickles.",
            ),
            MenuCatalogEntry(
                "makki-roti",
                "Makki Roti",
                "breads",
                90,
                "Hand-rolled corn rotis brushed with white butter.",
            ),
            MenuCatalogEntry(
                "desi-ghee-naan",
                "Desi Ghee Garlic Naan",
                "breads",
                110,
                "Wood-fired naan with roasted garlic and herbs.",
            ),
            MenuCatalogEntry(
                "date-kheer",
                "Stone Pot Date Kheer",
                "desserts",
                220,
                "Khajur-studded milk pudding topped with nuts.",
                signature=True,
            ),
            MenuCatalogEntry(
                "nalbari-tea",
                "Nalbari Smoked Tea",
                "beverages",
                140,
                "Assam smoked tea served with jaggery crystals.",
            ),
            MenuCatalogEntry(
                "buttermilk",
                "Kutchi Chaas",
                "beverages",
                120,
                "Spiced buttermilk with roasted cumin and coriander.",
            ),
        ]
    )


def default_tables() -> TableCatalog:
    layout = [
        (1, 4, "garden"),
        (2, 6, "garden"),
        (3, 2, "family-hall"),
        (4, 4, "family-hall"),
        (5, 8, "roof"),
        (6, 6, "roof"),
        (7, 4, "floor-1"),
        (8, 4, "floor-1"),
    ]
    return TableCatalog(TableRecord(id=tid, name=f"Table {tid}", seats=seats, zone=zone) for tid, seats, zone in layout)
