"""Command-line bootstrap for the Rural Bites floor-service backend."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional

from .core.auth import current_session, login, logout
from .core.db import maybe_run_integrity_check
from .core.store import SqliteStore, StoreError
from .services.backup import backup_now, ensure_daily_backup
from .services.catalog import CATEGORY_LABELS, TABLE_ZONES, default_menu, default_tables
from .services.orders import (
    CHECKOUT_EMPTY,
    CHECKOUT_READ_ONLY,
    EmptyHydration,
    OrderManager,
    ReadOnlyHydration,
    TableNotFoundError,
)
from .services.printer import PrinterService
from .utils.currency import format_rupees

logger = logging.getLogger("ruralbites_pos")

_PUBLIC_COMMANDS = {"login", "logout", "tables", "menu", "backup"}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ruralbites-pos", description="Rural Bites table ordering and billing.")
    p.add_argument("-v", "--verbose", action="store_true", help="log progress to stderr")
    sub = p.add_subparsers(dest="command", required=True)

    p_login = sub.add_parser("login", help="sign in on this device")
    p_login.add_argument("username")
    p_login.add_argument("password")
    sub.add_parser("logout", help="end the staff session")

    p_tables = sub.add_parser("tables", help="list tables")
    p_tables.add_argument("--zone", default="all", choices=("all",) + TABLE_ZONES)

    p_menu = sub.add_parser("menu", help="list or search the menu")
    p_menu.add_argument("--category", default="all", choices=sorted(CATEGORY_LABELS))
    p_menu.add_argument("--search", default="")

    p_show = sub.add_parser("show", help="show a table's order and totals")
    p_show.add_argument("table", type=int)
    p_show.add_argument("--discount", type=int, default=0)

    p_add = sub.add_parser("add", help="add one of an item to a table")
    p_add.add_argument("table", type=int)
    p_add.add_argument("item")
    p_add.add_argument("--new-sitting", action="store_true", help="start a fresh order after a finalized bill")

    p_adjust = sub.add_parser("adjust", help="change an item's quantity by DELTA")
    p_adjust.add_argument("table", type=int)
    p_adjust.add_argument("item")
    p_adjust.add_argument("delta", type=int)

    p_kot = sub.add_parser("kot", help="print a kitchen order ticket")
    p_kot.add_argument("table", type=int)

    p_checkout = sub.add_parser("checkout", help="finalize the bill for a table")
    p_checkout.add_argument("table", type=int)
    p_checkout.add_argument("--discount", type=int, default=0)
    p_checkout.add_argument("--name", default=None)
    p_checkout.add_argument("--phone", default=None)
    p_checkout.add_argument("--print", action="store_true", dest="do_print", help="render the bill PDF")

    p_history = sub.add_parser("history", help="list finalized bills, newest first")
    p_history.add_argument("--table", type=int, default=None)

    sub.add_parser("backup", help="back up the database now")
    return p


def _print_order(manager: OrderManager, table_id: int, discount: int = 0) -> None:
    session = manager.hydrate(table_id)
    table = manager.tables.get_table(table_id)
    mode = "last bill (read-only)" if isinstance(session, ReadOnlyHydration) else "open order"
    print(f"{table.name} · seats {table.seats} · {table.zone} · {mode}")
    lines = manager.order_lines(table_id)
    if not lines:
        print("  (no items)")
    for line in lines:
        print(f"  {line.quantity:>3} × {line.name:<28} {format_rupees(line.line_total):>10}")
    if isinstance(session, ReadOnlyHydration):
        if session.customer_name:
            print(f"  Guest: {session.customer_name} {session.customer_phone or ''}".rstrip())
    totals = manager.totals(table_id, discount)
    print(f"  Items: {manager.item_count(table_id)}")
    print(f"  Subtotal {format_rupees(totals.subtotal)} · Tax {format_rupees(totals.tax)}"
          f" · Discount -{format_rupees(totals.discount_applied)} · Total {format_rupees(totals.grand_total)}")


def _cmd_tables(manager: OrderManager, args) -> int:
    for table in manager.tables.list_tables(args.zone):
        count = manager.item_count(table.id)
        state = f"{count} item{'' if count == 1 else 's'}" if count else "free"
        print(f"{table.id:>2}  {table.name:<9} seats {table.seats}  {table.zone:<12} {state}")
    return 0


def _cmd_menu(manager: OrderManager, args) -> int:
    items = manager.menu.search(args.search, args.category)
    for item in items:
        print(f"{item.id:<16} {item.name:<26} {CATEGORY_LABELS[item.category]:<12} {format_rupees(item.unit_price):>7}")
    if not items:
        print("No dishes match your filters.")
    return 0


def _cmd_show(manager: OrderManager, args) -> int:
    _print_order(manager, args.table, args.discount)
    return 0


def _cmd_add(manager: OrderManager, args) -> int:
    if args.item not in manager.menu:
        print(f"Unknown menu item: {args.item}", file=sys.stderr)
        return 2
    if args.new_sitting:
        manager.start_new_order(args.table)
    result = manager.add_item(args.table, args.item)
    return _report_mutation(manager, args.table, result)


def _cmd_adjust(manager: OrderManager, args) -> int:
    if args.delta > 0 and args.item not in manager.menu:
        print(f"Unknown menu item: {args.item}", file=sys.stderr)
        return 2
    result = manager.adjust_quantity(args.table, args.item, args.delta)
    return _report_mutation(manager, args.table, result)


def _report_mutation(manager: OrderManager, table_id: int, result) -> int:
    if isinstance(result.hydration, ReadOnlyHydration):
        print(f"Table {table_id} shows its last bill; use 'add --new-sitting' to start a new order.")
        return 1
    if isinstance(result.hydration, EmptyHydration) and not result.saved:
        print(f"Could not read the order for table {table_id}; nothing was changed.", file=sys.stderr)
        return 1
    if not result.saved:
        print("Could not save the order; it is kept for this session only.", file=sys.stderr)
    _print_order(manager, table_id)
    return 0


def _cmd_kot(manager: OrderManager, args) -> int:
    session = manager.hydrate(args.table)
    lines = manager.order_lines(args.table)
    if not lines or isinstance(session, ReadOnlyHydration):
        print("Nothing to send to the kitchen.")
        return 1
    path = PrinterService(manager.menu).print_kitchen_ticket(manager.tables.get_table(args.table), lines)
    print(f"Kitchen ticket saved to {path}")
    return 0


def _cmd_checkout(manager: OrderManager, args, staff: str = "") -> int:
    result = manager.finalize(args.table, args.discount, args.name, args.phone, staff=staff)
    if result.status == CHECKOUT_EMPTY:
        print("Nothing to bill: the order is empty.")
        return 1
    if result.status == CHECKOUT_READ_ONLY:
        print("This table has no open order; its last bill is already saved.")
        return 1
    if not result.ok:
        print(f"Could not save the bill, the order is unchanged: {result.error}", file=sys.stderr)
        return 1
    totals = result.entry.totals
    print(f"Bill {result.entry.bill_id[:8]} saved · Total {format_rupees(totals.grand_total)}")
    if not result.draft_cleared:
        print("Warning: the open order could not be cleared and will be removed on next use.", file=sys.stderr)
    if args.do_print:
        path = PrinterService(manager.menu).print_bill(result.entry, manager.tables.get_table(args.table))
        print(f"Bill PDF saved to {path}")
    return 0


def _cmd_history(manager: OrderManager, args) -> int:
    entries = manager.history.for_table(args.table) if args.table else manager.history.entries()
    for entry in entries:
        guest = f" · {entry.customer_name}" if entry.customer_name else ""
        when = entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M")
        print(f"{when}  Table {entry.table_id}  {format_rupees(entry.totals.grand_total):>8}{guest}")
    if not entries:
        print("No bills yet.")
    return 0


_HANDLERS: Dict[str, Callable] = {
    "tables": _cmd_tables,
    "menu": _cmd_menu,
    "show": _cmd_show,
    "add": _cmd_add,
    "adjust": _cmd_adjust,
    "kot": _cmd_kot,
    "history": _cmd_history,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = SqliteStore()
    except StoreError as exc:
        print(f"Storage unavailable: {exc}", file=sys.stderr)
        return 1

    if args.command == "backup":
        print(f"Backup written to {backup_now()}")
        return 0

    ensure_daily_backup()
    ok, result = maybe_run_integrity_check()
    if not ok:
        logger.warning("Database integrity check failed: %s", result)

    if args.command == "login":
        session = login(store, args.username, args.password)
        if session is None:
            print("The username or password does not match our records.", file=sys.stderr)
            return 1
        print(f"Signed in as {session.username}")
        return 0
    if args.command == "logout":
        logout(store)
        print("Signed out")
        return 0

    session = current_session(store)
    if args.command not in _PUBLIC_COMMANDS and session is None:
        print("Please sign in first: ruralbites-pos login USER PASSWORD", file=sys.stderr)
        return 1

    manager = OrderManager(default_menu(), default_tables(), store)
    try:
        if args.command == "checkout":
            return _cmd_checkout(manager, args, staff=session.username)
        return _HANDLERS[args.command](manager, args)
    except TableNotFoundError as exc:
        print(f"Not found: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
