"""Bill and kitchen-order tickets rendered to narrow-roll PDF files."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from reportlab.lib.pagesizes import portrait
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from ..core.config_store import get_config_value
from ..core.paths import PRINTS_DIR
from ..utils.currency import format_rupees
from .catalog import MenuCatalog, TableRecord
from .history import BillHistoryEntry

logger = logging.getLogger(__name__)

_FONT_NAME = "Helvetica"
_TICKET_FONT = "RuralBitesFont"
# Fonts with a rupee glyph; Helvetica falls back to "Rs".
_FONT_CANDIDATES = [
    "DejaVuSans.ttf",
    "dejavusans.ttf",
    "NotoSans-Regular.ttf",
    "arialuni.ttf",
    "segoeui.ttf",
]
_RULE = "-" * 30


def _font_search_paths() -> List[Path]:
    paths: List[Path] = []
    if sys.platform.startswith("win"):
        windir = Path(os.environ.get("WINDIR", r"C:\\Windows"))
        paths.append(windir / "Fonts")
    else:
        paths.extend(
            [
                Path.home() / ".fonts",
                Path("/usr/share/fonts"),
                Path("/usr/share/fonts/truetype/dejavu"),
                Path("/usr/local/share/fonts"),
            ]
        )
    return [p for p in paths if p.exists()]


def _register_font() -> str:
    global _FONT_NAME
    if _TICKET_FONT in pdfmetrics.getRegisteredFontNames():
        _FONT_NAME = _TICKET_FONT
        return _FONT_NAME

    for folder in _font_search_paths():
        for candidate in _FONT_CANDIDATES:
            path = folder / candidate
            if not path.exists():
                continue
            try:
                pdfmetrics.registerFont(TTFont(_TICKET_FONT, str(path)))
            except Exception:  # reportlab raises TTFError and plain errors for bad files
                continue
            _FONT_NAME = _TICKET_FONT
            return _FONT_NAME
    return _FONT_NAME


def _money(amount: int) -> str:
    text = format_rupees(amount, str(get_config_value("currency", "INR")))
    if _FONT_NAME == "Helvetica":
        return text.replace("₹", "Rs ")
    return text


def _sanitize_filename(value: str) -> str:
    safe = [ch if ch.isalnum() else "-" for ch in value]
    return "".join(safe).strip("-") or "ticket"


def _line_height() -> float:
    return 14.0


def _page_dimensions(line_count: int) -> tuple[float, float]:
    width = 200  # about a 58mm roll
    base_height = 60
    height = max(base_height, base_height + line_count * _line_height())
    return portrait((width, height))


def format_bill_lines(entry: BillHistoryEntry, menu: MenuCatalog, table: Optional[TableRecord] = None) -> List[str]:
    restaurant = str(get_config_value("restaurant_name", "Rural Bites"))
    label = table.name if table else f"Table {entry.table_id}"
    lines = [
        restaurant,
        f"{label} - Bill {entry.bill_id[:8]}",
        entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
    ]
    if entry.customer_name:
        lines.append(f"Guest: {entry.customer_name}")
    if entry.customer_phone:
        lines.append(f"Phone: {entry.customer_phone}")
    lines.append(_RULE)
    for item_id, qty in entry.items.items():
        item = menu.get_item(item_id)
        name = item.name if item else item_id
        unit_price = item.unit_price if item else 0
        lines.append(f"{qty} x {name}")
        lines.append(f"   @ {_money(unit_price)} = {_money(unit_price * qty)}")
    totals = entry.totals
    lines.extend(
        [
            _RULE,
            f"Subtotal: {_money(totals.subtotal)}",
            f"Tax: {_money(totals.tax)}",
            f"Discount: -{_money(totals.discount_applied)}",
            f"Total due: {_money(totals.grand_total)}",
            "Thank you for dining with us",
        ]
    )
    return lines


def format_kitchen_lines(table: TableRecord, lines: Iterable, when: Optional[datetime] = None) -> List[str]:
    ts = (when or datetime.now()).strftime("%Y-%m-%d %H:%M")
    out = [
        "Kitchen order ticket",
        f"{table.name} ({table.zone})",
        ts,
        _RULE,
    ]
    for line in lines:
        out.append(f"{line.quantity} x {line.name}")
    out.append(_RULE)
    return out


def _render_pdf(title: str, lines: List[str], folder: Path, prefix: str) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    font = _register_font()
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    target = folder / f"{timestamp}-{_sanitize_filename(prefix)}.pdf"
    width, height = _page_dimensions(len(lines) + 4)
    canv = canvas.Canvas(str(target), pagesize=(width, height))
    canv.setTitle(title)
    canv.setAuthor("Rural Bites POS")
    canv.setFont(font, 10)

    x = 10
    y = height - 18
    for line in lines:
        canv.drawString(x, y, line)
        y -= _line_height()
    canv.showPage()
    canv.save()
    return target


def _dispatch_pdf(pdf_path: Path, printer_name: str) -> bool:
    """Send ``pdf_path`` to ``printer_name``; returns whether a job was queued."""
    try:
        if sys.platform.startswith("win"):
            os.startfile(str(pdf_path), "print")  # type: ignore[attr-defined]
        else:
            completed = subprocess.run(
                ["lp", "-d", printer_name, str(pdf_path)],
                capture_output=True,
                text=True,
                check=False,
            )
            if completed.returncode != 0:
                logger.warning(
                    "lp rejected %s for printer %s (exit %s): %s",
                    pdf_path.name,
                    printer_name,
                    completed.returncode,
                    (completed.stderr or "").strip(),
                )
                return False
    except OSError:
        logger.warning("Could not send %s to printer %s", pdf_path.name, printer_name, exc_info=True)
        return False
    return True


class PrinterService:
    """Render tickets to PDFs and forward them when a printer is configured."""

    __slots__ = ("menu", "output_dir", "receipt_printer", "kitchen_printer")

    def __init__(self, menu: MenuCatalog, output_dir: Optional[Path] = None) -> None:
        self.menu = menu
        self.output_dir = Path(output_dir) if output_dir else PRINTS_DIR
        self.receipt_printer = ""
        self.kitchen_printer = ""
        _register_font()
        self.reload_from_settings()

    def reload_from_settings(self) -> None:
        self.receipt_printer = str(get_config_value("receipt_printer", "") or "").strip()
        self.kitchen_printer = str(get_config_value("kitchen_printer", "") or "").strip()

    def print_bill(self, entry: BillHistoryEntry, table: Optional[TableRecord] = None) -> Path:
        lines = format_bill_lines(entry, self.menu, table)
        pdf_path = _render_pdf("Bill", lines, self.output_dir / "receipts", f"bill-{entry.table_id}")
        if self.receipt_printer:
            _dispatch_pdf(pdf_path, self.receipt_printer)
        return pdf_path

    def print_kitchen_ticket(self, table: TableRecord, lines: Iterable) -> Path:
        ticket = format_kitchen_lines(table, lines)
        pdf_path = _render_pdf("Kitchen Ticket", ticket, self.output_dir / "kitchen", f"kot-{table.id}")
        if self.kitchen_printer:
            _dispatch_pdf(pdf_path, self.kitchen_printer)
        return pdf_path
