"""Dated copies of the POS database taken with SQLite's online backup."""
from __future__ import annotations

import logging
import os
import shutil
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from ..core import db as db_module
from ..core.config_store import get_config_value, set_config_value
from ..core.paths import BACKUP_DIR, DB_PATH

logger = logging.getLogger(__name__)


def _retention_days() -> int:
    try:
        return max(1, int(get_config_value("backup_retention_days", 14)))
    except (TypeError, ValueError):
        return 14


def _dated_dirs(backup_dir: Path) -> list[tuple[date, Path]]:
    if not backup_dir.exists():
        return []
    found = []
    for entry in backup_dir.iterdir():
        if not entry.is_dir():
            continue
        try:
            entry_date = datetime.strptime(entry.name, "%Y-%m-%d").date()
        except ValueError:
            continue
        found.append((entry_date, entry))
    found.sort()
    return found


def prune_old_backups(retention_days: Optional[int] = None, backup_dir: Path = BACKUP_DIR) -> list[Path]:
    keep = retention_days or _retention_days()
    dated = _dated_dirs(backup_dir)
    removed = []
    while len(dated) > keep:
        _, path = dated.pop(0)
        shutil.rmtree(path, ignore_errors=True)
        removed.append(path)
    return removed


def backup_now(
    db_path: Path = DB_PATH,
    backup_dir: Path = BACKUP_DIR,
    today: Optional[date] = None,
) -> Path:
    """Create (or replace) the backup for ``today`` and return its path."""
    day = today or date.today()
    day_dir = backup_dir / day.isoformat()
    day_dir.mkdir(parents=True, exist_ok=True)
    target = day_dir / db_path.name
    tmp_target = target.with_suffix(".tmp")

    src = sqlite3.connect(db_path)
    dst = sqlite3.connect(tmp_target)
    try:
        src.backup(dst)
    finally:
        src.close()
        dst.close()
    os.replace(tmp_target, target)
    set_config_value("last_backup_date", day.isoformat())
    prune_old_backups(backup_dir=backup_dir)
    logger.info("Database backed up to %s", target)
    return target


def ensure_daily_backup(db_path: Path = DB_PATH, backup_dir: Path = BACKUP_DIR) -> Optional[Path]:
    """Guarantee there's a backup for today (used on startup)."""
    if not db_path.exists():
        return None
    today = date.today()
    candidate = backup_dir / today.isoformat() / db_path.name
    if str(get_config_value("last_backup_date", "")) == today.isoformat() and candidate.exists():
        return candidate
    return backup_now(db_path, backup_dir, today)


def latest_backup_path(db_name: str = DB_PATH.name, backup_dir: Path = BACKUP_DIR) -> Optional[Path]:
    for _, folder in reversed(_dated_dirs(backup_dir)):
        candidate = folder / db_name
        if candidate.exists():
            return candidate
    return None


def restore_backup(backup_path: Path, db_path: Path = DB_PATH) -> None:
    """Replace the live database with ``backup_path``.

    Open engines are disposed first so no pooled connection keeps the old
    file alive.
    """
    if not backup_path.exists():
        raise FileNotFoundError(backup_path)
    db_module.close_engine()
    tmp_target = db_path.with_suffix(".restore")
    shutil.copy2(backup_path, tmp_target)
    for suffix in ("-wal", "-shm"):
        stale = db_path.with_name(db_path.name + suffix)
        if stale.exists():
            stale.unlink()
    os.replace(tmp_target, db_path)
    logger.info("Database restored from %s", backup_path)
