"""Locations of the till's database, settings, backups and rendered tickets.

All of them hang off one data root, resolved once at import time.
``RURALBITES_DATA_ROOT`` overrides it; tests point it at a temp directory.
"""
from __future__ import annotations

import os
from pathlib import Path

__all__ = [
    "DATA_ROOT",
    "DATA_DIR",
    "CONFIG_DIR",
    "BACKUP_DIR",
    "PRINTS_DIR",
    "DB_PATH",
    "SETTINGS_FILE",
    "ensure_storage_dirs",
]


def _data_root() -> Path:
    configured = os.getenv("RURALBITES_DATA_ROOT")
    if configured:
        return Path(configured).expanduser().resolve()
    if os.name == "nt":
        return Path(os.environ.get("PROGRAMDATA") or r"C:\ProgramData") / "RuralBitesPOS"
    return Path.home() / ".ruralbites_pos"


DATA_ROOT = _data_root()
DATA_DIR = DATA_ROOT / "data"
CONFIG_DIR = DATA_ROOT / "config"
BACKUP_DIR = DATA_ROOT / "backup"
PRINTS_DIR = DATA_DIR / "prints"

DB_PATH = DATA_DIR / "ruralbites_pos.db"
SETTINGS_FILE = CONFIG_DIR / "settings.json"


def ensure_storage_dirs() -> None:
    for path in (DATA_DIR, CONFIG_DIR, BACKUP_DIR, PRINTS_DIR):
        path.mkdir(parents=True, exist_ok=True)
