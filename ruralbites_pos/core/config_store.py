"""JSON settings for the floor-service backend, written atomically."""
from __future__ import annotations

import json
import os
from copy import deepcopy
from threading import RLock
from typing import Any, Dict

from .paths import SETTINGS_FILE

_LOCK = RLock()
_DEFAULT_CONFIG: Dict[str, Any] = {
    "restaurant_name": "Rural Bites",
    "currency": "INR",
    "tax_rate": "0.05",
    "draft_key_prefix": "rural-bites-table-",
    "history_key": "rural-bites-history",
    "auth_key": "rural-bites-auth",
    "session_ttl_hours": 24,
    "staff_accounts": {"abx": "1234"},
    "receipt_printer": "",
    "kitchen_printer": "",
    "sqlite_synchronous": "FULL",
    "backup_retention_days": 14,
    "last_backup_date": "",
    "last_integrity_check": "",
}


def default_config() -> Dict[str, Any]:
    return deepcopy(_DEFAULT_CONFIG)


def _ensure_file_exists() -> None:
    if not SETTINGS_FILE.exists():
        _atomic_write_json(default_config())


def _atomic_write_json(payload: Dict[str, Any]) -> None:
    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = SETTINGS_FILE.with_suffix(".tmp")
    with tmp_path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2, sort_keys=True)
    os.replace(tmp_path, SETTINGS_FILE)


def load_config() -> Dict[str, Any]:
    """Return the stored settings merged over the defaults.

    A missing file is created, and a file that is not a JSON object is
    treated as empty so the defaults win.
    """
    with _LOCK:
        _ensure_file_exists()
        try:
            with SETTINGS_FILE.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        merged = {**default_config(), **data}
        if merged != data:
            _atomic_write_json(merged)
        return merged


def save_config(data: Dict[str, Any]) -> None:
    with _LOCK:
        merged = {**default_config(), **data}
        _atomic_write_json(merged)


def get_config_value(key: str, default: Any = None) -> Any:
    config = load_config()
    return config.get(key, default)


def set_config_value(key: str, value: Any) -> None:
    with _LOCK:
        config = load_config()
        if config.get(key) == value:
            return
        config[key] = value
        save_config(config)
