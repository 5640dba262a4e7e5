"""Tests for the JSON settings file."""

import json
import os
from pathlib import Path

from ruralbites_pos.core import config_store, paths


def test_missing_file_is_created_with_defaults(settings_file):
    config = config_store.load_config()
    assert settings_file.exists()
    assert config["tax_rate"] == "0.05"
    assert config["draft_key_prefix"] == "rural-bites-table-"
    assert config["history_key"] == "rural-bites-history"
    assert config["staff_accounts"] == {"abx": "1234"}


def test_new_defaults_are_merged_into_old_files(settings_file):
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(json.dumps({"restaurant_name": "Rural Bites Annex"}), encoding="utf-8")
    config = config_store.load_config()
    assert config["restaurant_name"] == "Rural Bites Annex"
    assert config["currency"] == "INR"
    on_disk = json.loads(settings_file.read_text(encoding="utf-8"))
    assert on_disk["currency"] == "INR"


def test_unreadable_file_falls_back_to_defaults(settings_file):
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text("[1, 2", encoding="utf-8")
    assert config_store.get_config_value("restaurant_name") == "Rural Bites"


def test_set_and_get_value(settings_file):
    config_store.set_config_value("receipt_printer", "TM-T82")
    assert config_store.get_config_value("receipt_printer") == "TM-T82"
    assert config_store.get_config_value("missing", "fallback") == "fallback"
    assert not settings_file.with_suffix(".tmp").exists()


def test_defaults_are_copies():
    first = config_store.default_config()
    first["staff_accounts"]["intruder"] = "x"
    assert "intruder" not in config_store.default_config()["staff_accounts"]


def test_storage_tree_sits_under_the_data_root():
    assert paths.DATA_ROOT == Path(os.environ["RURALBITES_DATA_ROOT"]).expanduser().resolve()
    for folder in (paths.DATA_DIR, paths.CONFIG_DIR, paths.BACKUP_DIR, paths.PRINTS_DIR):
        assert paths.DATA_ROOT in folder.parents
    assert paths.DB_PATH.name == "ruralbites_pos.db"
    paths.ensure_storage_dirs()
    assert paths.PRINTS_DIR.is_dir()
