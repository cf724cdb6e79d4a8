from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from calendar_crawler.store import SettingsStore


def test_defaults_when_nothing_stored(memory_store) -> None:
    settings = SettingsStore(memory_store).get_settings()
    assert settings.language == "es"
    assert settings.sync_interval == 60
    assert settings.last_sync is None


def test_set_persists_under_config_prefix(memory_store) -> None:
    store = SettingsStore(memory_store)
    store.set("theme", "dark")
    store.set("last_sync", datetime(2025, 7, 1, tzinfo=timezone.utc))

    payload = json.loads(memory_store.get_item("config_settings"))
    assert payload["data"]["theme"] == "dark"
    fresh = SettingsStore(memory_store)
    assert fresh.get("theme") == "dark"
    assert fresh.get("last_sync") == datetime(2025, 7, 1, tzinfo=timezone.utc)


def test_unknown_setting_is_rejected(memory_store) -> None:
    with pytest.raises(ValueError):
        SettingsStore(memory_store).set("colour", "blue")


def test_sync_interval_must_be_positive(memory_store) -> None:
    with pytest.raises(ValueError):
        SettingsStore(memory_store).set("sync_interval", 0)


def test_invalid_stored_values_fall_back_to_defaults(memory_store) -> None:
    memory_store.set_item(
        "config_settings",
        json.dumps({"data": {"sync_interval": "often", "theme": "dark", "extra": 1}}),
    )
    settings = SettingsStore(memory_store).get_settings()
    assert settings.sync_interval == 60
    assert settings.theme == "dark"


def test_reset(memory_store) -> None:
    store = SettingsStore(memory_store)
    store.update(theme="dark", notifications=False)
    assert store.reset().theme == "light"
    assert store.get("notifications") is True
