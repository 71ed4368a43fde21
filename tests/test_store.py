"""Tests for the SQLite key/value store."""

from concurrent.futures import ThreadPoolExecutor

from gmail_gatekeeper.models import Settings
from gmail_gatekeeper.store import KeyValueStore


def test_set_and_get_roundtrip_json(tmp_path):
    db_path = tmp_path / "state.db"
    with KeyValueStore(db_path=db_path) as store:
        store.set("lastHistoryId", "12345")
        store.set("screenerEnabled", True)
        store.set("sweepCap", 50)

    with KeyValueStore(db_path=db_path) as store:
        assert store.get("lastHistoryId") == "12345"
        assert store.get("screenerEnabled") is True
        assert store.get("sweepCap") == 50
        assert store.get("missing", "fallback") == "fallback"


def test_set_overwrites(store):
    store.set("k", 1)
    store.set("k", 2)
    assert store.get("k") == 2
    assert store.keys() == ["k"]


def test_namespaces_are_isolated(tmp_path):
    db_path = tmp_path / "state.db"
    with KeyValueStore(db_path=db_path, namespace="alice@example.com") as alice:
        alice.set("lastHistoryId", "1")
        with KeyValueStore(db_path=db_path, namespace="bob@example.com") as bob:
            assert bob.get("lastHistoryId") is None
            bob.set("lastHistoryId", "2")
            assert bob.get_info()["namespace_count"] == 2
        assert alice.get("lastHistoryId") == "1"


def test_delete_and_prefix(store):
    store.set("labelId_Allowed", "Label_1")
    store.set("labelId_Gatekeeper_Screener", "Label_2")
    store.set("lastHistoryId", "99")

    assert store.keys("labelId_") == ["labelId_Allowed", "labelId_Gatekeeper_Screener"]
    assert store.delete_prefix("labelId_") == 2
    assert store.keys() == ["lastHistoryId"]

    store.delete("lastHistoryId")
    assert store.get("lastHistoryId") is None


def test_get_info(store):
    assert store.get_info()["key_count"] == 0
    store.set("a", 1)
    info = store.get_info()
    assert info["key_count"] == 1
    assert info["namespace"] == "me"
    assert info["db_file_size"] > 0


def test_clear(store):
    store.set("a", 1)
    store.set("b", 2)
    store.clear()
    assert store.keys() == []


def test_in_memory_store():
    with KeyValueStore(db_path=":memory:") as store:
        store.set("a", {"nested": [1, 2]})
        assert store.get("a") == {"nested": [1, 2]}
        assert store.get_info()["db_file_size"] == 0


def test_concurrent_writes(store):
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: store.set(f"key_{i:02d}", i), range(40)))
    assert len(store.keys("key_")) == 40


def test_settings_defaults_and_save(store):
    settings = Settings.load(store)
    assert settings.screener_enabled is False
    assert settings.sweep_cap == 200
    assert settings.base_filter == "-in:chats"
    assert settings.clear_set_aside_on_reply is False

    settings.sweep_cap = 25
    settings.clear_set_aside_on_reply = True
    settings.save(store)

    loaded = Settings.load(store)
    assert loaded.sweep_cap == 25
    assert loaded.clear_set_aside_on_reply is True


def test_settings_invalid_cap_falls_back(store):
    store.set("sweepCap", -3)
    assert Settings.load(store).sweep_cap == 200
    store.set("sweepCap", "lots")
    assert Settings.load(store).sweep_cap == 200
