"""Tests for durable key-value storage."""

from stemsplit.core.storage import MemoryKeyValueStore, SqliteKeyValueStore


class TestSqliteKeyValueStore:
    def test_set_get_remove(self, tmp_path) -> None:
        store = SqliteKeyValueStore(tmp_path / "kv.db")

        assert store.get_item("library") is None
        store.set_item("library", "[]")
        assert store.get_item("library") == "[]"

        store.set_item("library", '[{"id": "a"}]')
        assert store.get_item("library") == '[{"id": "a"}]'

        store.remove_item("library")
        assert store.get_item("library") is None

    def test_survives_reopen(self, tmp_path) -> None:
        SqliteKeyValueStore(tmp_path / "kv.db").set_item("k", "v")
        assert SqliteKeyValueStore(tmp_path / "kv.db").get_item("k") == "v"

    def test_remove_missing_key_is_noop(self, tmp_path) -> None:
        SqliteKeyValueStore(tmp_path / "kv.db").remove_item("missing")


class TestMemoryKeyValueStore:
    def test_initial_items(self) -> None:
        store = MemoryKeyValueStore({"k": "v"})
        assert store.get_item("k") == "v"
        store.remove_item("k")
        store.remove_item("k")
        assert store.get_item("k") is None
