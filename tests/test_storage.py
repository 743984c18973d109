"""
Tests for the local key-value stores.
"""

import pytest

from ui_resilience.exceptions import ErrorType, StorageError
from ui_resilience.storage import JsonFileStore, MemoryStore


class TestMemoryStore:
    def test_roundtrip_and_delete(self):
        store = MemoryStore()
        store.set("queue", [{"id": 1}])

        assert store.get("queue") == [{"id": 1}]
        assert store.keys() == ["queue"]

        store.delete("queue")
        assert store.get("queue") is None

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {"items": [1]}
        store.set("k", value)
        value["items"].append(2)

        fetched = store.get("k")
        fetched["items"].append(3)

        assert store.get("k") == {"items": [1]}


class TestJsonFileStore:
    def test_persists_across_instances(self, tmp_path):
        JsonFileStore(tmp_path).set("error_analytics", {"counts": {"a": 2}})

        assert JsonFileStore(tmp_path).get("error_analytics") == {"counts": {"a": 2}}
        assert (tmp_path / "error_analytics.json").exists()
        assert not (tmp_path / "error_analytics.json.tmp").exists()

    def test_missing_key(self, tmp_path):
        assert JsonFileStore(tmp_path).get("nothing") is None

    def test_delete_is_idempotent(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.set("k", 1)
        store.delete("k")
        store.delete("k")

        assert store.get("k") is None

    def test_unsafe_keys_rejected(self, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            JsonFileStore(tmp_path).set("../escape", 1)
        assert exc_info.value.error_type == ErrorType.STORAGE

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            JsonFileStore(tmp_path).get("broken")

    def test_unserializable_value_raises_storage_error(self, tmp_path):
        with pytest.raises(StorageError):
            JsonFileStore(tmp_path).set("k", {"bad": object()})
