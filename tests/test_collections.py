# tests/test_collections.py

from __future__ import annotations

from pathlib import Path

import pytest

from omniflow.errors import StorageError
from omniflow.storage.collections import JsonCollectionStore, SqliteCollectionStore, open_collection_store


@pytest.mark.parametrize("kind", ["json", "sqlite"])
def test_collection_store_write_read_replace(tmp_path: Path, kind: str) -> None:
    store = JsonCollectionStore(tmp_path) if kind == "json" else SqliteCollectionStore(tmp_path / "db.sqlite3")

    assert store.read_all("tasks") == []

    store.write_all("tasks", [{"id": "a", "n": 1}, {"id": "b", "n": 2}])
    store.write_all("leads", [{"id": "l1"}])
    assert store.read_all("tasks") == [{"id": "a", "n": 1}, {"id": "b", "n": 2}]

    # write_all replaces the whole collection; other collections are untouched
    store.write_all("tasks", [{"id": "b", "n": 3}])
    assert store.read_all("tasks") == [{"id": "b", "n": 3}]
    assert store.read_all("leads") == [{"id": "l1"}]


def test_json_store_rejects_corrupt_file(tmp_path: Path) -> None:
    store = JsonCollectionStore(tmp_path)
    store.path_for("tasks").write_text("{not json", "utf-8")

    with pytest.raises(StorageError):
        store.read_all("tasks")


def test_json_store_rejects_non_list_payload(tmp_path: Path) -> None:
    store = JsonCollectionStore(tmp_path)
    store.path_for("tasks").write_text('{"id": "a"}', "utf-8")

    with pytest.raises(StorageError):
        store.read_all("tasks")


def test_json_store_unserializable_record_keeps_previous_version(tmp_path: Path) -> None:
    store = JsonCollectionStore(tmp_path)
    store.write_all("tasks", [{"id": "a"}])

    with pytest.raises(StorageError):
        store.write_all("tasks", [{"id": "b", "bad": object()}])

    assert store.read_all("tasks") == [{"id": "a"}]
    assert not store.path_for("tasks").with_suffix(".tmp").exists()


def test_invalid_collection_name_is_rejected(tmp_path: Path) -> None:
    store = JsonCollectionStore(tmp_path)
    with pytest.raises(StorageError):
        store.read_all("../escape")


def test_open_collection_store_picks_backend(settings) -> None:
    assert isinstance(open_collection_store(settings), JsonCollectionStore)

    settings.storage_backend = "sqlite"
    assert isinstance(open_collection_store(settings), SqliteCollectionStore)
