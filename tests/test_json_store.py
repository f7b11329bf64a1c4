from __future__ import annotations

import json

import pytest

from json_store import JsonCollection, VersionConflict


@pytest.fixture()
def collection(tmp_path):
    return JsonCollection(tmp_path / "things.json")


def test_missing_file_reads_as_empty(collection):
    assert collection.all() == []


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonCollection(path).all() == []


def test_non_object_entries_are_dropped(tmp_path):
    path = tmp_path / "mixed.json"
    path.write_text(json.dumps([None, "x", {"id": "a"}, [1]]), encoding="utf-8")
    collection = JsonCollection(path)

    assert collection.all() == [{"id": "a"}]
    assert collection.upsert({"id": "b"})["version"] == 1
    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "a"}, {"id": "b", "version": 1}]


def test_upsert_appends_then_replaces(collection):
    first = collection.upsert({"id": "a", "name": "one"})
    assert first["version"] == 1

    second = collection.upsert({"id": "a", "name": "two", "version": 1})
    assert second["version"] == 2
    assert collection.all() == [{"id": "a", "name": "two", "version": 2}]


def test_stale_version_is_rejected(collection):
    collection.upsert({"id": "a", "name": "one"})
    collection.upsert({"id": "a", "name": "two", "version": 1})

    with pytest.raises(VersionConflict) as excinfo:
        collection.upsert({"id": "a", "name": "stale", "version": 1})

    assert excinfo.value.current_version == 2
    assert [doc["name"] for doc in collection.all()] == ["two"]


def test_write_without_version_is_last_write_wins(collection):
    collection.upsert({"id": "a", "name": "one"})
    collection.upsert({"id": "a", "name": "two", "version": 1})

    stored = collection.upsert({"id": "a", "name": "blind"})

    assert stored["version"] == 3
    assert [doc["name"] for doc in collection.all()] == ["blind"]


def test_merge_and_delete(collection):
    collection.upsert({"id": "a", "read": False})
    assert collection.merge("a", {"read": True})["read"] is True
    assert collection.merge("missing", {"read": True}) is None
    assert collection.delete("a") is True
    assert collection.delete("a") is False
    assert collection.all() == []


def test_retention_keeps_most_recent_entries(tmp_path):
    logs = JsonCollection(tmp_path / "logs.json", limit=1000)
    for index in range(1000):
        logs.append({"id": str(index)})

    logs.append({"id": "1000"})

    stored = logs.all()
    assert len(stored) == 1000
    assert stored[0]["id"] == "1"
    assert stored[-1]["id"] == "1000"


def test_files_are_utf8_json(tmp_path):
    path = tmp_path / "names.json"
    JsonCollection(path).append({"id": "1", "name": "主图视频"})
    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "1", "name": "主图视频"}]
    assert "主图视频" in path.read_text(encoding="utf-8")
