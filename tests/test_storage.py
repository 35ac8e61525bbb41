"""Tests for inclination.storage."""

import fcntl
import json
import threading
import time

import pytest

from inclination.storage import JsonDocumentStore, StorageError, _apply_update


# ---------------------------------------------------------------------------
# _apply_update
# ---------------------------------------------------------------------------

class TestApplyUpdate:

    def test_plain_keys_replace_fields(self):
        doc = {"status": "in-progress", "rounds": 3}
        assert _apply_update(doc, {"status": "voting"}) == {"status": "voting", "rounds": 3}

    def test_dotted_key_sets_nested_field(self):
        doc = {"dimensions": {"a-b": {"discussionCount": 1}}}
        _apply_update(doc, {"dimensions.c-d": {"discussionCount": 2}})
        assert doc["dimensions"] == {
            "a-b": {"discussionCount": 1},
            "c-d": {"discussionCount": 2},
        }

    def test_dotted_key_creates_missing_maps(self):
        doc = {}
        _apply_update(doc, {"a.b.c": 1})
        assert doc == {"a": {"b": {"c": 1}}}


# ---------------------------------------------------------------------------
# JsonDocumentStore
# ---------------------------------------------------------------------------

class TestDocumentCrud:

    def test_get_missing_returns_none(self, store):
        assert store.get("things", "nope") is None

    def test_set_then_get_includes_id(self, store):
        store.set("things", "t1", {"name": "one"})
        assert store.get("things", "t1") == {"name": "one", "id": "t1"}

    def test_insert_generates_unique_ids(self, store):
        first = store.insert("things", {"n": 1})
        second = store.insert("things", {"n": 2})
        assert first != second
        assert store.get("things", first)["n"] == 1

    def test_update_merges_fields(self, store):
        store.set("things", "t1", {"name": "one", "status": "new"})
        store.update("things", "t1", {"status": "done"})
        assert store.get("things", "t1") == {"name": "one", "status": "done", "id": "t1"}

    def test_update_missing_document_raises(self, store):
        with pytest.raises(StorageError):
            store.update("things", "ghost", {"status": "done"})

    def test_documents_are_plain_json_files(self, store):
        store.set("things", "t1", {"name": "one"})
        path = store.base_dir / "things" / "t1.json"
        assert json.loads(path.read_text())["name"] == "one"

    def test_corrupt_document_raises_storage_error(self, store):
        directory = store.base_dir / "things"
        directory.mkdir(parents=True)
        (directory / "bad.json").write_text("{not json")

        with pytest.raises(StorageError):
            store.get("things", "bad")

    def test_unwritable_location_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = JsonDocumentStore(blocker)

        with pytest.raises(StorageError):
            store.set("things", "t1", {"name": "one"})


class TestTransact:

    def test_creates_missing_document(self, store):
        seen = []

        def mutate(doc):
            seen.append(doc)
            return {"count": 1}

        written = store.transact("things", "counter", mutate)

        assert seen == [None]
        assert written == {"count": 1, "id": "counter"}
        assert store.get("things", "counter")["count"] == 1

    def test_merges_into_existing_document(self, store):
        store.set("things", "counter", {"count": 1, "label": "c"})

        written = store.transact("things", "counter", lambda doc: {"count": doc["count"] + 1})

        assert written["count"] == 2
        assert written["label"] == "c"

    def test_empty_partial_leaves_document_unchanged(self, store):
        store.set("things", "counter", {"count": 5})
        store.transact("things", "counter", lambda doc: {})
        assert store.get("things", "counter")["count"] == 5

    def test_mutate_error_writes_nothing(self, store):
        def boom(doc):
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            store.transact("things", "counter", boom)
        assert store.get("things", "counter") is None


class TestQueries:

    def test_query_all_empty_collection(self, store):
        assert store.query_all("nothing") == []

    def test_query_ordered_desc_with_limit(self, store):
        for doc_id, ts in [("a", "2024-01-01"), ("b", "2024-03-01"), ("c", "2024-02-01")]:
            store.set("things", doc_id, {"timestamp": ts})

        docs = store.query_ordered("things", "timestamp", "desc", limit=2)

        assert [d["id"] for d in docs] == ["b", "c"]

    def test_query_ordered_asc_puts_missing_field_last(self, store):
        store.set("things", "a", {"timestamp": "2024-02-01"})
        store.set("things", "b", {})
        store.set("things", "c", {"timestamp": "2024-01-01"})

        docs = store.query_ordered("things", "timestamp")

        assert [d["id"] for d in docs] == ["c", "a", "b"]

    def test_query_ordered_rejects_bad_direction(self, store):
        with pytest.raises(ValueError):
            store.query_ordered("things", "timestamp", "sideways")


class TestLocking:

    def test_stores_on_one_directory_share_a_lock(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        relative = JsonDocumentStore("data")
        absolute = JsonDocumentStore(tmp_path / "data")
        other = JsonDocumentStore(tmp_path / "elsewhere")

        assert relative._lock is absolute._lock
        assert other._lock is not absolute._lock

    def test_transact_waits_for_file_lock_held_elsewhere(self, store):
        """A writer holding the document's flock blocks transactions until released."""
        store.set("things", "counter", {"count": 0})
        holder = open(store.base_dir / "things" / ".counter.lock", "w")
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX)
        released = []

        def release_later():
            time.sleep(0.2)
            released.append(True)
            fcntl.flock(holder.fileno(), fcntl.LOCK_UN)
            holder.close()

        releaser = threading.Thread(target=release_later)
        releaser.start()
        store.transact(
            "things", "counter",
            lambda doc: {"count": doc["count"] + 1, "after_release": bool(released)},
        )
        releaser.join()

        doc = store.get("things", "counter")
        assert doc["count"] == 1
        assert doc["after_release"] is True

    def test_lock_files_are_not_documents(self, store):
        store.transact("things", "counter", lambda doc: {"count": 1})
        store.update("things", "counter", {"count": 2})

        assert [d["id"] for d in store.query_all("things")] == ["counter"]
