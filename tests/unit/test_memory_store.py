from __future__ import annotations

import pytest

from vehicle_lists.db.memory_store import InMemoryDocumentStore
from vehicle_lists.db.store import BatchLimitExceededError, StoreError


def test_set_get_replace_and_merge():
    store = InMemoryDocumentStore()
    store.set("c", "k", {"a": 1, "b": 2})
    store.set("c", "k", {"b": 3, "c": 4}, merge=True)
    assert store.get("c", "k") == {"a": 1, "b": 3, "c": 4}
    store.set("c", "k", {"z": 0})
    assert store.get("c", "k") == {"z": 0}
    assert store.get("c", "missing") is None


def test_returned_documents_are_copies():
    store = InMemoryDocumentStore()
    data = {"nested": {"x": 1}}
    store.set("c", "k", data)
    data["nested"]["x"] = 2
    got = store.get("c", "k")
    got["nested"]["x"] = 3
    assert store.get("c", "k") == {"nested": {"x": 1}}


def test_get_many_only_returns_existing():
    store = InMemoryDocumentStore()
    store.set("c", "a", {"v": 1})
    store.set("c", "b", {"v": 2})
    assert store.get_many("c", ["a", "zz", "b"]) == {"a": {"v": 1}, "b": {"v": 2}}


def test_query_equality_filters():
    store = InMemoryDocumentStore()
    store.set("v", "1", {"listParentId": "L1", "rowIndex": 0})
    store.set("v", "2", {"listParentId": "L2", "rowIndex": 0})
    store.set("v", "3", {"listParentId": "L1", "rowIndex": 1})
    assert sorted(d.key for d in store.query("v", {"listParentId": "L1"})) == ["1", "3"]
    assert len(store.query("v")) == 3
    assert store.query("other") == []


def test_batch_commit_is_atomic_and_counted():
    store = InMemoryDocumentStore()
    store.set("c", "gone", {"v": 0})
    batch = store.batch()
    batch.set("c", "a", {"v": 1})
    batch.delete("c", "gone")
    assert len(batch) == 2
    assert store.get("c", "a") is None  # nothing applied before commit
    batch.commit()
    assert store.get("c", "a") == {"v": 1}
    assert store.get("c", "gone") is None
    assert store.operations_committed == 3


def test_batch_capacity():
    store = InMemoryDocumentStore(max_batch_operations=2)
    batch = store.batch()
    batch.set("c", "a", {})
    batch.set("c", "b", {})
    with pytest.raises(BatchLimitExceededError):
        batch.set("c", "c", {})


def test_batch_single_use():
    store = InMemoryDocumentStore()
    batch = store.batch()
    batch.set("c", "a", {})
    batch.commit()
    with pytest.raises(StoreError):
        batch.commit()
    with pytest.raises(StoreError):
        batch.set("c", "b", {})


def test_delete_missing_is_noop():
    store = InMemoryDocumentStore()
    store.delete("c", "nothing")
    assert store.count("c") == 0
