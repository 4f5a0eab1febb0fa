from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any

from .store import DEFAULT_MAX_BATCH_OPERATIONS, BatchLimitExceededError, StoreError, StoredDocument

"""In-memory DocumentStore.

Used by the test-suite and by the CLI when DISABLE_DB_CONNECT=1. Documents are
deep-copied on the way in and out so callers can never mutate stored state.
commits_made / operations_committed are kept for inspection in tests.
"""

__all__ = [
    "InMemoryDocumentStore",
    "InMemoryWriteBatch",
]


class InMemoryWriteBatch:
    """Queue of operations applied all-or-nothing on commit()."""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self._ops: list[tuple[str, str, str, dict[str, Any] | None, bool]] = []
        self._committed = False

    def _check_capacity(self) -> None:
        if self._committed:
            raise StoreError("batch already committed")
        if len(self._ops) >= self._store.max_batch_operations:
            raise BatchLimitExceededError(
                f"batch holds at most {self._store.max_batch_operations} operations"
            )

    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        self._check_capacity()
        self._ops.append(("set", collection, key, copy.deepcopy(dict(data)), merge))

    def delete(self, collection: str, key: str) -> None:
        self._check_capacity()
        self._ops.append(("delete", collection, key, None, False))

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> None:
        if self._committed:
            raise StoreError("batch already committed")
        self._store._apply(self._ops)
        self._committed = True


class InMemoryDocumentStore:
    """Dict-of-dicts document store: {collection: {key: document}}."""

    def __init__(self, max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS) -> None:
        self.max_batch_operations = max_batch_operations
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.commits_made = 0
        self.operations_committed = 0

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def _apply(self, ops: list[tuple[str, str, str, dict[str, Any] | None, bool]]) -> None:
        # 全操作をコピー上で適用し、最後に差し替える (atomic)
        staged = {name: dict(docs) for name, docs in self._collections.items()}
        for kind, collection, key, data, merge in ops:
            docs = staged.setdefault(collection, {})
            if kind == "delete":
                docs.pop(key, None)
            elif merge and key in docs:
                merged = dict(docs[key])
                merged.update(data or {})
                docs[key] = merged
            else:
                docs[key] = dict(data or {})
        self._collections = staged
        self.commits_made += 1
        self.operations_committed += len(ops)

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        doc = self._collection(collection).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    def get_many(self, collection: str, keys: Iterable[str]) -> dict[str, dict[str, Any]]:
        docs = self._collection(collection)
        return {k: copy.deepcopy(docs[k]) for k in keys if k in docs}

    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        self._apply([("set", collection, key, copy.deepcopy(dict(data)), merge)])

    def delete(self, collection: str, key: str) -> None:
        self._apply([("delete", collection, key, None, False)])

    def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[StoredDocument]:
        wanted = dict(filters or {})
        return [
            StoredDocument(key=k, data=copy.deepcopy(doc))
            for k, doc in self._collection(collection).items()
            if all(doc.get(f) == v for f, v in wanted.items())
        ]

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    def count(self, collection: str) -> int:
        return len(self._collection(collection))
