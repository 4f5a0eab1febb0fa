from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import VehicleListError

"""Storage port for list / vehicle documents.

The ingest pipeline only talks to these two protocols; the concrete store
(in-memory for tests and dry runs, PostgreSQL JSONB in production) is injected.

Write semantics:
- set(merge=False): replace the whole document
- set(merge=True):  top-level keys in the write overwrite, other stored keys survive
- WriteBatch.commit(): all queued operations apply atomically, or none do
"""

__all__ = [
    "DEFAULT_MAX_BATCH_OPERATIONS",
    "StoreError",
    "BatchLimitExceededError",
    "StoredDocument",
    "WriteBatch",
    "DocumentStore",
]

DEFAULT_MAX_BATCH_OPERATIONS = 500


class StoreError(VehicleListError):
    """Backend failure in a storage adapter."""
    pass


class BatchLimitExceededError(StoreError):
    """Raised when more operations are queued than a batch may hold."""
    pass


@dataclass(frozen=True)
class StoredDocument:
    key: str
    data: dict[str, Any]


class WriteBatch(Protocol):
    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None: ...

    def delete(self, collection: str, key: str) -> None: ...

    def commit(self) -> None: ...

    def __len__(self) -> int: ...


class DocumentStore(Protocol):
    max_batch_operations: int

    def get(self, collection: str, key: str) -> dict[str, Any] | None: ...

    def get_many(self, collection: str, keys: Iterable[str]) -> dict[str, dict[str, Any]]: ...

    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None: ...

    def delete(self, collection: str, key: str) -> None: ...

    def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[StoredDocument]: ...

    def batch(self) -> WriteBatch: ...
