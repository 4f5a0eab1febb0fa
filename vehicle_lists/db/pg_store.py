from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import psycopg2
from psycopg2.extras import Json, execute_values

from .store import DEFAULT_MAX_BATCH_OPERATIONS, BatchLimitExceededError, StoreError, StoredDocument

if TYPE_CHECKING:
    from ..config.loader import DatabaseConfig

"""PostgreSQL JSONB DocumentStore (psycopg2).

All collections share one table:

    CREATE TABLE documents (
        collection text  NOT NULL,
        key        text  NOT NULL,
        data       jsonb NOT NULL,
        PRIMARY KEY (collection, key)
    )

merge=True upserts use ``data = documents.data || EXCLUDED.data`` (top-level key
merge, same semantics as the in-memory store). A WriteBatch is one transaction;
consecutive operations of the same kind go through a single execute_values call.

接続情報の優先順位:
    1. DATABASE_URL / PGDSN 環境変数
    2. config の database.dsn
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE (不足分は config から補完)
"""

__all__ = [
    "PostgresDocumentStore",
    "PostgresWriteBatch",
    "resolve_dsn",
    "connect_store",
]

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build a libpq DSN, environment variables first, config as fallback."""
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def connect_store(
    db_cfg: DatabaseConfig, max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS
) -> PostgresDocumentStore:
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreError(f"connection failed: {e}") from e
    conn.autocommit = False
    store = PostgresDocumentStore(conn, table=db_cfg.table, max_batch_operations=max_batch_operations)
    store.ensure_schema()
    return store


class PostgresWriteBatch:
    """Queued operations executed in one transaction on commit()."""

    def __init__(self, store: PostgresDocumentStore) -> None:
        self._store = store
        self._ops: list[tuple[str, str, str, dict[str, Any] | None, bool]] = []

    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        self._check_capacity()
        self._ops.append(("set", collection, key, dict(data), merge))

    def delete(self, collection: str, key: str) -> None:
        self._check_capacity()
        self._ops.append(("delete", collection, key, None, False))

    def _check_capacity(self) -> None:
        if len(self._ops) >= self._store.max_batch_operations:
            raise BatchLimitExceededError(
                f"batch holds at most {self._store.max_batch_operations} operations"
            )

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> None:
        self._store._run_in_transaction(self._ops)


def _group_runs(
    ops: list[tuple[str, str, str, dict[str, Any] | None, bool]],
) -> list[list[tuple[str, str, str, dict[str, Any] | None, bool]]]:
    """Split ops into runs of the same (kind, merge) without repeated keys.

    ON CONFLICT DO UPDATE cannot touch the same row twice in one statement, so a
    repeated (collection, key) starts a new run.
    """
    runs: list[list[tuple[str, str, str, dict[str, Any] | None, bool]]] = []
    seen: set[tuple[str, str]] = set()
    for op in ops:
        kind, collection, key, _, merge = op
        if runs:
            head = runs[-1][0]
            if head[0] == kind and head[4] == merge and (collection, key) not in seen:
                runs[-1].append(op)
                seen.add((collection, key))
                continue
        runs.append([op])
        seen = {(collection, key)}
    return runs


class PostgresDocumentStore:
    """DocumentStore over a single JSONB table."""

    def __init__(
        self,
        conn: Any,
        table: str = "documents",
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
    ) -> None:
        if not _TABLE_NAME.match(table):
            raise StoreError(f"invalid table name: {table!r}")
        self._conn = conn
        self.table = table
        self.max_batch_operations = max_batch_operations

    def ensure_schema(self) -> None:
        self._run_sql(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "collection text NOT NULL, key text NOT NULL, data jsonb NOT NULL, "
            "PRIMARY KEY (collection, key))"
        )

    def _run_sql(self, sql: str, params: tuple[Any, ...] | None = None) -> None:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
            self._conn.commit()
        except psycopg2.Error as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e

    def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            self._conn.commit()
        except psycopg2.Error as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e
        return rows

    def _upsert_sql(self, merge: bool) -> str:
        update = f"{self.table}.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        return (
            f"INSERT INTO {self.table} (collection, key, data) VALUES %s "
            f"ON CONFLICT (collection, key) DO UPDATE SET data = {update}"
        )

    def _run_in_transaction(
        self, ops: list[tuple[str, str, str, dict[str, Any] | None, bool]]
    ) -> None:
        if not ops:
            return
        try:
            with self._conn.cursor() as cur:
                for run in _group_runs(ops):
                    kind, _, _, _, merge = run[0]
                    if kind == "delete":
                        execute_values(
                            cur,
                            f"DELETE FROM {self.table} t USING (VALUES %s) AS d(collection, key) "
                            "WHERE t.collection = d.collection AND t.key = d.key",
                            [(c, k) for _, c, k, _, _ in run],
                            page_size=self.max_batch_operations,
                        )
                    else:
                        execute_values(
                            cur,
                            self._upsert_sql(merge),
                            [(c, k, Json(d)) for _, c, k, d, _ in run],
                            page_size=self.max_batch_operations,
                        )
            self._conn.commit()
        except psycopg2.Error as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        rows = self._fetch(
            f"SELECT data FROM {self.table} WHERE collection = %s AND key = %s",
            (collection, key),
        )
        return rows[0][0] if rows else None

    def get_many(self, collection: str, keys: Iterable[str]) -> dict[str, dict[str, Any]]:
        wanted = list(keys)
        if not wanted:
            return {}
        rows = self._fetch(
            f"SELECT key, data FROM {self.table} WHERE collection = %s AND key = ANY(%s)",
            (collection, wanted),
        )
        return {k: d for k, d in rows}

    def set(
        self, collection: str, key: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        self._run_in_transaction([("set", collection, key, dict(data), merge)])

    def delete(self, collection: str, key: str) -> None:
        self._run_sql(
            f"DELETE FROM {self.table} WHERE collection = %s AND key = %s", (collection, key)
        )

    def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[StoredDocument]:
        if filters:
            rows = self._fetch(
                f"SELECT key, data FROM {self.table} WHERE collection = %s AND data @> %s::jsonb",
                (collection, Json(dict(filters))),
            )
        else:
            rows = self._fetch(
                f"SELECT key, data FROM {self.table} WHERE collection = %s", (collection,)
            )
        return [StoredDocument(key=k, data=d) for k, d in rows]

    def batch(self) -> PostgresWriteBatch:
        return PostgresWriteBatch(self)

    def close(self) -> None:
        self._conn.close()
