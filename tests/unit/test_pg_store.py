from __future__ import annotations

from typing import Any

import psycopg2
import pytest

from vehicle_lists.config.loader import DatabaseConfig
from vehicle_lists.db import pg_store
from vehicle_lists.db.pg_store import PostgresDocumentStore, _group_runs, resolve_dsn
from vehicle_lists.db.store import BatchLimitExceededError, StoreError


class FakeCursor:
    def __init__(self, conn: FakeConn) -> None:
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if self.conn.fail_with is not None:
            raise self.conn.fail_with
        self.conn.executed.append((sql, params))

    def fetchall(self):
        return self.conn.rows


class FakeConn:
    def __init__(self, rows: list[tuple[Any, ...]] | None = None) -> None:
        self.rows = rows or []
        self.executed: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.fail_with: Exception | None = None

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


@pytest.fixture()
def captured_values(monkeypatch):
    calls: list[tuple[str, list[Any]]] = []

    def fake_execute_values(cur, sql, argslist, page_size=100):
        calls.append((sql, list(argslist)))

    monkeypatch.setattr(pg_store, "execute_values", fake_execute_values)
    return calls


def test_resolve_dsn_env_first(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert resolve_dsn(DatabaseConfig(dsn="ignored")) == "postgresql://u@h/db"


def test_resolve_dsn_config_fallback(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    cfg = DatabaseConfig(host="db", port=5433, user="app", password="pw", database="lists")
    assert resolve_dsn(cfg) == "host=db port=5433 user=app dbname=lists password=pw"
    monkeypatch.setenv("PGHOST", "override")
    assert resolve_dsn(cfg).startswith("host=override port=5433")


def test_invalid_table_name():
    with pytest.raises(StoreError):
        PostgresDocumentStore(FakeConn(), table="documents; DROP TABLE x")


def test_get_and_get_many():
    conn = FakeConn(rows=[("DL01AB1234", {"vehicleNumber": "DL01AB1234"})])
    store = PostgresDocumentStore(conn)
    assert store.get_many("vehicleno", ["DL01AB1234"]) == {
        "DL01AB1234": {"vehicleNumber": "DL01AB1234"}
    }
    sql, params = conn.executed[-1]
    assert "key = ANY(%s)" in sql
    assert params == ("vehicleno", ["DL01AB1234"])
    assert store.get_many("vehicleno", []) == {}


def test_get_missing_returns_none():
    store = PostgresDocumentStore(FakeConn(rows=[]))
    assert store.get("lists", "nope") is None


def test_query_with_filters_uses_containment():
    conn = FakeConn(rows=[("k", {"listParentId": "L1"})])
    store = PostgresDocumentStore(conn)
    docs = store.query("vehicleno", {"listParentId": "L1"})
    assert docs[0].key == "k"
    sql, params = conn.executed[-1]
    assert "data @> %s::jsonb" in sql
    assert params[1].adapted == {"listParentId": "L1"}


def test_batch_commit_groups_operations(captured_values):
    conn = FakeConn()
    store = PostgresDocumentStore(conn)
    batch = store.batch()
    batch.set("vehicleno", "A", {"x": 1}, merge=True)
    batch.set("vehicleno", "B", {"x": 2}, merge=True)
    batch.delete("vehicleno", "C")
    batch.commit()

    assert len(captured_values) == 2
    upsert_sql, upsert_rows = captured_values[0]
    assert "documents.data || EXCLUDED.data" in upsert_sql
    assert [(c, k) for c, k, _ in upsert_rows] == [("vehicleno", "A"), ("vehicleno", "B")]
    delete_sql, delete_rows = captured_values[1]
    assert delete_sql.startswith("DELETE FROM documents")
    assert delete_rows == [("vehicleno", "C")]
    assert conn.commits == 1


def test_batch_capacity():
    store = PostgresDocumentStore(FakeConn(), max_batch_operations=1)
    batch = store.batch()
    batch.set("c", "a", {})
    with pytest.raises(BatchLimitExceededError):
        batch.delete("c", "a")


def test_failed_transaction_rolls_back(monkeypatch):
    def boom(cur, sql, argslist, page_size=100):
        raise psycopg2.OperationalError("connection lost")

    monkeypatch.setattr(pg_store, "execute_values", boom)
    conn = FakeConn()
    store = PostgresDocumentStore(conn)
    with pytest.raises(StoreError):
        store.set("lists", "L1", {"id": "L1"})
    assert conn.rollbacks == 1
    assert conn.commits == 0


def test_group_runs_splits_repeated_keys():
    ops = [
        ("set", "v", "A", {}, True),
        ("set", "v", "B", {}, True),
        ("set", "v", "A", {}, True),
        ("delete", "v", "B", None, False),
        ("delete", "v", "C", None, False),
    ]
    runs = _group_runs(ops)
    assert [[op[2] for op in run] for run in runs] == [["A", "B"], ["A"], ["B", "C"]]


def test_replace_set_uses_excluded_data(captured_values):
    store = PostgresDocumentStore(FakeConn(), table="docs")
    store.set("lists", "L1", {"id": "L1"})
    sql, _ = captured_values[0]
    assert sql.endswith("DO UPDATE SET data = EXCLUDED.data")
    assert "INSERT INTO docs" in sql


def test_ensure_schema_and_close():
    conn = FakeConn()
    store = PostgresDocumentStore(conn)
    store.ensure_schema()
    assert "CREATE TABLE IF NOT EXISTS documents" in conn.executed[0][0]
    store.close()
    assert conn.closed
