# Shared pytest fixtures
from __future__ import annotations
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from vehicle_lists.db.memory_store import InMemoryDocumentStore
from vehicle_lists.models import ColumnHeader, IngestConfig
from vehicle_lists.services.list_service import ListService

FIXED_NOW = datetime(2025, 3, 14, 9, 30, 0, tzinfo=UTC)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 500
created_by: ops-admin
error_log_dir: ./logs
collections:
  lists: lists
  vehicles: vehicleno
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
  table: documents
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "vehicle_lists.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_grid() -> list[list[Any]]:
    """5 valid + 2 invalid vehicle numbers."""
    return [
        ["Vehicle No.", "Owner Name", "Branch", "EMI Amount"],
        ["dl 01 ab 1234", "Sharma Logistics", "Delhi", 12500],
        ["HR-26-C-4567", "Gupta Transport", "Gurugram", 9800.5],
        ["XX01AB1234", "Unknown", "Noida", 100],
        ["UP14 7788", "Mehta Motors", None, 4300],
        ["DLFAPATW00347", "Rao Finance", "Delhi", 15000],
        ["", "Blank Row Pvt", "Mumbai", 0],
        ["mh12de3456", "Singh Carriers", "Pune", 22000],
    ]


@pytest.fixture()
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def service(memory_store: InMemoryDocumentStore) -> ListService:
    return ListService(memory_store, clock=lambda: FIXED_NOW)


@pytest.fixture()
def ingest_config(sample_grid: list[list[Any]]) -> IngestConfig:
    return IngestConfig(
        file_name="march dues.xlsx",
        vehicle_column_index=0,
        vehicle_column_name="Vehicle No.",
        agent_view_columns=[1, 2],
        column_headers=[ColumnHeader(i, str(n)) for i, n in enumerate(sample_grid[0])],
        grid=sample_grid,
    )


@pytest.fixture()
def make_excel(temp_workdir: Path):
    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        p = temp_workdir / "data" / name
        with pd.ExcelWriter(p) as writer:
            for sheet, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return p
    return _make
