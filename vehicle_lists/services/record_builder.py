from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

import numpy as np

from ..models.ingest_models import ColumnHeader
from ..models.vehicle_record import RESERVED_RECORD_FIELDS, ColumnDescriptor, VehicleRecord

"""Record builder: accepted rows + column metadata -> VehicleRecord list.

Responsibilities:
- list id generation (sanitized file name + UTC date)
- storage-safe field names for column headers, computed once per ingest
- per-row VehicleRecord construction (suffix, row index, timestamps, dynamic fields)

Field name collisions are resolved deterministically in column order: the first
column keeps the plain key, later ones get _2, _3, ... Reserved record keys
(id, showtoagent, ...) count as taken.
"""

__all__ = [
    "FieldNameMap",
    "sanitize_field_name",
    "build_column_descriptors",
    "build_records",
    "generate_list_id",
    "last_four",
    "document_value",
]

_INVALID_FIELD_CHARS = re.compile(r"[^a-z0-9_]+")
_UNDERSCORE_RUN = re.compile(r"_+")
_INVALID_ID_CHAR = re.compile(r"[^a-zA-Z0-9]")


def sanitize_field_name(name: str) -> str:
    """Lowercase, runs of non [a-z0-9_] -> "_", collapse "_" runs, trim "_"."""
    lowered = str(name).lower()
    key = _INVALID_FIELD_CHARS.sub("_", lowered)
    key = _UNDERSCORE_RUN.sub("_", key)
    return key.strip("_")


def generate_list_id(file_name: str, now: datetime) -> str:
    """List id: every non-alphanumeric char of the file name -> "_", plus _YYYYMMDD."""
    stamp = now.astimezone(UTC).strftime("%Y%m%d")
    return f"{_INVALID_ID_CHAR.sub('_', file_name)}_{stamp}"


def last_four(identifier: str) -> str:
    # 4文字未満はそのまま (パディングなし)
    return identifier[-4:]


@dataclass(frozen=True)
class FieldNameMap:
    """Cached grid index -> sanitized field key mapping for one ingest."""
    keys: dict[int, str]

    @staticmethod
    def from_headers(headers: Sequence[ColumnHeader]) -> FieldNameMap:
        taken: set[str] = set(RESERVED_RECORD_FIELDS)
        keys: dict[int, str] = {}
        for header in headers:
            base = sanitize_field_name(header.name) or f"column_{header.index}"
            key = base
            suffix = 2
            while key in taken:
                key = f"{base}_{suffix}"
                suffix += 1
            taken.add(key)
            keys[header.index] = key
        return FieldNameMap(keys=keys)

    def __getitem__(self, index: int) -> str:
        return self.keys[index]


def build_column_descriptors(
    column_headers: Sequence[ColumnHeader],
    agent_view_columns: Iterable[int],
    field_names: FieldNameMap | None = None,
) -> list[ColumnDescriptor]:
    """One ColumnDescriptor per header; visible iff its index was selected."""
    visible = set(agent_view_columns)
    names = field_names if field_names is not None else FieldNameMap.from_headers(column_headers)
    return [
        ColumnDescriptor(
            index=header.index,
            name=header.name,
            sanitized_name=names[header.index],
            show_to_agent=header.index in visible,
        )
        for header in column_headers
    ]


def document_value(value: Any) -> Any:
    """Convert a grid cell to a document-friendly value ("" for empty cells)."""
    if value is None:
        return ""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def build_records(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[ColumnDescriptor],
    vehicle_column_index: int,
    list_id: str,
    timestamp: str,
) -> list[VehicleRecord]:
    """Build a VehicleRecord for each accepted (already cleaned) row.

    row_index is the position among accepted rows. Every column is written;
    agent visibility is carried by the descriptors, not by the record.
    """
    records: list[VehicleRecord] = []
    for position, row in enumerate(rows):
        number = str(row[vehicle_column_index] or "")
        fields: dict[str, Any] = {}
        for column in columns:
            cell = row[column.index] if column.index < len(row) else None
            fields[column.sanitized_name] = document_value(cell)
        records.append(
            VehicleRecord(
                vehicle_number=number,
                last_four_digits=last_four(number),
                list_parent_id=list_id,
                row_index=position,
                created_at=timestamp,
                updated_at=timestamp,
                show_to_agent=True,
                fields=fields,
            )
        )
    return records
