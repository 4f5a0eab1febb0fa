from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.ingest_models import ColumnHeader
from ..models.vehicle_record import ColumnDescriptor

"""What agents get to see.

build_agent_preview() renders the pre-save preview from the cleaned grid;
agent_visible_fields() projects a stored vehicle document through the list's
column descriptors. In both the vehicle number comes first, then the visible
columns in sheet order.
"""

__all__ = [
    "EMPTY_CELL",
    "build_agent_preview",
    "agent_visible_fields",
]

EMPTY_CELL = "-"


def build_agent_preview(
    cleaned_grid: Sequence[Sequence[Any]],
    vehicle_column_index: int,
    agent_view_columns: Sequence[int],
    column_headers: Sequence[ColumnHeader],
    limit: int = 5,
) -> tuple[list[str], list[list[Any]]]:
    """Return (header names, first `limit` data rows) as agents would see them."""
    ordered = [vehicle_column_index] + sorted(
        {c for c in agent_view_columns if c != vehicle_column_index}
    )
    by_index = {h.index: h.name for h in column_headers}
    ordered = [i for i in ordered if i in by_index]
    headers = [by_index[i] for i in ordered]

    rows: list[list[Any]] = []
    for row in list(cleaned_grid)[1:1 + limit]:
        cells = []
        for i in ordered:
            value = row[i] if i < len(row) else None
            cells.append(value if value not in (None, "") else EMPTY_CELL)
        rows.append(cells)
    return headers, rows


def agent_visible_fields(
    document: Mapping[str, Any], columns: Sequence[ColumnDescriptor]
) -> dict[str, Any]:
    """Vehicle number plus every agent-visible column of a stored document."""
    view: dict[str, Any] = {"vehicleNumber": document.get("vehicleNumber", document.get("id"))}
    for column in columns:
        if column.show_to_agent:
            view[column.name] = document.get(column.sanitized_name, "")
    return view
