from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..errors import VehicleListError
from ..models.ingest_models import ColumnHeader

"""Excel workbook -> RawGrid reader.

The first non-blank row of the sheet is the header; every following row up to
the last non-blank one is a data row. Blank rows in between stay in the grid so
grid index + 1 remains the line number shown in diagnostics (the classifier
reports them as missing vehicle numbers). Cells come back as plain Python values
(None for empty cells) so the classifier and record builder never see pandas /
numpy types.

Only .xlsx / .xls workbooks are accepted; anything else is an InputError raised
before any ingest work starts.
"""

__all__ = [
    "ALLOWED_SUFFIXES",
    "InputError",
    "read_grid",
    "column_headers",
    "resolve_column",
]

ALLOWED_SUFFIXES = {".xlsx", ".xls"}


class InputError(VehicleListError):
    """Uploaded file or ingest request is unusable (nothing was written)."""
    pass


def _to_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (str, dt.datetime, dt.date)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):  # list-like cell
        pass
    return value


def _is_blank(row: list[Any]) -> bool:
    return all(v is None or (isinstance(v, str) and v.strip() == "") for v in row)


def read_grid(
    path: Path, sheet_name: str | None = None, keep_na_strings: list[str] | None = None
) -> list[list[Any]]:
    """Read one sheet of a workbook as header + data rows.

    Parameters
    ----------
    path: workbook path (.xlsx / .xls)
    sheet_name: sheet to read; None = first sheet
    keep_na_strings: strings pandas would turn into NaN but which must be kept
        as text (e.g. ['NA'] for a column where NA is a legitimate value)
    """
    if path.suffix.lower() not in ALLOWED_SUFFIXES:
        raise InputError("Please select a valid Excel file (.xlsx or .xls)")
    if not path.exists():
        raise InputError(f"file not found: {path}")

    if keep_na_strings:
        import pandas._libs.parsers as parsers

        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    try:
        xls = pd.ExcelFile(path)
    except Exception as e:
        raise InputError(f"failed to read workbook {path.name}: {e}") from e

    names = [str(n) for n in xls.sheet_names]
    if not names:
        raise InputError(f"workbook {path.name} has no sheets")
    target = sheet_name if sheet_name is not None else names[0]
    if target not in names:
        raise InputError(f"sheet '{target}' not found in {path.name} (sheets: {names})")

    df = xls.parse(
        target, header=None, dtype=object, keep_default_na=keep_default_na, na_values=na_values
    )
    rows = [[_to_cell(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
    filled = [i for i, row in enumerate(rows) if not _is_blank(row)]
    # 先頭・末尾の空行だけ落とす（途中の空行は行番号維持のため残す）
    grid = rows[filled[0]:filled[-1] + 1] if filled else []

    if not grid:
        raise InputError(f"sheet '{target}' in {path.name} is empty")
    grid[0] = ["" if v is None else str(v).strip() for v in grid[0]]
    return grid


def column_headers(grid: list[list[Any]]) -> list[ColumnHeader]:
    if not grid:
        return []
    return [ColumnHeader(index=i, name=str(name)) for i, name in enumerate(grid[0])]


def resolve_column(grid: list[list[Any]], column: str) -> int:
    """Resolve a column given by header name or 0-based index string."""
    header = [str(h) for h in grid[0]] if grid else []
    if column in header:
        return header.index(column)
    if column.isdigit() and int(column) < len(header):
        return int(column)
    raise InputError(f"column '{column}' not found in header {header}")
