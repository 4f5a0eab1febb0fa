from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

from ..models.validation_result import ClassifiedGrid, InvalidRow
from .validation import validate_identifier

"""Grid-level vehicle number classification.

Splits the data rows of a raw grid into accepted rows (identifier cell replaced
by its cleaned value) and rejected rows (diagnostic entry). The header row is
copied through unchanged. Rows are independent of each other; output order
always follows input order.
"""

__all__ = [
    "classify_grid",
    "cell_text",
]

logger = logging.getLogger(__name__)


def cell_text(row: Sequence[Any], column_index: int) -> str:
    """Read a cell as text; missing, None and NaN cells read as ""."""
    if column_index >= len(row):
        return ""
    value = row[column_index]
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return value if isinstance(value, str) else str(value)


def classify_grid(grid: Sequence[Sequence[Any]], identifier_column_index: int) -> ClassifiedGrid:
    """Validate the identifier column of every data row.

    Parameters
    ----------
    grid: header row followed by data rows
    identifier_column_index: 0-based column holding the vehicle number

    Returns
    -------
    ClassifiedGrid with cleaned_data = [header, *accepted rows] and one InvalidRow
    per rejected row. InvalidRow.row_index is the spreadsheet line (grid index + 1).
    """
    if identifier_column_index < 0:
        raise ValueError(f"identifier column index must be >= 0, got {identifier_column_index}")

    if not grid:
        return ClassifiedGrid(cleaned_data=[], valid_count=0, invalid_count=0, invalid_rows=[])

    cleaned_data: list[list[Any]] = [list(grid[0])]
    invalid_rows: list[InvalidRow] = []

    for i in range(1, len(grid)):
        row = grid[i]
        raw = cell_text(row, identifier_column_index)
        outcome = validate_identifier(raw)

        if outcome.is_valid and outcome.cleaned_value:
            cleaned_row = list(row)
            cleaned_row[identifier_column_index] = outcome.cleaned_value
            cleaned_data.append(cleaned_row)
        else:
            invalid_rows.append(
                InvalidRow(
                    row_index=i + 1,
                    original_value=raw,
                    cleaned_value=outcome.cleaned_value or "",
                    error=outcome.error or "Invalid vehicle number",
                )
            )

    valid_count = len(cleaned_data) - 1
    logger.debug(
        "classified rows=%d valid=%d invalid=%d", len(grid) - 1, valid_count, len(invalid_rows)
    )
    return ClassifiedGrid(
        cleaned_data=cleaned_data,
        valid_count=valid_count,
        invalid_count=len(invalid_rows),
        invalid_rows=invalid_rows,
    )
