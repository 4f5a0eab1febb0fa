from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Validation result models for the vehicle number cleaning engine.

ValidationOutcome is the per-value result of validate_identifier(); ClassifiedGrid
is the per-grid result of classify_grid(). Rejected rows are plain data here and
never exceptions: callers always get the full diagnostic list back.
"""

__all__ = [
    "ValidationOutcome",
    "InvalidRow",
    "ClassifiedGrid",
    "IdentifierBatchSummary",
]


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a single raw vehicle number.

    cleaned_value is None only when the input was empty / non-string or cleaned
    down to nothing. For length, state code and pattern failures it carries the
    attempted cleaned value so the caller can display it.
    """
    is_valid: bool
    cleaned_value: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class InvalidRow:
    """Diagnostic entry for a rejected grid row."""
    row_index: int  # 1-based spreadsheet line (header = line 1)
    original_value: str
    cleaned_value: str  # "" when nothing could be cleaned
    error: str


@dataclass(frozen=True)
class ClassifiedGrid:
    """Header plus accepted rows, and the diagnostics for every rejected row.

    Invariants:
        valid_count + invalid_count == input rows - 1
        len(cleaned_data) == valid_count + 1
    """
    cleaned_data: list[list[Any]]
    valid_count: int
    invalid_count: int
    invalid_rows: list[InvalidRow] = field(default_factory=list)

    @property
    def header(self) -> list[Any]:
        return self.cleaned_data[0] if self.cleaned_data else []

    @property
    def data_rows(self) -> list[list[Any]]:
        return self.cleaned_data[1:]


@dataclass(frozen=True)
class IdentifierBatchSummary:
    """Summary of validating a flat list of vehicle numbers."""
    total_count: int
    valid_count: int
    invalid_count: int
    cleaned_numbers: list[str]
    invalid_numbers: list[InvalidRow]
