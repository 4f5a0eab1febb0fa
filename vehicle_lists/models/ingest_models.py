from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Any

from .validation_result import ClassifiedGrid

"""Ingest request / progress / result models.

IngestConfig bundles everything the column-selection step hands over before an
ingest starts. IngestProgress is one event of the batch progress stream.
IngestResult is what build_and_ingest() returns once every batch committed.
"""

__all__ = [
    "ColumnHeader",
    "IngestConfig",
    "IngestProgress",
    "IngestResult",
    "DeleteResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class ColumnHeader:
    """Header cell of the uploaded sheet: grid position and display text."""
    index: int
    name: str


@dataclass(frozen=True)
class IngestConfig:
    """Everything needed to turn one uploaded sheet into a stored list."""
    file_name: str
    vehicle_column_index: int
    vehicle_column_name: str
    agent_view_columns: list[int]  # grid indices visible to agents
    column_headers: list[ColumnHeader]
    grid: list[list[Any]]  # header row + data rows
    created_by: str = "admin"


@dataclass(frozen=True)
class IngestProgress:
    """Progress event emitted after each committed batch."""
    batches_completed: int
    total_batches: int
    percent_complete: float  # processed record share, truncated to 1 decimal
    records_processed: int
    total_records: int


@dataclass(frozen=True)
class IngestResult:
    """Outcome of a completed ingest."""
    list_id: str
    new_count: int
    updated_count: int
    total_count: int
    classification: ClassifiedGrid
    elapsed_seconds: float = 0.0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_count / self.elapsed_seconds


@dataclass(frozen=True)
class DeleteResult:
    list_id: str
    deleted_record_count: int


@dataclass
class BatchStatsAccumulator:
    """Collects per-batch commit timings and summarizes them."""
    batch_times: list[float] = field(default_factory=list)

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)
        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles = p95
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]
        return (total_batches, avg_batch_seconds, p95_batch_seconds)
