from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import TypeVar

from ..errors import VehicleListError
from ..models.ingest_models import IngestProgress
from ..models.vehicle_record import VehicleRecord
from .store import DEFAULT_MAX_BATCH_OPERATIONS, DocumentStore

"""Batched merge-upsert of vehicle records.

Records are split into contiguous groups of at most batch_size. Each group is
one WriteBatch (atomic), committed strictly in order; the next group is only
built after the previous commit returned. After each commit an IngestProgress
event is yielded, so the run is a lazy, finite, non-restartable stream.

Merge policy per record:
- key not stored yet (and not written earlier in this run) -> full document
- otherwise createdAt is left out of the write so the stored value survives;
  updatedAt and every other field are overwritten

Failures are never retried here. IngestBatchError reports how far the run got.
"""

__all__ = [
    "IngestBatchError",
    "IngestCancelledError",
    "BatchMetrics",
    "IngestBatcher",
    "chunk",
    "percent_complete",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IngestBatchError(VehicleListError):
    """A batch lookup or commit failed; earlier batches stay committed."""

    def __init__(self, message: str, batches_committed: int, records_committed: int) -> None:
        super().__init__(message)
        self.batches_committed = batches_committed
        self.records_committed = records_committed


class IngestCancelledError(VehicleListError):
    """Cancellation was requested between two batches."""

    def __init__(self, batches_committed: int, records_committed: int) -> None:
        super().__init__(
            f"ingest cancelled after {batches_committed} batches ({records_committed} records)"
        )
        self.batches_committed = batches_committed
        self.records_committed = records_committed


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single batch commit."""
    batch_number: int  # 1-based
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


def chunk(items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


def percent_complete(processed: int, total: int) -> float:
    """Processed share in percent, truncated to one decimal (500/1200 -> 41.6)."""
    if total <= 0:
        return 100.0
    return (processed * 1000 // total) / 10


class IngestBatcher:
    """Commits VehicleRecords to the vehicles collection in bounded batches.

    new_count / updated_count / batches_committed / records_committed are
    updated as the run progresses and stay readable after a failure.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str,
        batch_size: int = DEFAULT_MAX_BATCH_OPERATIONS,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch size must be >= 1, got {batch_size}")
        self.store = store
        self.collection = collection
        self.batch_size = batch_size
        self.metrics_callback = metrics_callback
        self.new_count = 0
        self.updated_count = 0
        self.batches_committed = 0
        self.records_committed = 0
        self._written: set[str] = set()

    def run(
        self,
        records: Sequence[VehicleRecord],
        cancel_event: threading.Event | None = None,
    ) -> Iterator[IngestProgress]:
        groups = chunk(records, self.batch_size)
        total_batches = len(groups)
        total_records = len(records)
        logger.info(f"Processing {total_records} vehicles in {total_batches} batches...")

        for number, group in enumerate(groups, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"ingest cancelled before batch {number}/{total_batches}")
                raise IngestCancelledError(self.batches_committed, self.records_committed)

            new_in_batch, updated_in_batch = self._commit_group(number, group)

            self.batches_committed += 1
            self.records_committed += len(group)
            self.new_count += new_in_batch
            self.updated_count += updated_in_batch

            progress = IngestProgress(
                batches_completed=number,
                total_batches=total_batches,
                percent_complete=percent_complete(self.records_committed, total_records),
                records_processed=self.records_committed,
                total_records=total_records,
            )
            logger.info(
                f"Batch {number}/{total_batches} completed ({progress.percent_complete:.1f}%)"
            )
            yield progress

    def _commit_group(self, number: int, group: Sequence[VehicleRecord]) -> tuple[int, int]:
        keys = [r.key for r in group]
        try:
            existing = self.store.get_many(self.collection, keys)
        except Exception as e:
            raise IngestBatchError(
                f"batch {number}: existing record lookup failed: {e}",
                self.batches_committed,
                self.records_committed,
            ) from e

        batch = self.store.batch()
        new_in_batch = 0
        updated_in_batch = 0
        seen_here: set[str] = set()
        for record in group:
            doc = record.to_document()
            if record.key in existing or record.key in self._written or record.key in seen_here:
                doc.pop("createdAt", None)
                updated_in_batch += 1
            else:
                new_in_batch += 1
            seen_here.add(record.key)
            batch.set(self.collection, record.key, doc, merge=True)

        start_time = time.time()
        try:
            batch.commit()
        except Exception as e:
            logger.error(f"batch {number} commit failed: {e}")
            raise IngestBatchError(
                f"batch {number} commit failed after {self.batches_committed} committed batches: {e}",
                self.batches_committed,
                self.records_committed,
            ) from e
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    BatchMetrics(
                        batch_number=number,
                        batch_size=len(group),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
        self._written.update(seen_here)
        return new_in_batch, updated_in_batch
