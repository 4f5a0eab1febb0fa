from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..config.loader import AppConfig
from ..db.batch_upsert import BatchMetrics, IngestBatchError, IngestBatcher, chunk
from ..db.store import DocumentStore
from ..errors import VehicleListError
from ..excel.reader import InputError, column_headers
from ..logging.error_log import BATCH_COMMIT_ERROR, ErrorLogBuffer
from ..models.error_record import ErrorRecord, utc_timestamp
from ..models.ingest_models import (
    BatchStatsAccumulator,
    DeleteResult,
    IngestConfig,
    IngestProgress,
    IngestResult,
)
from ..models.validation_result import ClassifiedGrid
from ..models.vehicle_record import ColumnDescriptor, ListMetadata, ListStatus, VehicleRecord
from .classifier import classify_grid
from .record_builder import FieldNameMap, build_column_descriptors, build_records, generate_list_id

"""List service: the operations the admin surface calls.

    build_and_ingest     grid -> classified -> records -> list metadata + batches
    start_ingest         same, as an IngestRun yielding IngestProgress lazily
    update_column_visibility / set_visibility / toggle_column
    set_list_status
    delete_list          cascade: vehicles with listParentId == id, then the list
    fetch_list / fetch_lists / fetch_vehicles

The DocumentStore is injected; nothing here holds global state.
"""

__all__ = [
    "ListNotFoundError",
    "ListDeleteError",
    "PreparedIngest",
    "IngestRun",
    "ListService",
]

logger = logging.getLogger(__name__)


class ListNotFoundError(VehicleListError):
    pass


class ListDeleteError(VehicleListError):
    def __init__(self, message: str, list_id: str) -> None:
        super().__init__(message)
        self.list_id = list_id


@dataclass(frozen=True)
class PreparedIngest:
    """Everything computed before the first write."""
    config: IngestConfig
    list_id: str
    timestamp: str
    classification: ClassifiedGrid
    columns: list[ColumnDescriptor]
    records: list[VehicleRecord]
    metadata: ListMetadata


class IngestRun:
    """One ingest as a lazy, single-use stream of IngestProgress events.

    Iterating writes the list metadata, then commits the batches one by one.
    Stop iterating to stop the ingest at a batch boundary. result() is available
    once the stream has been exhausted.
    """

    def __init__(
        self,
        service: ListService,
        prepared: PreparedIngest,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.service = service
        self.prepared = prepared
        self.cancel_event = cancel_event
        self.stats = BatchStatsAccumulator()
        self.batcher = IngestBatcher(
            service.store,
            collection=service.vehicles_collection,
            batch_size=service.batch_size,
            metrics_callback=self._on_metrics,
        )
        self._stream: Iterator[IngestProgress] | None = None
        self._started_at: float | None = None
        self._elapsed: float | None = None

    @property
    def list_id(self) -> str:
        return self.prepared.list_id

    def _on_metrics(self, metrics: BatchMetrics) -> None:
        self.stats.add_batch_time(metrics.elapsed_seconds)
        logger.debug(
            f"batch {metrics.batch_number} size={metrics.batch_size} "
            f"elapsed={metrics.elapsed_seconds:.3f}s"
        )

    def __iter__(self) -> Iterator[IngestProgress]:
        if self._stream is None:
            self._stream = self._run()
        return self._stream

    def _run(self) -> Iterator[IngestProgress]:
        p = self.prepared
        self._started_at = time.perf_counter()
        error_log = self.service.error_log
        if error_log is not None:
            error_log.extend_invalid_rows(p.config.file_name, p.list_id, p.classification.invalid_rows)

        self.service.store.set(self.service.lists_collection, p.list_id, p.metadata.to_document())
        logger.info(f"list {p.list_id}: metadata stored ({len(p.columns)} columns)")

        try:
            yield from self.batcher.run(p.records, self.cancel_event)
        except IngestBatchError as e:
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        file=p.config.file_name,
                        list_id=p.list_id,
                        row=-1,
                        error_type=BATCH_COMMIT_ERROR,
                        message=str(e),
                    )
                )
            raise
        self._elapsed = time.perf_counter() - self._started_at

    def result(self) -> IngestResult:
        if self._elapsed is None:
            raise RuntimeError("ingest run has not completed")
        total_batches, avg, p95 = self.stats.get_stats()
        return IngestResult(
            list_id=self.prepared.list_id,
            new_count=self.batcher.new_count,
            updated_count=self.batcher.updated_count,
            total_count=self.batcher.records_committed,
            classification=self.prepared.classification,
            elapsed_seconds=self._elapsed,
            total_batches=total_batches,
            avg_batch_seconds=avg,
            p95_batch_seconds=p95,
        )


class ListService:
    def __init__(
        self,
        store: DocumentStore,
        *,
        lists_collection: str = "lists",
        vehicles_collection: str = "vehicleno",
        batch_size: int = 500,
        error_log: ErrorLogBuffer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.lists_collection = lists_collection
        self.vehicles_collection = vehicles_collection
        self.batch_size = min(batch_size, store.max_batch_operations)
        self.error_log = error_log
        self.clock = clock if clock is not None else (lambda: datetime.now(UTC))

    @classmethod
    def from_config(
        cls, store: DocumentStore, cfg: AppConfig, error_log: ErrorLogBuffer | None = None
    ) -> ListService:
        return cls(
            store,
            lists_collection=cfg.lists_collection,
            vehicles_collection=cfg.vehicles_collection,
            batch_size=cfg.batch_size,
            error_log=error_log,
        )

    # ------------------------------------------------------------------ ingest

    def prepare_ingest(self, config: IngestConfig) -> PreparedIngest:
        """Validate the request and build every record; no writes happen here.

        Raises:
            InputError: empty file name, empty sheet, or column indices outside the header
        """
        if not config.file_name.strip():
            raise InputError("file name is required")
        if len(config.grid) < 2:
            raise InputError(f"sheet of {config.file_name} has no data rows")
        width = len(config.grid[0])
        if not 0 <= config.vehicle_column_index < width:
            raise InputError(
                f"vehicle column index {config.vehicle_column_index} outside header (0..{width - 1})"
            )
        bad = [i for i in config.agent_view_columns if not 0 <= i < width]
        if bad:
            raise InputError(f"agent view column indices outside header: {bad}")

        headers = config.column_headers or column_headers(config.grid)
        now = self.clock()
        timestamp = utc_timestamp(now)
        list_id = generate_list_id(config.file_name, now)

        classification = classify_grid(config.grid, config.vehicle_column_index)
        field_names = FieldNameMap.from_headers(headers)
        columns = build_column_descriptors(headers, config.agent_view_columns, field_names)
        records = build_records(
            classification.data_rows, columns, config.vehicle_column_index, list_id, timestamp
        )

        logger.info("Vehicle number validation results:")
        logger.info(f"- Total rows: {len(config.grid) - 1}")
        logger.info(f"- Valid vehicles: {classification.valid_count}")
        logger.info(f"- Invalid vehicles: {classification.invalid_count}")
        for r in classification.invalid_rows:
            logger.warning(
                f"row {r.row_index}: '{r.original_value}' -> '{r.cleaned_value}' {r.error}"
            )
        for c in columns:
            logger.debug(f'  "{c.name}" -> "{c.sanitized_name}"')

        metadata = ListMetadata(
            id=list_id,
            file_name=config.file_name,
            vehicle_column_name=config.vehicle_column_name,
            columns=columns,
            total_records=len(records),
            upload_date=timestamp,
            created_by=config.created_by,
            status=ListStatus.ACTIVE,
        )
        return PreparedIngest(
            config=config,
            list_id=list_id,
            timestamp=timestamp,
            classification=classification,
            columns=columns,
            records=records,
            metadata=metadata,
        )

    def start_ingest(
        self, config: IngestConfig, cancel_event: threading.Event | None = None
    ) -> IngestRun:
        return IngestRun(self, self.prepare_ingest(config), cancel_event)

    def build_and_ingest(
        self,
        config: IngestConfig,
        on_progress: Callable[[IngestProgress], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IngestResult:
        """Run a full ingest, calling on_progress after every committed batch.

        Raises:
            InputError: before anything is written
            IngestBatchError: a batch failed; carries batches_committed
            IngestCancelledError: cancel_event was set between batches
        """
        run = self.start_ingest(config, cancel_event)
        for progress in run:
            if on_progress is not None:
                on_progress(progress)
        result = run.result()
        visible = sum(1 for c in run.prepared.columns if c.show_to_agent)
        logger.info(f"Successfully created list {result.list_id}")
        logger.info(f"Vehicle records: {result.total_count} processed "
                    f"(new={result.new_count} updated={result.updated_count})")
        logger.info(f"Columns visible to agents: {visible}/{len(run.prepared.columns)}")
        return result

    # ----------------------------------------------------------------- columns

    def _require_list(self, list_id: str) -> ListMetadata:
        data = self.store.get(self.lists_collection, list_id)
        if data is None:
            raise ListNotFoundError(f"list not found: {list_id}")
        return ListMetadata.from_document(data)

    def update_column_visibility(self, list_id: str, columns: Sequence[ColumnDescriptor]) -> None:
        """Replace the stored column descriptors of a list.

        Only visibility is expected to change; the sanitized names must match
        the stored ones because every vehicle document is keyed by them.
        """
        current = self._require_list(list_id)
        stored = [c.sanitized_name for c in current.columns]
        given = [c.sanitized_name for c in columns]
        if sorted(stored) != sorted(given):
            raise InputError(f"columns of list {list_id} do not match: {given} != {stored}")
        self.store.set(
            self.lists_collection,
            list_id,
            {"rows": [c.to_document() for c in columns]},
            merge=True,
        )
        logger.info(
            f"list {list_id}: {sum(1 for c in columns if c.show_to_agent)}/{len(columns)} "
            "columns visible to agents"
        )

    def set_visibility(self, list_id: str, changes: Mapping[str, bool]) -> list[ColumnDescriptor]:
        """Set visibility by column name or sanitized name."""
        current = self._require_list(list_id)
        pending = dict(changes)
        updated: list[ColumnDescriptor] = []
        for column in current.columns:
            flag: bool | None = None
            for name in (column.sanitized_name, column.name):
                if name in pending:
                    flag = pending.pop(name)
            updated.append(column if flag is None else column.with_visibility(flag))
        if pending:
            raise InputError(f"unknown columns for list {list_id}: {sorted(pending)}")
        self.update_column_visibility(list_id, updated)
        return updated

    def toggle_column(self, list_id: str, sanitized_name: str) -> list[ColumnDescriptor]:
        current = self._require_list(list_id)
        for column in current.columns:
            if column.sanitized_name == sanitized_name:
                return self.set_visibility(list_id, {sanitized_name: not column.show_to_agent})
        raise InputError(f"unknown column for list {list_id}: {sanitized_name}")

    def set_list_status(self, list_id: str, status: ListStatus | str) -> None:
        self._require_list(list_id)
        value = ListStatus(status)
        self.store.set(self.lists_collection, list_id, {"status": value.value}, merge=True)
        logger.info(f"list {list_id}: status={value.value}")

    # ------------------------------------------------------------------ delete

    def delete_list(self, list_id: str) -> DeleteResult:
        """Delete every vehicle of the list, then the list itself.

        Vehicles go in batches of at most batch_size. On failure the error is
        wrapped with the list id; calling again finishes the job (deleting
        missing documents is a no-op).
        """
        deleted = 0
        try:
            docs = self.store.query(self.vehicles_collection, {"listParentId": list_id})
            for group in chunk(docs, self.batch_size):
                batch = self.store.batch()
                for doc in group:
                    batch.delete(self.vehicles_collection, doc.key)
                batch.commit()
                deleted += len(group)
            self.store.delete(self.lists_collection, list_id)
        except Exception as e:
            logger.error(f"Error deleting list {list_id}: {e}")
            raise ListDeleteError(
                f"Failed to delete list {list_id} ({deleted} vehicles deleted): {e}", list_id
            ) from e
        logger.info(f"Successfully deleted list {list_id} and {deleted} vehicles")
        return DeleteResult(list_id=list_id, deleted_record_count=deleted)

    # -------------------------------------------------------------------- read

    def fetch_list(self, list_id: str) -> ListMetadata | None:
        data = self.store.get(self.lists_collection, list_id)
        return ListMetadata.from_document(data) if data is not None else None

    def fetch_lists(self) -> list[ListMetadata]:
        """All lists, newest upload first."""
        docs = self.store.query(self.lists_collection)
        lists = [ListMetadata.from_document(d.data) for d in docs]
        return sorted(lists, key=lambda m: m.upload_date, reverse=True)

    def fetch_vehicles(self, list_id: str) -> list[dict[str, Any]]:
        """Stored vehicle documents of a list ordered by rowIndex."""
        docs = self.store.query(self.vehicles_collection, {"listParentId": list_id})
        return sorted((d.data for d in docs), key=lambda d: d.get("rowIndex", 0))
