"""Vehicle list ingest: RTO number cleaning/validation and batched list upload.

Public entry points:

    validate_identifier(raw)            -> ValidationOutcome
    classify_grid(grid, column_index)   -> ClassifiedGrid
    ListService(store).build_and_ingest(config, on_progress) -> IngestResult
    ListService(store).update_column_visibility(list_id, columns)
    ListService(store).delete_list(list_id) -> DeleteResult
"""

from .db.batch_upsert import IngestBatchError, IngestCancelledError
from .db.memory_store import InMemoryDocumentStore
from .errors import VehicleListError
from .excel.reader import InputError
from .models import (
    ClassifiedGrid,
    ColumnDescriptor,
    ColumnHeader,
    DeleteResult,
    IngestConfig,
    IngestProgress,
    IngestResult,
    InvalidRow,
    ListMetadata,
    ListStatus,
    ValidationOutcome,
    VehicleRecord,
)
from .services.classifier import classify_grid
from .services.list_service import ListDeleteError, ListNotFoundError, ListService
from .services.validation import normalize_identifier, validate_identifier, validate_identifiers

__all__ = [
    "normalize_identifier",
    "validate_identifier",
    "validate_identifiers",
    "classify_grid",
    "ListService",
    "InMemoryDocumentStore",
    "ClassifiedGrid",
    "ColumnDescriptor",
    "ColumnHeader",
    "DeleteResult",
    "IngestConfig",
    "IngestProgress",
    "IngestResult",
    "InvalidRow",
    "ListMetadata",
    "ListStatus",
    "ValidationOutcome",
    "VehicleRecord",
    "VehicleListError",
    "InputError",
    "IngestBatchError",
    "IngestCancelledError",
    "ListDeleteError",
    "ListNotFoundError",
]
