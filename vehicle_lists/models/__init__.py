"""Domain models for the vehicle list ingest tool.

Validation results, persisted list/vehicle documents and ingest request/result
types used throughout the package.
"""

from .error_record import ErrorRecord
from .ingest_models import (
    BatchStatsAccumulator,
    ColumnHeader,
    DeleteResult,
    IngestConfig,
    IngestProgress,
    IngestResult,
)
from .validation_result import ClassifiedGrid, IdentifierBatchSummary, InvalidRow, ValidationOutcome
from .vehicle_record import ColumnDescriptor, ListMetadata, ListStatus, VehicleRecord

__all__ = [
    # Validation
    "ValidationOutcome",
    "InvalidRow",
    "ClassifiedGrid",
    "IdentifierBatchSummary",
    # Persisted documents
    "ColumnDescriptor",
    "VehicleRecord",
    "ListMetadata",
    "ListStatus",
    # Ingest
    "ColumnHeader",
    "IngestConfig",
    "IngestProgress",
    "IngestResult",
    "DeleteResult",
    "BatchStatsAccumulator",
    # Logging
    "ErrorRecord",
]
