from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

"""Persisted domain models: column descriptors, vehicle records, list metadata.

Python attributes are snake_case; the stored documents keep the field names the
agent application already reads (camelCase plus the lowercase ``showtoagent``
flag). to_document()/from_document() are the only place the two meet.
"""

__all__ = [
    "ListStatus",
    "ColumnDescriptor",
    "VehicleRecord",
    "ListMetadata",
    "RESERVED_RECORD_FIELDS",
]

# Fixed keys of a vehicle document; dynamic column keys must not shadow these
RESERVED_RECORD_FIELDS = frozenset({
    "id",
    "vehicleNumber",
    "lastFourDigits",
    "listParentId",
    "rowIndex",
    "createdAt",
    "updatedAt",
    "showtoagent",
})


class ListStatus(Enum):
    """Lifecycle flag of an uploaded list, toggled by admins."""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class ColumnDescriptor:
    """One spreadsheet column as configured for a list.

    The list metadata owns the canonical sequence of these. Visibility is a
    display-time filter; every record stores every column regardless.
    """
    index: int  # position in the original grid
    name: str  # original header text
    sanitized_name: str  # storage-safe field key
    show_to_agent: bool = False

    def with_visibility(self, show_to_agent: bool) -> ColumnDescriptor:
        return replace(self, show_to_agent=show_to_agent)

    def to_document(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "sanitizedName": self.sanitized_name,
            "showtoagent": self.show_to_agent,
        }

    @staticmethod
    def from_document(data: dict[str, Any], position: int = -1) -> ColumnDescriptor:
        # 旧データは index を持たないため並び順で補完
        return ColumnDescriptor(
            index=int(data.get("index", position)),
            name=str(data.get("name", "")),
            sanitized_name=str(data.get("sanitizedName", "")),
            show_to_agent=bool(data.get("showtoagent", False)),
        )


@dataclass(frozen=True)
class VehicleRecord:
    """A single vehicle keyed by its cleaned registration number."""
    vehicle_number: str  # storage key
    last_four_digits: str
    list_parent_id: str
    row_index: int  # position among accepted rows (0-based)
    created_at: str  # ISO8601 UTC
    updated_at: str  # ISO8601 UTC
    show_to_agent: bool = True
    fields: dict[str, Any] = field(default_factory=dict)  # sanitized key -> value

    @property
    def key(self) -> str:
        return self.vehicle_number

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.vehicle_number,
            "vehicleNumber": self.vehicle_number,
            "lastFourDigits": self.last_four_digits,
            "listParentId": self.list_parent_id,
            "rowIndex": self.row_index,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "showtoagent": self.show_to_agent,
        }
        doc.update(self.fields)
        return doc

    @staticmethod
    def from_document(data: dict[str, Any]) -> VehicleRecord:
        extra = {k: v for k, v in data.items() if k not in RESERVED_RECORD_FIELDS}
        number = str(data.get("vehicleNumber") or data.get("id", ""))
        return VehicleRecord(
            vehicle_number=number,
            last_four_digits=str(data.get("lastFourDigits", number[-4:])),
            list_parent_id=str(data.get("listParentId", "")),
            row_index=int(data.get("rowIndex", 0)),
            created_at=str(data.get("createdAt", "")),
            updated_at=str(data.get("updatedAt", "")),
            show_to_agent=bool(data.get("showtoagent", True)),
            fields=extra,
        )


@dataclass(frozen=True)
class ListMetadata:
    """Descriptor of one ingest run, stored in the lists collection."""
    id: str
    file_name: str
    vehicle_column_name: str
    columns: list[ColumnDescriptor]
    total_records: int
    upload_date: str  # ISO8601 UTC
    created_by: str = "admin"
    status: ListStatus = ListStatus.ACTIVE

    @property
    def visible_columns(self) -> list[ColumnDescriptor]:
        return [c for c in self.columns if c.show_to_agent]

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "vehicleColumnName": self.vehicle_column_name,
            "rows": [c.to_document() for c in self.columns],
            "totalRecords": self.total_records,
            "uploadDate": self.upload_date,
            "createdBy": self.created_by,
            "status": self.status.value,
        }

    @staticmethod
    def from_document(data: dict[str, Any]) -> ListMetadata:
        rows = data.get("rows") or []
        return ListMetadata(
            id=str(data["id"]),
            file_name=str(data.get("fileName", "")),
            vehicle_column_name=str(data.get("vehicleColumnName", "")),
            columns=[ColumnDescriptor.from_document(r, i) for i, r in enumerate(rows)],
            total_records=int(data.get("totalRecords", 0)),
            upload_date=str(data.get("uploadDate", "")),
            created_by=str(data.get("createdBy", "admin")),
            status=ListStatus(data.get("status", ListStatus.ACTIVE.value)),
        )
