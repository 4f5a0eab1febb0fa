from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per rejected row or failed batch. row=-1 marks list-level errors
(batch commit failures, delete failures) where no single row applies. The key set
is fixed by vehicle_lists/logging/error_log_schema.json.
"""

__all__ = [
    "ErrorRecord",
    "utc_timestamp",
]


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO8601 UTC timestamp with a 'Z' suffix."""
    moment = now if now is not None else datetime.now(UTC)
    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        list_id: target list id ("" before one was generated)
        row: 1-based spreadsheet line, -1 for list-level errors
        error_type: UPPER_SNAKE_CASE classification
        value: offending raw value ("" when not applicable)
        message: human readable reason
    """
    timestamp: str
    file: str
    list_id: str
    row: int
    error_type: str
    value: str
    message: str

    @staticmethod
    def create(
        file: str, list_id: str, row: int, error_type: str, message: str, value: str = ""
    ) -> ErrorRecord:
        return ErrorRecord(
            timestamp=utc_timestamp(),
            file=file,
            list_id=list_id,
            row=row,
            error_type=error_type,
            value=value,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
