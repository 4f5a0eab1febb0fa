from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..models.validation_result import InvalidRow

"""Error log buffering (JSON Lines, fixed schema).

- one file per run: <log_dir>/errors-YYYYMMDD-HHMMSS.log (UTC), created lazily
- records are buffered and appended on flush()
- serial use only
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "SCHEMA_PATH",
    "INVALID_VEHICLE_NUMBER",
    "BATCH_COMMIT_ERROR",
]

SCHEMA_PATH = Path(__file__).with_name("error_log_schema.json")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

INVALID_VEHICLE_NUMBER = "INVALID_VEHICLE_NUMBER"
BATCH_COMMIT_ERROR = "BATCH_COMMIT_ERROR"


class ErrorLogBuffer:
    """In-memory buffer for error records. flush() writes JSON Lines."""

    def __init__(self, log_dir: Path | str = "./logs") -> None:
        self._log_dir = Path(log_dir)
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._log_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend_invalid_rows(self, file: str, list_id: str, rows: Iterable[InvalidRow]) -> None:
        for r in rows:
            self.append(
                ErrorRecord.create(
                    file=file,
                    list_id=list_id,
                    row=r.row_index,
                    error_type=INVALID_VEHICLE_NUMBER,
                    message=r.error,
                    value=r.original_value,
                )
            )

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records; returns the file path, or None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
