from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.ingest_models import IngestProgress

"""Batch progress display with tqdm (TTY only).

The ingest itself reports progress as IngestProgress events; this module only
renders them. In non-TTY environments (CI, redirected output) no bar is created
so log output stays free of control sequences.
"""

__all__ = [
    "BatchProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class BatchProgressBar:
    """Renders IngestProgress events as a tqdm bar over batches."""

    def __init__(self, *, description: str = "Uploading vehicles") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        self.last: IngestProgress | None = None

    def update(self, progress: IngestProgress) -> None:
        """Callback for ListService.build_and_ingest(on_progress=...)."""
        self.last = progress
        if not self.enabled:
            return
        if self.pbar is None:
            self.pbar = tqdm(
                total=progress.total_batches,
                desc=self.description,
                unit="batch",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        self.pbar.update(progress.batches_completed - self.pbar.n)
        self.pbar.set_postfix(
            records=f"{progress.records_processed}/{progress.total_records}",
            pct=f"{progress.percent_complete:.1f}",
        )

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> BatchProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
