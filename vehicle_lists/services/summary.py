from __future__ import annotations

from ..models.ingest_models import IngestResult

"""SUMMARY line rendering for a completed ingest.

Format:
SUMMARY list={id} rows={rows} valid={valid} invalid={invalid} new={new}
updated={updated} batches={batches} elapsed_sec={elapsed} throughput_rps={rps}
"""


def format_number(value: float) -> str:
    """0 -> "0", integral -> "2", tiny -> fixed notation, otherwise str()."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_body(result: IngestResult) -> str:
    """key=value part of the SUMMARY line; log_summary() adds the label."""
    c = result.classification
    return (
        f"list={result.list_id} "
        f"rows={c.valid_count + c.invalid_count} "
        f"valid={c.valid_count} "
        f"invalid={c.invalid_count} "
        f"new={result.new_count} "
        f"updated={result.updated_count} "
        f"batches={result.total_batches} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )


def render_summary_line(result: IngestResult) -> str:
    """Render the SUMMARY line for an IngestResult.

    >>> from vehicle_lists.models import ClassifiedGrid
    >>> grid = ClassifiedGrid(cleaned_data=[["no"], ["DL01AB1234"]], valid_count=1, invalid_count=0)
    >>> r = IngestResult(list_id="f_20250101", new_count=1, updated_count=0, total_count=1,
    ...                  classification=grid, elapsed_seconds=2.0, total_batches=1)
    >>> render_summary_line(r)
    'SUMMARY list=f_20250101 rows=1 valid=1 invalid=0 new=1 updated=0 batches=1 elapsed_sec=2 throughput_rps=0.5'
    """
    return f"SUMMARY {render_summary_body(result)}"
