from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import AppConfig, ConfigError, load_config_or_default
from ..db.batch_upsert import IngestBatchError, IngestCancelledError
from ..db.memory_store import InMemoryDocumentStore
from ..db.store import DocumentStore, StoreError
from ..excel.reader import InputError, column_headers, read_grid, resolve_column
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.ingest_models import IngestConfig
from ..models.vehicle_record import ListStatus
from ..services.agent_view import EMPTY_CELL, agent_visible_fields, build_agent_preview
from ..services.classifier import classify_grid
from ..services.list_service import ListDeleteError, ListNotFoundError, ListService
from ..services.progress import BatchProgressBar
from ..services.summary import render_summary_body
from ..services.validation import validate_identifier, validate_identifiers

"""CLI entrypoint: python -m vehicle_lists.cli <command>.

Commands: validate, check, ingest, lists, show, columns, status, delete.

Store selection:
- DISABLE_DB_CONNECT=1 -> in-memory store (nothing persists; dry runs, tests)
- otherwise PostgreSQL, connection settings from .env / environment / config
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values take precedence over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="vehicle-lists", description="Vehicle list validation and upload"
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="YAML config path")
    sub = p.add_subparsers(dest="command", required=True)

    v = sub.add_parser("validate", help="Validate vehicle numbers given on the command line")
    v.add_argument("values", nargs="+")

    for name, help_text in (
        ("check", "Classify a workbook without writing anything"),
        ("ingest", "Validate a workbook and upload it as a new list"),
    ):
        s = sub.add_parser(name, help=help_text)
        s.add_argument("file", type=Path)
        s.add_argument("--column", required=True, help="Vehicle number column (name or index)")
        s.add_argument("--agent-columns", default="", help="Comma separated columns shown to agents")
        s.add_argument("--sheet", default=None, help="Sheet name (default: first sheet)")

    sub.add_parser("lists", help="Show stored lists, newest first")

    c = sub.add_parser("columns", help="Change agent visibility of list columns")
    c.add_argument("list_id")
    c.add_argument("--show", action="append", default=[], metavar="COLUMN")
    c.add_argument("--hide", action="append", default=[], metavar="COLUMN")
    c.add_argument("--toggle", action="append", default=[], metavar="SANITIZED_NAME")

    sh = sub.add_parser("show", help="Show a list's vehicles as agents see them")
    sh.add_argument("list_id")
    sh.add_argument("--limit", type=int, default=20, help="Max vehicles to print (0 = all)")

    st = sub.add_parser("status", help="Set list status")
    st.add_argument("list_id")
    st.add_argument("value", choices=[s.value for s in ListStatus])

    d = sub.add_parser("delete", help="Delete a list and all of its vehicles")
    d.add_argument("list_id")
    return p.parse_args(argv)


def _open_store(cfg: AppConfig, logger: logging.Logger) -> DocumentStore:
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> in-memory store")
        return InMemoryDocumentStore()
    from ..db.pg_store import connect_store

    return connect_store(cfg.database, max_batch_operations=cfg.batch_size)


def _agent_columns(grid: list[list[Any]], selection: str) -> list[int]:
    return [resolve_column(grid, part.strip()) for part in selection.split(",") if part.strip()]


def _cmd_validate(args: argparse.Namespace) -> int:
    for value in args.values:
        outcome = validate_identifier(value)
        status = "VALID" if outcome.is_valid else "INVALID"
        detail = f" ({outcome.error})" if outcome.error else ""
        print(f"{status} {value!r} -> {outcome.cleaned_value or ''}{detail}")
    summary = validate_identifiers(args.values)
    print(f"total={summary.total_count} valid={summary.valid_count} invalid={summary.invalid_count}")
    return EXIT_SUCCESS_ALL if summary.invalid_count == 0 else EXIT_PARTIAL_FAILURE


def _cmd_check(args: argparse.Namespace, logger: logging.Logger) -> int:
    grid = read_grid(args.file, sheet_name=args.sheet)
    column = resolve_column(grid, args.column)
    result = classify_grid(grid, column)
    logger.info(
        f"{args.file.name}: rows={len(grid) - 1} valid={result.valid_count} "
        f"invalid={result.invalid_count}"
    )
    for r in result.invalid_rows:
        logger.warning(f"row {r.row_index}: '{r.original_value}' -> '{r.cleaned_value}' {r.error}")
    if args.agent_columns:
        headers, rows = build_agent_preview(
            result.cleaned_data, column, _agent_columns(grid, args.agent_columns), column_headers(grid)
        )
        print("  preview: " + " | ".join(headers))
        for row in rows:
            print("           " + " | ".join(str(v) for v in row))
    return EXIT_SUCCESS_ALL if result.invalid_count == 0 else EXIT_PARTIAL_FAILURE


def _cmd_ingest(
    args: argparse.Namespace, service: ListService, cfg: AppConfig, logger: logging.Logger
) -> int:
    grid = read_grid(args.file, sheet_name=args.sheet)
    column = resolve_column(grid, args.column)
    request = IngestConfig(
        file_name=args.file.name,
        vehicle_column_index=column,
        vehicle_column_name=str(grid[0][column]),
        agent_view_columns=_agent_columns(grid, args.agent_columns),
        column_headers=column_headers(grid),
        grid=grid,
        created_by=cfg.created_by,
    )
    with BatchProgressBar() as bar:
        try:
            result = service.build_and_ingest(request, on_progress=bar.update)
        except (IngestBatchError, IngestCancelledError) as e:
            logger.error(f"ingest: {e}")
            return EXIT_PARTIAL_FAILURE if e.batches_committed > 0 else EXIT_FATAL
    log_summary(render_summary_body(result))
    return EXIT_SUCCESS_ALL


def _cmd_lists(service: ListService) -> int:
    for m in service.fetch_lists():
        visible = len(m.visible_columns)
        print(
            f"{m.id} file={m.file_name} records={m.total_records} status={m.status.value} "
            f"uploaded={m.upload_date} visible_columns={visible}/{len(m.columns)}"
        )
    return EXIT_SUCCESS_ALL


def _cmd_columns(args: argparse.Namespace, service: ListService) -> int:
    changes = {name: True for name in args.show}
    changes.update({name: False for name in args.hide})
    columns = None
    if changes:
        columns = service.set_visibility(args.list_id, changes)
    for name in args.toggle:
        columns = service.toggle_column(args.list_id, name)
    if columns is None:
        current = service.fetch_list(args.list_id)
        if current is None:
            raise ListNotFoundError(f"list not found: {args.list_id}")
        columns = current.columns
    for col in columns:
        print(f"{col.sanitized_name} ({col.name}): {'Visible' if col.show_to_agent else 'Hidden'}")
    return EXIT_SUCCESS_ALL


def _cmd_show(args: argparse.Namespace, service: ListService) -> int:
    meta = service.fetch_list(args.list_id)
    if meta is None:
        raise ListNotFoundError(f"list not found: {args.list_id}")
    vehicles = service.fetch_vehicles(args.list_id)
    print(
        f"{meta.id} file={meta.file_name} vehicle_column={meta.vehicle_column_name} "
        f"records={len(vehicles)} status={meta.status.value}"
    )
    shown = vehicles if args.limit <= 0 else vehicles[:args.limit]
    for doc in shown:
        view = agent_visible_fields(doc, meta.columns)
        print("  " + " | ".join(f"{k}={EMPTY_CELL if v in (None, '') else v}" for k, v in view.items()))
    if len(shown) < len(vehicles):
        print(f"  ... {len(vehicles) - len(shown)} more")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] を渡されたときに sys.argv が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)

    try:
        cfg = load_config_or_default(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "validate":
        return _cmd_validate(args)
    if args.command == "check":
        try:
            return _cmd_check(args, logger)
        except InputError as e:
            logger.error(f"input: {e}")
            return EXIT_FATAL

    try:
        store = _open_store(cfg, logger)
    except StoreError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.error_log_dir)
    service = ListService.from_config(store, cfg, error_log=error_log)
    try:
        if args.command == "ingest":
            return _cmd_ingest(args, service, cfg, logger)
        if args.command == "lists":
            return _cmd_lists(service)
        if args.command == "columns":
            return _cmd_columns(args, service)
        if args.command == "show":
            return _cmd_show(args, service)
        if args.command == "status":
            service.set_list_status(args.list_id, args.value)
            return EXIT_SUCCESS_ALL
        if args.command == "delete":
            result = service.delete_list(args.list_id)
            log_summary(f"list={result.list_id} deleted_vehicles={result.deleted_record_count}")
            return EXIT_SUCCESS_ALL
    except InputError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL
    except ListNotFoundError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except (ListDeleteError, StoreError) as e:
        logger.error(f"storage: {e}")
        return EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")
    return EXIT_FATAL  # pragma: no cover - argparse rejects unknown commands
