from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import requests

from ..db.sync_log import SyncLogError, insert_sync_log
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import SourceConfig, SyncConfig
from ..models.processing_result import (
    STATUS_FAILED,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    SyncDiagnostics,
    SyncResult,
)
from ..sheets.fetch import SheetFetchError, fetch_csv_grid, fetch_sheet_values_grid
from ..sheets.headers import NoHeaderFound, SheetLayoutError
from ..sheets.reader import Grid, GridReadError, read_grid_file
from .aggregator import FinancialAggregator
from .classifier import SheetRowClassifier
from .overrides import OverrideTable
from .writer import UpsertWriter

"""Sync pipeline: fetch -> classify -> aggregate -> write.

``run_sync`` never raises for sheet or data problems; fatal failures come back
as a SyncResult with ``success=False`` plus ``error`` / ``error_type`` and the
diagnostics needed to fix the sheet.
"""

__all__ = ["SyncError", "load_grid", "run_sync", "source_label"]

logger = logging.getLogger(__name__)

ERROR_TYPE_FETCH = "FETCH_ERROR"
ERROR_TYPE_TRANSACTION = "TRANSACTION_ERROR"
ERROR_TYPE_WRITE = "WRITE_ERROR"
ERROR_TYPE_ROW_PARSE = "ROW_PARSE_WARNING"
ERROR_TYPE_SYNC_LOG = "SYNC_LOG_ERROR"

SHEET_LEVEL_ROW = -1


class SyncError(Exception):
    """Configuration problem that prevents a sync from starting."""


def source_label(source: SourceConfig) -> str:
    if source.file:
        return Path(source.file).name
    if source.csv_url:
        return f"{source.sheet_name} (csv)"
    return source.sheet_name


def load_grid(
    source: SourceConfig,
    *,
    api_key: str | None = None,
    session: requests.Session | None = None,
) -> Grid:
    """Read the grid from the configured source: file > csv_url > Sheets API.

    Raises:
        SheetFetchError: network / API failure
        GridReadError: local file missing or unreadable
        SyncError: no usable source configured
    """
    if source.file:
        return read_grid_file(Path(source.file), source.sheet_name)
    if source.csv_url:
        return fetch_csv_grid(source.csv_url, session=session, timeout=source.timeout_seconds)
    if source.sheet_id:
        return fetch_sheet_values_grid(
            source.sheet_id,
            source.sheet_name,
            api_key if api_key is not None else os.getenv("GOOGLE_API_KEY", ""),
            cell_range=source.range,
            session=session,
            timeout=source.timeout_seconds,
        )
    raise SyncError("no source configured: set source.file, source.csv_url or source.sheet_id")


def _layout_diagnostics(grid: Grid, error: SheetLayoutError) -> SyncDiagnostics:
    debug = error.debug
    if isinstance(error, NoHeaderFound):
        return SyncDiagnostics(
            total_rows=len(grid),
            scanned_cells=debug.get("firstFiveRows", []),
            hint=debug.get("hint"),
        )
    return SyncDiagnostics(
        total_rows=len(grid),
        header_row_index=debug.get("headerRowIndex"),
        raw_header_row=list(debug.get("headerRowCells", [])),
        hint=debug.get("hint"),
    )


def _failure(
    start: datetime,
    error: str,
    error_type: str,
    diagnostics: SyncDiagnostics | None = None,
    **counts: Any,
) -> SyncResult:
    end = datetime.now(UTC)
    return SyncResult(
        success=False,
        status=STATUS_FAILED,
        processed=counts.get("processed", 0),
        locked=counts.get("locked", 0),
        failed=counts.get("failed", 0),
        total_months=counts.get("total_months", 0),
        month_columns=counts.get("month_columns", []),
        categories_found=counts.get("categories_found", []),
        errors=[error],
        warning_count=counts.get("warning_count", 0),
        warnings=[],
        diagnostics=diagnostics or SyncDiagnostics(),
        start_time=start,
        end_time=end,
        elapsed_seconds=(end - start).total_seconds(),
        error=error,
        error_type=error_type,
    )


def _status(processed: int, failed: int) -> str:
    if processed == 0:
        return STATUS_FAILED
    if failed:
        return STATUS_PARTIAL
    return STATUS_SUCCESS


def run_sync(
    config: SyncConfig,
    cursor: Any = None,
    *,
    grid: Grid | None = None,
    session: requests.Session | None = None,
    api_key: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> SyncResult:
    """Run one sync.

    Parameters
    ----------
    config: loaded SyncConfig
    cursor: psycopg2 cursor; None means dry-run (rows built, nothing written)
    grid: pre-read grid, skips the fetch step
    session: requests session for the fetch (tests pass a stub)
    error_log: buffer for the JSON Lines error log, flushed once before returning
    """
    start = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer(config.logs_dir)
    sheet = source_label(config.source)
    limit = config.error_sample_limit
    try:
        return _run(config, cursor, grid, session, api_key, error_log, sheet, limit, start)
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info("error log written: %s", path)


def _run(
    config: SyncConfig,
    cursor: Any,
    grid: Grid | None,
    session: requests.Session | None,
    api_key: str | None,
    error_log: ErrorLogBuffer,
    sheet: str,
    limit: int,
    start: datetime,
) -> SyncResult:
    if grid is None:
        try:
            grid = load_grid(config.source, api_key=api_key, session=session)
        except (SheetFetchError, GridReadError, SyncError) as e:
            logger.error("fetch: %s", e)
            error_log.add(sheet, SHEET_LEVEL_ROW, ERROR_TYPE_FETCH, str(e))
            return _failure(start, str(e), ERROR_TYPE_FETCH)
    logger.info("read %d rows from %s", len(grid), sheet)

    classifier = SheetRowClassifier(
        year_override=config.source.year_override,
        header_row_index=config.source.header_row,
    )
    try:
        classification = classifier.classify(grid)
    except SheetLayoutError as e:
        logger.error("layout: %s", e)
        error_log.add(sheet, SHEET_LEVEL_ROW, e.error_type, str(e))
        return _failure(start, str(e), e.error_type, _layout_diagnostics(grid, e))

    warnings = [w.describe() for w in classification.warnings]
    for w in classification.warnings:
        error_log.add(sheet, w.row, ERROR_TYPE_ROW_PARSE, w.describe())
    if warnings:
        logger.warning("%d unparseable cells counted as zero", len(warnings))

    records = FinancialAggregator().finalize(classification.records.values())
    logger.info(
        "%d of %d month records carry data", len(records), len(classification.records)
    )

    writer = UpsertWriter(cursor, config.tables.pnl_monthly, OverrideTable.from_config(config.overrides))
    counts: dict[str, Any] = {
        "total_months": len(classification.records),
        "month_columns": [c.header for c in classification.month_columns],
        "categories_found": classification.categories_found,
        "warning_count": len(warnings),
    }
    errors: list[str] = []
    try:
        if cursor is not None:
            cursor.execute("BEGIN")
        report = writer.write(records)
        if cursor is not None:
            logger.info("upserted %d records in %.3fs", report.written, report.upsert_seconds)
        errors.extend(e.describe() for e in report.errors)
        for e in report.errors:
            error_log.add(sheet, SHEET_LEVEL_ROW, ERROR_TYPE_WRITE, e.describe())
        status = _status(report.processed, report.failed)
        if cursor is not None:
            sync_log_error = _log_sync(cursor, config, status, report.processed, errors)
            if sync_log_error is not None:
                # a missing audit row downgrades the run
                if status == STATUS_SUCCESS:
                    status = STATUS_PARTIAL
                errors.append(sync_log_error)
                error_log.add(sheet, SHEET_LEVEL_ROW, ERROR_TYPE_SYNC_LOG, sync_log_error)
            cursor.execute("COMMIT")
    except Exception as e:
        message = f"transaction failed: {e}"
        if cursor is not None:
            try:
                cursor.execute("ROLLBACK")
            except Exception as rollback_error:
                message += f" (rollback failed: {rollback_error})"
        logger.error(message)
        error_log.add(sheet, SHEET_LEVEL_ROW, ERROR_TYPE_TRANSACTION, message)
        return _failure(start, message, ERROR_TYPE_TRANSACTION, classification.diagnostics, **counts)

    end = datetime.now(UTC)
    return SyncResult(
        success=report.processed > 0,
        status=status,
        processed=report.processed,
        locked=report.locked,
        failed=report.failed,
        errors=errors[:limit],
        warnings=warnings[:limit],
        diagnostics=classification.diagnostics,
        start_time=start,
        end_time=end,
        elapsed_seconds=(end - start).total_seconds(),
        rows=report.rows,
        **counts,
    )


def _log_sync(cursor: Any, config: SyncConfig, status: str, processed: int, errors: list[str]) -> str | None:
    """Insert the sync_logs row under a savepoint. Returns the error message on failure."""
    cursor.execute("SAVEPOINT sync_log")
    try:
        insert_sync_log(
            cursor,
            config.tables.sync_logs,
            sheet_name=config.source.sheet_name,
            status=status,
            rows_processed=processed,
            error_message="; ".join(errors) if errors else None,
        )
    except SyncLogError as e:
        cursor.execute("ROLLBACK TO SAVEPOINT sync_log")
        logger.error("sync log: %s", e)
        return f"sync log error: {e}"
    cursor.execute("RELEASE SAVEPOINT sync_log")
    return None
