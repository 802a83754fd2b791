from __future__ import annotations

from typing import Any

"""Audit row written to ``sync_logs`` after each sync."""

__all__ = ["SYNC_TYPE", "SyncLogError", "insert_sync_log"]

SYNC_TYPE = "pnl"


class SyncLogError(Exception):
    pass


def insert_sync_log(
    cursor: Any,
    table: str,
    *,
    sheet_name: str,
    status: str,
    rows_processed: int,
    error_message: str | None = None,
) -> None:
    sql = (
        f"INSERT INTO {table} (sync_type, sheet_name, status, rows_processed, error_message) "
        "VALUES (%s, %s, %s, %s, %s)"
    )
    try:
        cursor.execute(sql, (SYNC_TYPE, sheet_name, status, rows_processed, error_message))
    except Exception as e:
        raise SyncLogError(str(e).strip() or type(e).__name__) from e
