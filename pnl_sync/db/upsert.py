from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

"""Idempotent upsert into the monthly P&L table.

One statement per record: ``INSERT ... VALUES %s ON CONFLICT (key) DO UPDATE``
via psycopg2.extras.execute_values. Every non-key column present in the row is
overwritten (full replace, no merge); columns absent from the row keep their
stored value, which is how pinned fields survive a re-sync.
"""

try:  # pragma: no cover - optional until psycopg2 present at runtime
    import psycopg2
    from psycopg2.extras import execute_values
except Exception:  # pragma: no cover
    psycopg2 = None  # type: ignore
    execute_values = None  # type: ignore

__all__ = [
    "CONFLICT_COLUMNS",
    "UpsertError",
    "UpsertMetrics",
    "build_upsert_sql",
    "upsert_row",
]

CONFLICT_COLUMNS: tuple[str, ...] = ("year", "month", "data_type")


class UpsertError(Exception):
    pass


@dataclass(frozen=True)
class UpsertMetrics:
    """Timing of a single upsert statement."""
    table: str
    elapsed_seconds: float
    start_time: float
    end_time: float


def build_upsert_sql(table: str, columns: Sequence[str], conflict: Sequence[str] = CONFLICT_COLUMNS) -> str:
    """SQL for execute_values; ``table`` is trusted config, columns are quoted.

    >>> build_upsert_sql("pnl_monthly", ["year", "month", "data_type", "ebit"])
    'INSERT INTO pnl_monthly ("year","month","data_type","ebit") VALUES %s ON CONFLICT ("year","month","data_type") DO UPDATE SET "ebit"=EXCLUDED."ebit"'
    """
    missing = [c for c in conflict if c not in columns]
    if missing:
        raise UpsertError(f"row lacks conflict columns: {missing}")
    cols_sql = ",".join(f'"{c}"' for c in columns)
    conflict_sql = ",".join(f'"{c}"' for c in conflict)
    updates = [f'"{c}"=EXCLUDED."{c}"' for c in columns if c not in conflict]
    if not updates:
        return f"INSERT INTO {table} ({cols_sql}) VALUES %s ON CONFLICT ({conflict_sql}) DO NOTHING"
    return (
        f"INSERT INTO {table} ({cols_sql}) VALUES %s "
        f"ON CONFLICT ({conflict_sql}) DO UPDATE SET {','.join(updates)}"
    )


def upsert_row(
    cursor: Any,
    table: str,
    row: Mapping[str, Any],
    conflict: Sequence[str] = CONFLICT_COLUMNS,
    metrics_callback: Callable[[UpsertMetrics], None] | None = None,
) -> None:
    """Insert or fully replace one record keyed by ``conflict``.

    Raises:
        UpsertError: psycopg2 missing, malformed row, or the database rejected it
    """
    if execute_values is None:
        raise UpsertError("psycopg2 not available")

    columns = list(row.keys())
    sql = build_upsert_sql(table, columns, conflict)
    values = [tuple(row[c] for c in columns)]

    start_time = time.time()
    try:
        execute_values(cursor, sql, values, page_size=1)
    except Exception as e:
        raise UpsertError(str(e).strip() or type(e).__name__) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                UpsertMetrics(
                    table=table,
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
