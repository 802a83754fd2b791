from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..models.financial_record import PERSISTED_COLUMNS, RATIO_COLUMNS

"""Read and hand-correct stored monthly P&L records.

Corrections are the operator's way to fix a record the sheet gets wrong; pair
them with a pinned field or a locked record so the next sync keeps them.
"""

__all__ = [
    "CorrectionResult",
    "RecordQueryError",
    "apply_correction",
    "fetch_record",
    "resolve_column",
]

# NOT NULL totals an inserted correction row starts from
_ZERO_DEFAULTS = (
    "gross_sales",
    "net_sales",
    "cogs",
    "labor_cost",
    "fixed_costs",
    "opex",
    "total_expenses",
    "gross_profit",
    "ebit",
)

_WRITABLE = frozenset(PERSISTED_COLUMNS.values()) | frozenset(RATIO_COLUMNS)


class RecordQueryError(Exception):
    pass


@dataclass(frozen=True)
class CorrectionResult:
    inserted: bool
    before: dict[str, Any] | None
    after: dict[str, Any]


def resolve_column(name: str) -> str:
    """Accept a category key (``labor13th``) or a column name (``labor_13th_month``)."""
    if name in PERSISTED_COLUMNS:
        return PERSISTED_COLUMNS[name]
    if name in _WRITABLE:
        return name
    raise RecordQueryError(f"unknown field: {name}")


def _row_dict(cursor: Any, row: Any) -> dict[str, Any]:
    names = [d[0] for d in cursor.description]
    return dict(zip(names, row))


def fetch_record(cursor: Any, table: str, year: int, month: int, data_type: str) -> dict[str, Any] | None:
    try:
        cursor.execute(
            f"SELECT * FROM {table} WHERE year = %s AND month = %s AND data_type = %s",
            (year, month, data_type),
        )
        row = cursor.fetchone()
    except Exception as e:
        raise RecordQueryError(str(e).strip() or type(e).__name__) from e
    if row is None:
        return None
    return _row_dict(cursor, row)


def apply_correction(
    cursor: Any,
    table: str,
    year: int,
    month: int,
    data_type: str,
    updates: Mapping[str, float],
) -> CorrectionResult:
    """Update the stored record, inserting a zero-filled one when absent."""
    if not updates:
        raise RecordQueryError("no updates given")
    columns = {resolve_column(k): v for k, v in updates.items()}
    before = fetch_record(cursor, table, year, month, data_type)
    now = datetime.now(UTC)
    try:
        if before is None:
            row: dict[str, Any] = {"year": year, "month": month, "data_type": data_type, "synced_at": now}
            row.update(dict.fromkeys(_ZERO_DEFAULTS, 0))
            row.update(columns)
            names = list(row)
            cols_sql = ",".join(f'"{n}"' for n in names)
            placeholders = ",".join(["%s"] * len(names))
            cursor.execute(
                f"INSERT INTO {table} ({cols_sql}) VALUES ({placeholders})",
                tuple(row[n] for n in names),
            )
        else:
            assignments = ",".join(f'"{c}" = %s' for c in columns)
            cursor.execute(
                f"UPDATE {table} SET {assignments} WHERE year = %s AND month = %s AND data_type = %s",
                (*columns.values(), year, month, data_type),
            )
    except Exception as e:
        raise RecordQueryError(str(e).strip() or type(e).__name__) from e
    after = fetch_record(cursor, table, year, month, data_type)
    return CorrectionResult(inserted=before is None, before=before, after=after or {})
