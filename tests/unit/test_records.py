from __future__ import annotations

import pytest

from pnl_sync.db.records import RecordQueryError, apply_correction, fetch_record, resolve_column

COLUMNS = ["id", "year", "month", "data_type", "cogs", "ebit"]


def test_fetch_record_maps_columns(cursor_factory):
    cur = cursor_factory(rows=[(7, 2025, 1, "actual", 10, -5)], columns=COLUMNS)
    row = fetch_record(cur, "pnl_monthly", 2025, 1, "actual")
    assert row == {"id": 7, "year": 2025, "month": 1, "data_type": "actual", "cogs": 10, "ebit": -5}
    assert cur.queries[0][1] == (2025, 1, "actual")


def test_fetch_record_missing(cursor_factory):
    assert fetch_record(cursor_factory(), "pnl_monthly", 2025, 1, "actual") is None


def test_resolve_column_accepts_keys_and_columns():
    assert resolve_column("labor13th") == "labor_13th_month"
    assert resolve_column("labor_13th_month") == "labor_13th_month"
    assert resolve_column("ebit_margin") == "ebit_margin"
    with pytest.raises(RecordQueryError):
        resolve_column("id")


def test_correction_updates_existing_row(cursor_factory):
    cur = cursor_factory(
        rows=[(7, 2025, 1, "actual", 10, -5), (7, 2025, 1, "actual", 10, -131441604)],
        columns=COLUMNS,
    )
    outcome = apply_correction(cur, "pnl_monthly", 2025, 1, "actual", {"ebit": -131441604})
    assert not outcome.inserted
    assert outcome.before["ebit"] == -5
    assert outcome.after["ebit"] == -131441604
    update_sql, params = cur.queries[1]
    assert update_sql.startswith('UPDATE pnl_monthly SET "ebit" = %s')
    assert params == (-131441604, 2025, 1, "actual")


def test_correction_inserts_zero_filled_row(cursor_factory):
    cur = cursor_factory(rows=[None, (1, 2025, 2, "budget", 0, 99)], columns=COLUMNS)
    outcome = apply_correction(cur, "pnl_monthly", 2025, 2, "budget", {"ebit": 99})
    assert outcome.inserted
    assert outcome.before is None
    insert_sql, params = cur.queries[1]
    assert insert_sql.startswith("INSERT INTO pnl_monthly")
    assert '"gross_sales"' in insert_sql
    assert 99 in params


def test_correction_requires_updates(cursor_factory):
    with pytest.raises(RecordQueryError):
        apply_correction(cursor_factory(), "pnl_monthly", 2025, 1, "actual", {})
