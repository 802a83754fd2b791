from __future__ import annotations

import json
from pathlib import Path

import pytest

import pnl_sync.db.upsert as up
from pnl_sync.logging.error_log import ErrorLogBuffer
from pnl_sync.models.config_models import (
    LockedRecord,
    OverrideConfig,
    PinnedField,
    SourceConfig,
    SyncConfig,
)
from pnl_sync.services.orchestrator import SyncError, load_grid, run_sync, source_label


@pytest.fixture()
def config(temp_workdir: Path) -> SyncConfig:
    return SyncConfig(
        source=SourceConfig(sheet_name="PnL 2026"),
        overrides=OverrideConfig(
            locked_records=(LockedRecord(2025, 1, "budget"),),
            pinned_fields=(PinnedField(2025, 1, "actual", "ebit", -131441604),),
        ),
        logs_dir=str(temp_workdir / "logs"),
    )


def test_dry_run_result(config, pnl_grid):
    result = run_sync(config, grid=pnl_grid)
    assert result.success
    assert result.status == "success"
    assert result.total_months == 4
    assert result.locked == 1
    assert result.processed == 2
    assert result.month_columns == ["Jan 25", "Jan-25 Actual", "Feb 25", "Feb-25 Actual"]
    [row] = result.rows
    assert row["data_type"] == "actual"
    assert row["ebit"] == -131441604
    assert row["opex"] == 12000
    assert row["labor_percentage"] == 24.71


def test_live_run_wraps_writes_in_transaction(config, pnl_grid, dummy_cursor, captured_upserts):
    result = run_sync(config, dummy_cursor, grid=pnl_grid)
    assert result.status == "success"
    stmts = dummy_cursor.statements
    assert stmts[0] == "BEGIN"
    assert stmts[-1] == "COMMIT"
    log_sql, params = next(q for q in dummy_cursor.queries if "sync_logs" in q[0])
    assert params == ("pnl", "PnL 2026", "success", 2, None)
    assert len(captured_upserts) == 1


def test_write_failure_is_partial(config, pnl_grid, dummy_cursor, monkeypatch):
    def failing(cursor, sql, rows, page_size=100):
        raise RuntimeError("permission denied for table pnl_monthly")

    monkeypatch.setattr(up, "execute_values", failing)
    result = run_sync(config, dummy_cursor, grid=pnl_grid)
    # the locked record still counts as processed
    assert result.status == "partial"
    assert result.failed == 1
    assert result.errors[0].startswith("Insert error for 2025-1 (actual)")
    _, params = next(q for q in dummy_cursor.queries if "sync_logs" in q[0])
    assert params[2] == "partial"
    assert "permission denied" in params[4]


def test_layout_failure_is_structured(config):
    grid = [["no", "header", "here"]]
    result = run_sync(config, grid=grid)
    assert not result.success
    assert result.error_type == "NO_HEADER_FOUND"
    assert result.diagnostics.scanned_cells[0]["rowIndex"] == 0
    assert result.diagnostics.hint


def test_error_log_flushed_once(config, pnl_grid):
    grid = [row[:] for row in pnl_grid]
    grid[3][5] = "#REF!"
    buf = ErrorLogBuffer(config.logs_dir)
    result = run_sync(config, grid=grid, error_log=buf)
    assert result.warning_count == 1
    assert len(buf) == 0
    lines = buf.file_path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["error_type"] == "ROW_PARSE_WARNING"


def test_transaction_error_rolls_back(config, pnl_grid, cursor_factory):
    class BrokenCursor(cursor_factory):
        def execute(self, sql, params=None):
            super().execute(sql, params)
            if sql.startswith("SAVEPOINT"):
                raise RuntimeError("server closed the connection")

    cur = BrokenCursor()
    result = run_sync(config, cur, grid=pnl_grid)
    assert result.error_type == "TRANSACTION_ERROR"
    assert cur.statements[-1] == "ROLLBACK"


def test_no_source_configured(config):
    result = run_sync(config)
    assert result.error_type == "FETCH_ERROR"
    with pytest.raises(SyncError):
        load_grid(SourceConfig())


def test_load_grid_prefers_file(temp_workdir: Path):
    f = temp_workdir / "data" / "pnl.csv"
    f.write_text("a,b,c\n", encoding="utf-8")
    source = SourceConfig(file=str(f), csv_url="https://example.test/never")
    assert load_grid(source) == [["a", "b", "c"]]
    assert source_label(source) == "pnl.csv"
    assert source_label(SourceConfig(csv_url="u")) == "PnL 2026 (csv)"


def test_sync_log_failure_is_reported_not_fatal(config, pnl_grid, cursor_factory, captured_upserts):
    class NoAuditTable(cursor_factory):
        def execute(self, sql, params=None):
            super().execute(sql, params)
            if "sync_logs" in sql:
                raise RuntimeError('relation "sync_logs" does not exist')

    cur = NoAuditTable()
    buf = ErrorLogBuffer(config.logs_dir)
    result = run_sync(config, cur, grid=pnl_grid, error_log=buf)
    assert result.error_type is None
    assert result.status == "partial"
    assert result.processed == 2
    assert result.errors == ['sync log error: relation "sync_logs" does not exist']
    stmts = cur.statements
    assert stmts.index("ROLLBACK TO SAVEPOINT sync_log") < stmts.index("COMMIT")
    assert "RELEASE SAVEPOINT sync_log" not in stmts
    types = [json.loads(line)["error_type"] for line in buf.file_path.read_text(encoding="utf-8").splitlines()]
    assert types == ["SYNC_LOG_ERROR"]


def test_failed_rollback_still_returns_structured_failure(config, pnl_grid, cursor_factory):
    class DroppedConnection(cursor_factory):
        def execute(self, sql, params=None):
            super().execute(sql, params)
            if sql.startswith("SAVEPOINT") or sql == "ROLLBACK":
                raise RuntimeError("connection already closed")

    result = run_sync(config, DroppedConnection(), grid=pnl_grid)
    assert result.error_type == "TRANSACTION_ERROR"
    assert result.status == "failed"
    assert result.error == (
        "transaction failed: connection already closed (rollback failed: connection already closed)"
    )
