# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from pnl_sync.logging.init import reset_logging

HEADER = ["", "", "", "", "", "Jan 25", "Jan-25 Actual", "Feb 25", "Feb-25 Actual"]


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
        reset_logging()
        yield p
        reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source:
  sheet_name: PnL 2026
  file: ./data/pnl.csv
tables:
  pnl_monthly: pnl_monthly
  sync_logs: sync_logs
overrides:
  locked_records:
    - {year: 2025, month: 1, data_type: budget}
  pinned_fields:
    - {year: 2025, month: 1, data_type: actual, field: ebit, value: -131441604}
error_sample_limit: 5
logs_dir: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def pnl_grid() -> list[list[str]]:
    """A trimmed copy of the live sheet: two months, budget and actual."""
    return [
        ["VENUE P&L 2025"],
        HEADER,
        ["1.", "", "Gross Sales", "", "", "1.000.000", "950.000", "", ""],
        ["", "", "Wine", "", "", "400.000", "380.000", "", ""],
        ["", "", "Beer", "", "", "100.000", "90.000", "", ""],
        ["1.1", "", "Net Sales", "", "", "900.000", "850.000", "", ""],
        ["2.", "", "Cost of goods sold", "", "", "300.000", "280.000", "", ""],
        ["", "", "Wine", "", "", "120.000", "110.000", "", ""],
        ["3.", "", "Direct labor", "", "", "200.000", "210.000", "", ""],
        ["3.1", "", "Salary", "", "", "150.000", "150.000", "", ""],
        ["3.4", "", "13th Salary", "", "", "12.500", "12.500", "", ""],
        ["4.", "", "Fixed operating cost", "", "", "50.000", "50.000", "", ""],
        ["4.1", "", "Rental", "", "", "40.000", "40.000", "", ""],
        ["5.", "", "Operating expenses", "", "", "", "", "", ""],
        ["5.1", "", "Consumables", "", "", "10.000", "12.000", "", ""],
        ["5.2", "", "Marketing", "", "", "5.000", "", "", ""],
        ["", "", "Total company expenses", "", "", "565.000", "564.000", "", ""],
        ["", "", "Gross operating profit", "", "", "335.000", "286.000", "", ""],
        ["", "", "EBIT", "", "", "(20.000)", "15.000", "", ""],
    ]


class DummyCursor:
    """Records SQL; fetchone() pops from ``rows``."""

    def __init__(self, rows: list[tuple] | None = None, columns: list[str] | None = None) -> None:
        self.queries: list[tuple[str, object]] = []
        self.rows = list(rows or [])
        self.description = [(c,) for c in (columns or [])]

    def execute(self, sql: str, params: object = None) -> None:
        self.queries.append((sql, params))

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    @property
    def statements(self) -> list[str]:
        return [q for q, _ in self.queries]


@pytest.fixture()
def dummy_cursor() -> DummyCursor:
    return DummyCursor()


@pytest.fixture()
def captured_upserts(monkeypatch) -> list[tuple[str, list[tuple]]]:
    """Replace execute_values so upserts are recorded instead of executed."""
    import pnl_sync.db.upsert as up

    calls: list[tuple[str, list[tuple]]] = []

    def fake_execute_values(cursor, sql, rows, page_size=100, template=None):
        calls.append((sql, list(rows)))
        cursor.execute(sql, rows)

    monkeypatch.setattr(up, "execute_values", fake_execute_values)
    return calls


@pytest.fixture()
def cursor_factory():
    return DummyCursor
