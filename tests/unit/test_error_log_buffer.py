from __future__ import annotations

import json
import re
from pathlib import Path

from pnl_sync.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "sheet", "row", "error_type", "message"}


def test_error_record_json_line():
    rec = ErrorRecord.create(sheet="PnL 2026", row=12, error_type="ROW_PARSE_WARNING", message="bad cell")
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["timestamp"].endswith("Z")
    assert data["row"] == 12


def test_vietnamese_text_kept_readable():
    rec = ErrorRecord.create("PnL 2026", 3, "ROW_PARSE_WARNING", "lương tháng 13")
    assert "lương tháng 13" in rec.to_json_line()


def test_flush_writes_json_lines(temp_workdir: Path):
    buf = ErrorLogBuffer(temp_workdir / "logs")
    buf.add("PnL 2026", -1, "WRITE_ERROR", "Insert error for 2025-3 (budget): boom")
    buf.add("PnL 2026", 7, "ROW_PARSE_WARNING", "row 7 col 5")
    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(set(json.loads(line)) == KEYS for line in lines)
    assert len(buf) == 0


def test_flush_appends_to_same_file(temp_workdir: Path):
    buf = ErrorLogBuffer(temp_workdir / "logs")
    buf.add("S", 1, "WRITE_ERROR", "a")
    first = buf.flush()
    size1 = first.stat().st_size
    buf.add("S", 2, "WRITE_ERROR", "b")
    second = buf.flush()
    assert first == second
    assert second.stat().st_size > size1


def test_empty_flush_creates_nothing(temp_workdir: Path):
    logs = temp_workdir / "fresh-logs"
    assert ErrorLogBuffer(logs).flush() is None
    assert not logs.exists()
