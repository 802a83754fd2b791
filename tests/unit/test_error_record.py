from __future__ import annotations

import json

from pnl_sync.models.error_record import ErrorRecord

"""Unit tests for the ErrorRecord model."""


def test_sheet_level_row_sentinel():
    rec = ErrorRecord.create("PnL 2026", -1, "NO_HEADER_FOUND", "Could not find header row")
    data = json.loads(rec.to_json_line())
    assert data["row"] == -1
    assert list(data) == ["timestamp", "sheet", "row", "error_type", "message"]
    assert data["timestamp"].endswith("Z")


def test_non_ascii_message_kept_readable():
    rec = ErrorRecord.create("PnL 2026", 7, "ROW_PARSE_WARNING", "row 7 col 5 ('doanh thu'): unparseable value 'n/a'")
    assert "doanh thu" in rec.to_json_line()
    rec = ErrorRecord.create("Tổng hợp", 7, "ROW_PARSE_WARNING", "x")
    assert "Tổng hợp" in rec.to_json_line()
