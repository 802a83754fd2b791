from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from pnl_sync.models.processing_result import SyncDiagnostics, SyncResult
from pnl_sync.services.summary import format_elapsed, render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY months=(\d+) records=(\d+) written=(\d+) locked=(\d+) failed=(\d+) "
    r"warnings=(\d+) elapsed_sec=(\d+(?:\.\d+)?)$"
)


def result(**kw) -> SyncResult:
    t = datetime(2025, 1, 1, tzinfo=UTC)
    base = dict(
        success=True, status="success", processed=3, locked=1, failed=0, total_months=4,
        month_columns=[], categories_found=[], errors=[], warning_count=2, warnings=[],
        diagnostics=SyncDiagnostics(), start_time=t, end_time=t, elapsed_seconds=1.25,
    )
    base.update(kw)
    return SyncResult(**base)


def test_summary_line_matches_contract():
    line = render_summary_line(result())
    m = SUMMARY_PATTERN.match(line)
    assert m, line
    assert m.groups() == ("4", "3", "2", "1", "0", "2", "1.25")


def test_summary_partial():
    line = render_summary_line(result(status="partial", processed=2, locked=0, failed=2))
    assert "written=2 locked=0 failed=2" in line


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0"), (2.0, "2"), (0.0012, "0.0012"), (3.14159, "3.142"), (1.5, "1.5")],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected
