from __future__ import annotations

from ..models.processing_result import SyncResult

"""SUMMARY line rendering.

Format:
SUMMARY months={total} records={processed} written={written} locked={locked}
failed={failed} warnings={warnings} elapsed_sec={elapsed}
"""

__all__ = ["format_elapsed", "render_summary_line"]


def format_elapsed(seconds: float) -> str:
    """Render seconds without scientific notation or a trailing ``.0``."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: SyncResult) -> str:
    """Render the SUMMARY line of one sync.

    >>> from datetime import datetime, timezone
    >>> from pnl_sync.models.processing_result import SyncDiagnostics
    >>> t = datetime(2025, 1, 1, tzinfo=timezone.utc)
    >>> r = SyncResult(success=True, status="success", processed=4, locked=1, failed=0,
    ...     total_months=4, month_columns=[], categories_found=[], errors=[], warning_count=0,
    ...     warnings=[], diagnostics=SyncDiagnostics(), start_time=t, end_time=t, elapsed_seconds=2.0)
    >>> render_summary_line(r)
    'SUMMARY months=4 records=4 written=3 locked=1 failed=0 warnings=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY months={result.total_months} "
        f"records={result.processed} "
        f"written={result.processed - result.locked} "
        f"locked={result.locked} "
        f"failed={result.failed} "
        f"warnings={result.warning_count} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
