from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .month_column import MonthColumn
from .section import Section

"""Result models for a P&L sync run.

``SyncResult.to_dict()`` is the operation's response contract: the sheet layout
is operator-maintained and drifts over time, so every failure has to be
diagnosable from this payload alone.
"""

__all__ = [
    "SectionTransition",
    "SyncDiagnostics",
    "SyncResult",
    "STATUS_SUCCESS",
    "STATUS_PARTIAL",
    "STATUS_FAILED",
]

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class SectionTransition:
    """A row that moved the running section state."""
    row: int  # grid row index
    from_section: Section
    to_section: Section
    trigger: str  # label text that declared the section

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "from": self.from_section.value,
            "to": self.to_section.value,
            "trigger": self.trigger,
        }


@dataclass
class SyncDiagnostics:
    """Classification diagnostics returned with every result."""
    total_rows: int = 0
    header_row_index: int | None = None
    raw_header_row: list[str] = field(default_factory=list)
    month_columns: list[MonthColumn] = field(default_factory=list)
    section_changes: list[SectionTransition] = field(default_factory=list)
    sample_values: list[dict[str, Any]] = field(default_factory=list)
    unmatched_labels: list[dict[str, Any]] = field(default_factory=list)
    scanned_cells: list[dict[str, Any]] | None = None  # only on header failures
    hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "totalRows": self.total_rows,
            "headerRowIndex": self.header_row_index,
            "sectionChanges": [t.to_dict() for t in self.section_changes],
            "monthColumnDetails": [
                {
                    "header": c.header,
                    "colLetter": c.column_letter,
                    "index": c.column_index,
                    "year": c.year,
                    "month": c.month,
                    "isActual": c.is_actual,
                }
                for c in self.month_columns
            ],
            "actualColumns": [f"{c.month}/{c.year}" for c in self.month_columns if c.is_actual],
            "budgetColumns": [f"{c.month}/{c.year}" for c in self.month_columns if not c.is_actual],
            "rawHeaderRow": self.raw_header_row,
            "sampleValues": self.sample_values,
            "unmatchedLabels": self.unmatched_labels,
        }
        if self.scanned_cells is not None:
            out["scannedCells"] = self.scanned_cells
        if self.hint:
            out["hint"] = self.hint
        return out


@dataclass(frozen=True)
class SyncResult:
    """Aggregated outcome of one sync invocation."""
    success: bool
    status: str  # success / partial / failed
    processed: int  # records written (locked records count as processed)
    locked: int  # records skipped by the lock table
    failed: int  # records whose write failed
    total_months: int  # month records built from the header
    month_columns: list[str]  # raw header texts
    categories_found: list[str]
    errors: list[str]  # capped sample
    warning_count: int
    warnings: list[str]  # capped sample
    diagnostics: SyncDiagnostics
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    error: str | None = None  # fatal failure message
    error_type: str | None = None  # fatal failure classification
    rows: list[dict[str, Any]] = field(default_factory=list)  # persisted shapes, synced_at excluded

    def to_dict(self, include_rows: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "processed": self.processed,
            "locked": self.locked,
            "failed": self.failed,
            "totalMonths": self.total_months,
            "monthColumns": self.month_columns,
            "categoriesFound": self.categories_found,
            "warningCount": self.warning_count,
            "elapsedSeconds": self.elapsed_seconds,
            "debug": self.diagnostics.to_dict(),
        }
        if self.errors:
            out["errors"] = self.errors
        if self.warnings:
            out["warnings"] = self.warnings
        if self.error is not None:
            out["error"] = self.error
            out["errorType"] = self.error_type
        if include_rows:
            out["rows"] = self.rows
        return out
