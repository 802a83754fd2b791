from __future__ import annotations

import re
from typing import Any

from ..models.month_column import MonthColumn
from .reader import Grid, cell_text

"""Month header detection for the P&L grid.

Header cells look like "Jan 25", "Feb-26 Actual", "March 2025". Columns A-E
carry codes and labels, so month headers are only looked for from column
index 5 onward.
"""

__all__ = [
    "FIRST_MONTH_COLUMN",
    "HEADER_SCAN_ROWS",
    "MONTH_NAMES",
    "NoHeaderFound",
    "NoMonthColumns",
    "SheetLayoutError",
    "extract_month_columns",
    "find_header_row",
    "parse_month_header",
]

FIRST_MONTH_COLUMN = 5
HEADER_SCAN_ROWS = 5
DEBUG_CELLS_PER_ROW = 20

MONTH_NAMES: dict[str, int] = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_HEADER_RE = re.compile(r"^([a-z]{3,9})[\s\-]?(\d{2,4})(?:\s*(actual))?")


class SheetLayoutError(Exception):
    """Fatal layout problem; ``debug`` carries the cells an operator needs to fix the sheet."""

    error_type = "SHEET_LAYOUT_ERROR"

    def __init__(self, message: str, debug: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.debug = debug or {}


class NoHeaderFound(SheetLayoutError):
    """None of the scanned rows holds a month header."""

    error_type = "NO_HEADER_FOUND"


class NoMonthColumns(SheetLayoutError):
    """A header row was chosen but none of its cells parse as a month header."""

    error_type = "NO_MONTH_COLUMNS"


def parse_month_header(header: Any) -> tuple[int, int, bool] | None:
    """Parse a header cell into (month, year, is_actual).

    Two-digit years are 20xx. Missing "actual" marker means budget.

    >>> parse_month_header("Feb-26 Actual")
    (2, 2026, True)
    >>> parse_month_header("Total") is None
    True
    """
    if header is None:
        return None
    text = str(header).lower().strip()
    if not text:
        return None
    match = _HEADER_RE.match(text)
    if match is None:
        return None
    month = MONTH_NAMES.get(match.group(1))
    if month is None:
        return None
    year = int(match.group(2))
    if year < 100:
        year += 2000
    elif year < 1000:
        return None  # three digit years are typos, not headers
    return month, year, "actual" in text


def _scanned_cells(grid: Grid) -> list[dict[str, Any]]:
    return [
        {
            "rowIndex": idx,
            "cells": [
                {"col": col, "value": cell_text(row, col)}
                for col in range(min(len(row), DEBUG_CELLS_PER_ROW))
            ],
        }
        for idx, row in enumerate(grid[:HEADER_SCAN_ROWS])
    ]


def find_header_row(grid: Grid) -> int:
    """Return the index of the first of the top rows holding a month header.

    Raises:
        NoHeaderFound: with the scanned cells as debug payload
    """
    for idx, row in enumerate(grid[:HEADER_SCAN_ROWS]):
        for col in range(FIRST_MONTH_COLUMN, len(row)):
            if parse_month_header(row[col]) is not None:
                return idx
    raise NoHeaderFound(
        "Could not find header row with month columns. "
        "Expected headers like 'Jan 25', 'Feb-25 Actual', etc.",
        debug={
            "totalRows": len(grid),
            "firstFiveRows": _scanned_cells(grid),
            "hint": (
                "Check that your P&L sheet has month headers (e.g., 'Jan 25', 'Jan-25 Actual') "
                f"in the first {HEADER_SCAN_ROWS} rows, from column F onward."
            ),
        },
    )


def extract_month_columns(
    header_row: list[Any],
    year_override: int | None = None,
    header_row_index: int | None = None,
) -> list[MonthColumn]:
    """Parse every header cell from column F onward into MonthColumns.

    ``year_override`` replaces the parsed year of every column; the live sheet
    has carried stale year text in its headers before.

    Raises:
        NoMonthColumns: no cell of the row parses as a month header
    """
    columns: list[MonthColumn] = []
    for col in range(FIRST_MONTH_COLUMN, len(header_row)):
        parsed = parse_month_header(header_row[col])
        if parsed is None:
            continue
        month, year, is_actual = parsed
        columns.append(
            MonthColumn(
                column_index=col,
                month=month,
                year=year_override or year,
                is_actual=is_actual,
                header=str(header_row[col]).strip(),
            )
        )
    if not columns:
        raise NoMonthColumns(
            "No valid month columns found in header row.",
            debug={
                "headerRowIndex": header_row_index,
                "headerRowCells": [str(c) for c in header_row[:25]],
                "hint": (
                    "Month headers should be like 'Jan 25', 'Jan-25 Actual'. "
                    "The format 'Jan 25' or 'Jan-25' with optional 'Actual' suffix is expected."
                ),
            },
        )
    return columns
