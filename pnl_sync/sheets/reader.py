from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import pandas as pd

"""Raw grid readers.

All sources end up in the same shape: a list of rows, each a list of cells.
Rows are NOT rectangular; a row may be shorter than others. Row positions are
kept exactly (blank lines stay as empty rows) so diagnostic row indices match
the sheet.

- CSV text from a published-sheet URL (quoted fields, embedded commas and
  newlines, doubled-quote escapes)
- Sheets values API JSON payload ({"values": [[...], ...]})
- local .csv / .xlsx export read with pandas
"""

__all__ = [
    "Cell",
    "Grid",
    "GridReadError",
    "cell_text",
    "grid_from_values_response",
    "parse_csv_text",
    "read_grid_file",
    "read_workbook_grid",
]

Cell = Union[str, int, float]
Grid = list[list[Cell]]

WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}


class GridReadError(Exception):
    """Raised when a source cannot be turned into a grid."""


def cell_text(row: list[Cell], index: int) -> str:
    """Cell at ``index`` as stripped text ("" when the row is too short)."""
    if index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value).strip()


def parse_csv_text(text: str) -> Grid:
    """Parse CSV text into a grid.

    Quoted fields may contain commas, CR/LF newlines and doubled quotes
    (``""`` -> ``"``). A leading BOM is dropped.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
    except csv.Error as e:
        raise GridReadError(f"invalid CSV: {e}") from e


def grid_from_values_response(payload: Mapping[str, Any]) -> Grid:
    """Convert a Sheets values API response into a grid.

    Missing ``values`` means an empty range. ``None`` cells become "".
    Numeric cells (UNFORMATTED_VALUE responses) are kept as numbers.
    """
    values = payload.get("values") or []
    if not isinstance(values, list):
        raise GridReadError(f"unexpected 'values' type: {type(values).__name__}")
    grid: Grid = []
    for raw_row in values:
        if not isinstance(raw_row, list):
            raise GridReadError(f"unexpected row type: {type(raw_row).__name__}")
        grid.append([_normalize_cell(c) for c in raw_row])
    return grid


def _normalize_cell(value: Any) -> Cell:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, (int, float, str)):
        return value
    return str(value)


def _trim_trailing(cells: Iterable[Cell]) -> list[Cell]:
    row = list(cells)
    while row and row[-1] == "":
        row.pop()
    return row


def read_workbook_grid(path: Path, sheet_name: str | None = None) -> Grid:
    """Read one worksheet of an Excel export as a grid.

    Parameters
    ----------
    path: workbook path
    sheet_name: worksheet to read (None = first sheet)
    """
    try:
        # header=None: the P&L header row is located later, not assumed here
        df = pd.read_excel(path, sheet_name=sheet_name or 0, header=None, dtype=object)
    except (OSError, ValueError) as e:
        raise GridReadError(f"cannot read workbook {path.name}: {e}") from e
    grid: Grid = []
    for raw in df.itertuples(index=False, name=None):
        cells: list[Cell] = []
        for val in raw:
            if pd.isna(val):
                cells.append("")
            elif isinstance(val, str):
                cells.append(val)
            elif isinstance(val, (int, float)):
                cells.append(val)
            else:
                cells.append(str(val))
        grid.append(_trim_trailing(cells))
    return grid


def read_grid_file(path: Path, sheet_name: str | None = None) -> Grid:
    """Read a local export (.csv or Excel workbook) as a grid."""
    if not path.exists():
        raise GridReadError(f"file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return parse_csv_text(path.read_text(encoding="utf-8-sig"))
    if suffix in WORKBOOK_SUFFIXES:
        return read_workbook_grid(path, sheet_name)
    raise GridReadError(f"unsupported file type: {path.suffix}")
