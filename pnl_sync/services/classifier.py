from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from functools import reduce
from typing import Any

from ..models.financial_record import MonthlyFinancialRecord
from ..models.month_column import MonthColumn, RecordKey
from ..models.processing_result import SectionTransition, SyncDiagnostics
from ..models.section import Section
from ..sheets.headers import extract_month_columns, find_header_row
from ..sheets.numbers import CellParseError, parse_number, parse_number_strict
from ..sheets.reader import Cell, Grid, cell_text
from .categories import RowLabel, declared_section, match_category, match_totals

"""Sheet row classification for the P&L grid.

The walk over data rows is a fold: each row is reduced into a
``ClassifierState`` carrying the running section and the month records.
Section assignment is order-dependent (a row inherits the section of the last
declaring row above it), which ``track_sections`` exposes on its own.
"""

__all__ = [
    "INITIAL_SECTION",
    "ClassificationResult",
    "ClassifierState",
    "RowParseWarning",
    "SheetRowClassifier",
    "next_section",
    "track_sections",
]

logger = logging.getLogger(__name__)

INITIAL_SECTION = Section.REVENUE
MIN_ROW_CELLS = 3
SAMPLE_ROWS = 5
UNMATCHED_LIMIT = 20


@dataclass(frozen=True)
class RowParseWarning:
    """A month cell that held text but no number; the value counted as zero."""
    row: int
    column: int
    raw: str
    label: str

    def describe(self) -> str:
        return f"row {self.row} col {self.column} ({self.label!r}): unparseable value {self.raw!r}"


@dataclass(frozen=True)
class ClassifierState:
    """Fold accumulator. ``section`` is replaced per row; the containers are shared."""
    section: Section
    records: dict[RecordKey, MonthlyFinancialRecord]
    transitions: list[SectionTransition] = field(default_factory=list)
    warnings: list[RowParseWarning] = field(default_factory=list)
    categories: dict[str, None] = field(default_factory=dict)  # ordered set of assigned keys
    unmatched: list[dict[str, Any]] = field(default_factory=list)
    samples: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ClassificationResult:
    records: dict[RecordKey, MonthlyFinancialRecord]
    month_columns: list[MonthColumn]
    header_row_index: int
    diagnostics: SyncDiagnostics
    warnings: list[RowParseWarning]
    categories_found: list[str]


def _row_label(row: Sequence[Cell]) -> RowLabel:
    cells = list(row)
    return RowLabel.from_cells(*(cell_text(cells, i) for i in range(4)))


def next_section(current: Section, row: Sequence[Cell]) -> Section:
    """Section after reading ``row``: the declared one, else ``current``."""
    declared = declared_section(_row_label(row))
    return declared if declared is not None else current


def track_sections(rows: Iterable[Sequence[Cell]], initial: Section = INITIAL_SECTION) -> list[Section]:
    """Section in effect for each row of a row sequence."""
    return list(itertools.accumulate(rows, next_section, initial=initial))[1:]


class SheetRowClassifier:
    """Classify a raw P&L grid into monthly financial records.

    Args:
        year_override: replaces the year parsed from every month header
        header_row_index: use this row as header instead of scanning for one
    """

    def __init__(self, year_override: int | None = None, header_row_index: int | None = None) -> None:
        self.year_override = year_override
        self.header_row_index = header_row_index

    def classify(self, grid: Grid) -> ClassificationResult:
        """Run header detection and the row walk.

        Raises:
            NoHeaderFound: no month header in the first rows
            NoMonthColumns: the header row yields no month column
        """
        if self.header_row_index is not None:
            header_idx = self.header_row_index
        else:
            header_idx = find_header_row(grid)
        header_row = grid[header_idx] if header_idx < len(grid) else []
        columns = extract_month_columns(header_row, self.year_override, header_row_index=header_idx)
        if self.year_override:
            logger.info("using year override: %s", self.year_override)
        logger.info("header at row %d, %d month columns", header_idx, len(columns))

        records: dict[RecordKey, MonthlyFinancialRecord] = {}
        for col in columns:
            if col.key not in records:
                records[col.key] = MonthlyFinancialRecord(year=col.year, month=col.month, is_actual=col.is_actual)

        start = header_idx + 1
        state = ClassifierState(section=INITIAL_SECTION, records=records)
        state = reduce(
            lambda acc, item: self._step(acc, item[0], item[1], columns),
            enumerate(grid[start:], start=start),
            state,
        )

        diagnostics = SyncDiagnostics(
            total_rows=len(grid),
            header_row_index=header_idx,
            raw_header_row=[cell_text(header_row, i) for i in range(5, min(len(header_row), 35))],
            month_columns=columns,
            section_changes=state.transitions,
            sample_values=state.samples,
            unmatched_labels=state.unmatched,
        )
        return ClassificationResult(
            records=state.records,
            month_columns=columns,
            header_row_index=header_idx,
            diagnostics=diagnostics,
            warnings=state.warnings,
            categories_found=list(state.categories),
        )

    def _step(
        self,
        state: ClassifierState,
        row_index: int,
        row: list[Cell],
        columns: list[MonthColumn],
    ) -> ClassifierState:
        label = _row_label(row)
        section = declared_section(label)
        if section is not None and section != state.section:
            state.transitions.append(
                SectionTransition(
                    row=row_index,
                    from_section=state.section,
                    to_section=section,
                    trigger=f'colB="{label.col_b[:50]}" colC="{label.col_c[:50]}"',
                )
            )
            logger.debug("entered section %s at row %d", section.value, row_index)
            state = replace(state, section=section)

        if len(row) < MIN_ROW_CELLS or label.is_empty:
            return state

        matched_any = False
        nonzero_any = False
        for col in columns:
            raw = row[col.column_index] if col.column_index < len(row) else ""
            try:
                value = parse_number_strict(raw)
            except CellParseError:
                state.warnings.append(
                    RowParseWarning(row=row_index, column=col.column_index, raw=str(raw), label=label.primary[:40])
                )
                value = 0.0
            if value == 0:
                continue
            nonzero_any = True
            record = state.records[col.key]
            category = match_category(state.section, label)
            if category is not None:
                record.set(category, value)
                state.categories[category] = None
                matched_any = True
            for total in match_totals(label, value):
                record.set(total, value)
                state.categories[total] = None
                matched_any = True

        if len(state.samples) < SAMPLE_ROWS:
            first = columns[0]
            raw_first = row[first.column_index] if first.column_index < len(row) else ""
            state.samples.append(
                {
                    "rowIndex": row_index,
                    "label": label.primary[:40],
                    "section": state.section.value,
                    "header": first.header,
                    "raw": str(raw_first),
                    "parsed": parse_number(raw_first),
                }
            )
        if nonzero_any and not matched_any and len(state.unmatched) < UNMATCHED_LIMIT:
            state.unmatched.append(
                {"rowIndex": row_index, "section": state.section.value, "label": label.combined.strip()[:80]}
            )
        return state
