from __future__ import annotations

from dataclasses import dataclass

"""MonthColumn model: one budget or actual column of the P&L header row."""

__all__ = [
    "MonthColumn",
    "RecordKey",
    "DATA_TYPE_ACTUAL",
    "DATA_TYPE_BUDGET",
]

DATA_TYPE_ACTUAL = "actual"
DATA_TYPE_BUDGET = "budget"

# (year, month, data_type)
RecordKey = tuple[int, int, str]


@dataclass(frozen=True)
class MonthColumn:
    """A header cell parsed as a month column.

    Budget and actual columns of the same month are distinct entities; the
    ``data_type`` completes the (year, month) key.
    """
    column_index: int  # 0-based column position in the grid
    month: int  # 1-12
    year: int  # four digits
    is_actual: bool  # header carried the "actual" marker
    header: str = ""  # raw header text

    @property
    def data_type(self) -> str:
        return DATA_TYPE_ACTUAL if self.is_actual else DATA_TYPE_BUDGET

    @property
    def key(self) -> RecordKey:
        return (self.year, self.month, self.data_type)

    @property
    def column_letter(self) -> str:
        """Spreadsheet column letter(s), e.g. 0 -> A, 27 -> AB."""
        index = self.column_index
        letters = ""
        while True:
            index, rem = divmod(index, 26)
            letters = chr(65 + rem) + letters
            if index == 0:
                return letters
            index -= 1
