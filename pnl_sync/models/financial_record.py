from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .month_column import DATA_TYPE_ACTUAL, DATA_TYPE_BUDGET, RecordKey
from .section import Section

"""MonthlyFinancialRecord: the aggregate output unit of a P&L sync.

One record exists per (year, month, data_type). Line-item values are kept in a
dict keyed by category key (camelCase vocabulary shared with the classifier);
``PERSISTED_COLUMNS`` maps each key onto its snake_case column in the
``pnl_monthly`` table.
"""

__all__ = [
    "CATEGORY_KEYS",
    "CATEGORY_SECTIONS",
    "PERSISTED_COLUMNS",
    "RATIO_COLUMNS",
    "REVENUE_BREAKDOWN_KEYS",
    "MonthlyFinancialRecord",
    "round_half_up",
]


# Category keys grouped by the section whose table may assign them.
# Keys under None are only written by section-agnostic total rows.
CATEGORY_SECTIONS: dict[Section | None, tuple[str, ...]] = {
    Section.REVENUE: (
        "grossSales",
        "revenueWine",
        "revenueSpirits",
        "revenueCocktails",
        "revenueShisha",
        "revenueBeer",
        "revenueFood",
        "revenueBalloons",
        "revenueOther",
        "discounts",
        "foc",
        "netSales",
        "serviceCharge",
    ),
    Section.COGS: (
        "cogs",
        "cogsWine",
        "cogsSpirits",
        "cogsCocktails",
        "cogsShisha",
        "cogsBeer",
        "cogsFood",
        "cogsBalloons",
        "cogsOther",
    ),
    Section.LABOR: (
        "laborCost",
        "laborSalary",
        "laborCasual",
        "laborInsurance",
        "labor13th",
        "laborHoliday",
        "laborSvc",
    ),
    Section.FIXED: (
        "fixedCosts",
        "fixedRental",
        "fixedMaintenance",
        "fixedAdmin",
    ),
    Section.OPEX: (
        "opex",
        "opexConsumables",
        "opexMarketing",
        "opexEvents",
    ),
    None: (
        "reserveFund",
        "totalExpenses",
        "grossProfit",
        "depreciation",
        "otherIncome",
        "otherExpenses",
        "ebit",
    ),
}

CATEGORY_KEYS: tuple[str, ...] = tuple(k for keys in CATEGORY_SECTIONS.values() for k in keys)

REVENUE_BREAKDOWN_KEYS: tuple[str, ...] = (
    "revenueWine",
    "revenueSpirits",
    "revenueCocktails",
    "revenueShisha",
    "revenueBeer",
    "revenueFood",
    "revenueBalloons",
    "revenueOther",
)

# Profit lines are derived results, not revenue or expense evidence.
_PROFIT_KEYS = frozenset({"grossProfit", "ebit"})

_COLUMN_EXCEPTIONS = {"labor13th": "labor_13th_month"}


def _snake(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


PERSISTED_COLUMNS: dict[str, str] = {
    k: _COLUMN_EXCEPTIONS.get(k, _snake(k)) for k in CATEGORY_KEYS
}

RATIO_COLUMNS: tuple[str, ...] = (
    "cogs_percentage",
    "labor_percentage",
    "gross_margin",
    "ebit_margin",
)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from zero (spreadsheet rounding, not banker's rounding)."""
    factor = 10 ** ndigits
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0


@dataclass
class MonthlyFinancialRecord:
    """Financial figures of one month for one data type (budget or actual).

    Constructed empty for every month column in the header, populated by the
    row walk, then finalized by the aggregator.
    """
    year: int
    month: int
    is_actual: bool
    values: dict[str, float] = field(default_factory=lambda: dict.fromkeys(CATEGORY_KEYS, 0.0))
    cogs_percentage: float = 0.0
    labor_percentage: float = 0.0
    gross_margin: float = 0.0
    ebit_margin: float = 0.0

    @property
    def data_type(self) -> str:
        return DATA_TYPE_ACTUAL if self.is_actual else DATA_TYPE_BUDGET

    @property
    def key(self) -> RecordKey:
        return (self.year, self.month, self.data_type)

    def get(self, category: str) -> float:
        return self.values.get(category, 0.0)

    def set(self, category: str, value: float) -> None:
        if category not in self.values:
            raise KeyError(f"unknown category key: {category}")
        self.values[category] = value

    def sum_of(self, categories: tuple[str, ...]) -> float:
        return sum(self.get(c) for c in categories)

    def has_financial_data(self) -> bool:
        """True when any revenue or expense value is nonzero."""
        return any(v != 0 for k, v in self.values.items() if k not in _PROFIT_KEYS)

    def to_row(self) -> dict[str, Any]:
        """Persisted row shape (without ``synced_at``), money rounded to integers."""
        row: dict[str, Any] = {"year": self.year, "month": self.month}
        for key, column in PERSISTED_COLUMNS.items():
            row[column] = int(round_half_up(self.get(key)))
        for column in RATIO_COLUMNS:
            row[column] = round_half_up(getattr(self, column), 2)
        row["data_type"] = self.data_type
        return row
