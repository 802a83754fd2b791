from __future__ import annotations

import pytest

from pnl_sync.models.financial_record import (
    CATEGORY_KEYS,
    PERSISTED_COLUMNS,
    MonthlyFinancialRecord,
    round_half_up,
)
from pnl_sync.models.month_column import MonthColumn


def test_persisted_columns_are_snake_case():
    assert PERSISTED_COLUMNS["grossSales"] == "gross_sales"
    assert PERSISTED_COLUMNS["opexConsumables"] == "opex_consumables"
    assert PERSISTED_COLUMNS["labor13th"] == "labor_13th_month"
    assert len(set(PERSISTED_COLUMNS.values())) == len(CATEGORY_KEYS)


@pytest.mark.parametrize(
    "value, ndigits, expected",
    [(2.5, 0, 3.0), (-2.5, 0, -3.0), (0.125, 2, 0.13), (-0.4, 0, 0.0), (0.0, 2, 0.0)],
)
def test_round_half_up(value, ndigits, expected):
    assert round_half_up(value, ndigits) == expected


def test_set_rejects_unknown_category():
    rec = MonthlyFinancialRecord(2025, 1, False)
    with pytest.raises(KeyError):
        rec.set("profit", 1)


def test_to_row_shape():
    rec = MonthlyFinancialRecord(2025, 2, True)
    rec.set("grossSales", 1000000.4)
    rec.cogs_percentage = 31.256
    row = rec.to_row()
    assert row["year"] == 2025 and row["month"] == 2
    assert row["data_type"] == "actual"
    assert row["gross_sales"] == 1000000
    assert row["cogs_percentage"] == 31.26
    assert "synced_at" not in row
    assert set(PERSISTED_COLUMNS.values()) <= set(row)


def test_month_column_letters():
    assert MonthColumn(0, 1, 2025, False).column_letter == "A"
    assert MonthColumn(25, 1, 2025, False).column_letter == "Z"
    assert MonthColumn(26, 1, 2025, False).column_letter == "AA"
    assert MonthColumn(27, 1, 2025, True).key == (2025, 1, "actual")
