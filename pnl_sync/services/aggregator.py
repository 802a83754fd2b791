from __future__ import annotations

import logging
from collections.abc import Iterable

from ..models.financial_record import REVENUE_BREAKDOWN_KEYS, MonthlyFinancialRecord

"""Gap filling and reconciliation of classified month records."""

__all__ = [
    "FIXED_ITEM_KEYS",
    "OPEX_ITEM_KEYS",
    "RECOMPUTE_FACTOR",
    "FinancialAggregator",
    "compute_ratios",
    "reconcile_total",
]

logger = logging.getLogger(__name__)

OPEX_ITEM_KEYS = ("opexConsumables", "opexMarketing", "opexEvents")
FIXED_ITEM_KEYS = ("fixedRental", "fixedMaintenance", "fixedAdmin")

# Sub-item sum above RECOMPUTE_FACTOR x the stored total replaces the total.
# Kept for compatibility with existing stored data; pending product-owner review.
RECOMPUTE_FACTOR = 2


def reconcile_total(record: MonthlyFinancialRecord, total_key: str, item_keys: tuple[str, ...]) -> bool:
    """Replace a blank or stale section total with the sum of its items.

    Returns True when the total was replaced.
    """
    stored = record.get(total_key)
    calculated = record.sum_of(item_keys)
    if calculated > 0 and (stored == 0 or calculated > stored * RECOMPUTE_FACTOR):
        logger.info(
            "recalculating %s for %d-%d (%s): %s -> %s",
            total_key, record.year, record.month, record.data_type, stored, calculated,
        )
        record.set(total_key, calculated)
        return True
    return False


def compute_ratios(record: MonthlyFinancialRecord) -> None:
    """Set the percentage ratios against net sales (all zero when net sales <= 0)."""
    net_sales = record.get("netSales")
    if net_sales > 0:
        record.cogs_percentage = record.get("cogs") / net_sales * 100
        record.labor_percentage = record.get("laborCost") / net_sales * 100
        record.gross_margin = record.get("grossProfit") / net_sales * 100
        record.ebit_margin = record.get("ebit") / net_sales * 100
    else:
        record.cogs_percentage = 0.0
        record.labor_percentage = 0.0
        record.gross_margin = 0.0
        record.ebit_margin = 0.0


class FinancialAggregator:
    """Finalize classified records: drop empty ones, fill gaps, derive ratios."""

    def finalize(self, records: Iterable[MonthlyFinancialRecord]) -> list[MonthlyFinancialRecord]:
        kept: list[MonthlyFinancialRecord] = []
        for record in records:
            if not record.has_financial_data():
                logger.debug("skipping empty record %s", record.key)
                continue
            if record.get("grossSales") == 0:
                record.set("grossSales", record.sum_of(REVENUE_BREAKDOWN_KEYS))
            reconcile_total(record, "opex", OPEX_ITEM_KEYS)
            reconcile_total(record, "fixedCosts", FIXED_ITEM_KEYS)
            compute_ratios(record)
            kept.append(record)
        return kept
