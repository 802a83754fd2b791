from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..db.upsert import UpsertError, UpsertMetrics, upsert_row
from ..models.financial_record import MonthlyFinancialRecord
from ..models.month_column import RecordKey
from .overrides import OverrideTable
from .progress import ProgressTracker

"""UpsertWriter: persist finalized month records.

Each record is written inside its own savepoint so that one rejected row does
not abort the surrounding transaction; the failure is collected as a
WriteError and the remaining records are still written.
"""

__all__ = ["SAVEPOINT", "UpsertWriter", "WriteError", "WriteReport"]

logger = logging.getLogger(__name__)

SAVEPOINT = "pnl_record"


@dataclass(frozen=True)
class WriteError:
    """A record whose upsert the database rejected."""
    key: RecordKey
    message: str

    def describe(self) -> str:
        year, month, data_type = self.key
        return f"Insert error for {year}-{month} ({data_type}): {self.message}"


@dataclass
class WriteReport:
    written: int = 0
    locked: int = 0
    errors: list[WriteError] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)  # without synced_at
    upsert_seconds: float = 0.0  # time spent in upsert statements

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def processed(self) -> int:
        """Written plus locked: a locked record is deliberately left as stored."""
        return self.written + self.locked


class UpsertWriter:
    """Write records keyed by (year, month, data_type), honoring the override table.

    ``cursor=None`` is dry-run: rows are built and reported, nothing is executed.
    """

    def __init__(
        self,
        cursor: Any,
        table: str,
        overrides: OverrideTable | None = None,
        *,
        clock: Any = None,
    ) -> None:
        self.cursor = cursor
        self.table = table
        self.overrides = overrides or OverrideTable()
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def dry_run(self) -> bool:
        return self.cursor is None

    def build_row(self, record: MonthlyFinancialRecord) -> dict[str, Any]:
        return self.overrides.apply_to_row(record.key, record.to_row())

    def write(self, records: Iterable[MonthlyFinancialRecord]) -> WriteReport:
        records = list(records)
        report = WriteReport()
        with ProgressTracker(len(records)) as progress:
            for record in records:
                key = record.key
                label = f"{record.year}-{record.month:02d} {record.data_type}"
                progress.advance(label)
                if self.overrides.is_locked(key):
                    logger.info("skipping locked record %s", label)
                    report.locked += 1
                    continue
                row = self.build_row(record)
                report.rows.append(row)
                if self.dry_run:
                    report.written += 1
                    continue
                error = self._write_one(row, report)
                if error is None:
                    logger.debug("upserted %s", label)
                    report.written += 1
                else:
                    failure = WriteError(key=key, message=error)
                    logger.error(failure.describe())
                    report.errors.append(failure)
                progress.set_postfix(written=report.written, failed=report.failed)
        return report

    def _write_one(self, row: dict[str, Any], report: WriteReport) -> str | None:
        """Upsert one row under a savepoint. Returns the error message on failure."""
        stamped = {**row, "synced_at": self._clock()}

        def on_metrics(metrics: UpsertMetrics) -> None:
            report.upsert_seconds += metrics.elapsed_seconds
            logger.debug(
                "upsert %s-%s %s took %.4fs",
                row["year"], row["month"], row["data_type"], metrics.elapsed_seconds,
            )

        self.cursor.execute(f"SAVEPOINT {SAVEPOINT}")
        try:
            upsert_row(self.cursor, self.table, stamped, metrics_callback=on_metrics)
        except UpsertError as e:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {SAVEPOINT}")
            return str(e)
        self.cursor.execute(f"RELEASE SAVEPOINT {SAVEPOINT}")
        return None
