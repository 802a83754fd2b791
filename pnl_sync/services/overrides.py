from __future__ import annotations

from typing import Any

from ..models.config_models import OverrideConfig
from ..models.financial_record import PERSISTED_COLUMNS, round_half_up
from ..models.month_column import RecordKey

"""Operator override table consulted by the writer.

Locked records are never written by a sync. Pinned fields either carry the
value to write in place of the sheet value, or (no value) are dropped from the
upsert so whatever is stored survives.
"""

__all__ = ["OverrideError", "OverrideTable"]


class OverrideError(ValueError):
    pass


class OverrideTable:
    def __init__(self, locked: set[RecordKey] | None = None,
                 pinned: dict[RecordKey, dict[str, float | None]] | None = None) -> None:
        self.locked = locked or set()
        self.pinned = pinned or {}

    @classmethod
    def from_config(cls, config: OverrideConfig) -> OverrideTable:
        locked = {(r.year, r.month, r.data_type) for r in config.locked_records}
        pinned: dict[RecordKey, dict[str, float | None]] = {}
        for p in config.pinned_fields:
            if p.field not in PERSISTED_COLUMNS:
                raise OverrideError(f"unknown pinned field: {p.field}")
            pinned.setdefault((p.year, p.month, p.data_type), {})[p.field] = p.value
        return cls(locked, pinned)

    def is_locked(self, key: RecordKey) -> bool:
        return key in self.locked

    def apply_to_row(self, key: RecordKey, row: dict[str, Any]) -> dict[str, Any]:
        """Return ``row`` with pinned fields applied (input left untouched)."""
        fields = self.pinned.get(key)
        if not fields:
            return row
        out = dict(row)
        for category, value in fields.items():
            column = PERSISTED_COLUMNS[category]
            if value is None:
                out.pop(column, None)
            else:
                out[column] = int(round_half_up(value))
        return out

    def __len__(self) -> int:
        return len(self.locked) + sum(len(f) for f in self.pinned.values())
