from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the P&L sheet sync.

These are built by ``pnl_sync.config.loader`` from the YAML config file after
schema validation.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SourceConfig:
    """Where the P&L grid comes from.

    Precedence when several are set: ``file`` > ``csv_url`` > Sheets API
    (``sheet_id`` + ``sheet_name`` + ``range``).
    """
    sheet_id: str | None = None
    sheet_name: str = "PnL 2026"
    range: str = "A1:AZ100"
    csv_url: str | None = None
    file: str | None = None
    year_override: int | None = None  # replaces every parsed header year
    header_row: int | None = None  # force the header row index (0-based)
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class TableConfig:
    pnl_monthly: str = "pnl_monthly"
    sync_logs: str = "sync_logs"


@dataclass(frozen=True)
class LockedRecord:
    """A (year, month, data_type) key that a sync never overwrites."""
    year: int
    month: int
    data_type: str


@dataclass(frozen=True)
class PinnedField:
    """A single field held against sheet values.

    ``value`` set: that value is written instead of the sheet value.
    ``value`` None: the column is left out of the upsert so the stored value survives.
    """
    year: int
    month: int
    data_type: str
    field: str  # category key, e.g. "ebit"
    value: float | None = None


@dataclass(frozen=True)
class OverrideConfig:
    locked_records: tuple[LockedRecord, ...] = ()
    pinned_fields: tuple[PinnedField, ...] = ()


@dataclass(frozen=True)
class SyncConfig:
    """Root configuration object for a P&L sync run."""
    source: SourceConfig = field(default_factory=SourceConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tables: TableConfig = field(default_factory=TableConfig)
    overrides: OverrideConfig = field(default_factory=OverrideConfig)
    error_sample_limit: int = 5  # cap for errors / warnings echoed in the result
    logs_dir: str = "./logs"
