"""Domain models for the P&L sheet -> PostgreSQL sync.

This package contains the domain model classes shared by the classifier,
aggregator, writer and CLI.
"""

from .config_models import (
    DatabaseConfig,
    LockedRecord,
    OverrideConfig,
    PinnedField,
    SourceConfig,
    SyncConfig,
    TableConfig,
)
from .error_record import ErrorRecord
from .financial_record import CATEGORY_KEYS, PERSISTED_COLUMNS, MonthlyFinancialRecord
from .month_column import DATA_TYPE_ACTUAL, DATA_TYPE_BUDGET, MonthColumn
from .processing_result import SectionTransition, SyncDiagnostics, SyncResult
from .section import Section

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "LockedRecord",
    "OverrideConfig",
    "PinnedField",
    "SourceConfig",
    "SyncConfig",
    "TableConfig",
    # Sheet models
    "MonthColumn",
    "Section",
    "DATA_TYPE_ACTUAL",
    "DATA_TYPE_BUDGET",
    # Output models
    "CATEGORY_KEYS",
    "PERSISTED_COLUMNS",
    "MonthlyFinancialRecord",
    "ErrorRecord",
    "SectionTransition",
    "SyncDiagnostics",
    "SyncResult",
]
