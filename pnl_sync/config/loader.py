from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DatabaseConfig,
    LockedRecord,
    OverrideConfig,
    PinnedField,
    SourceConfig,
    SyncConfig,
    TableConfig,
)
from ..models.financial_record import CATEGORY_KEYS

"""Config loader.

Responsibilities:
- Load the YAML config (``config/sync.yml`` by default)
- Validate it against the bundled JSON schema
- Apply defaults and build the frozen ``SyncConfig``

Every section is optional; an empty file yields the defaults.
"""

__all__ = ["DEFAULT_CONFIG_PATH", "SCHEMA_PATH", "ConfigError", "load_config", "parse_config"]

DEFAULT_CONFIG_PATH = Path("config/sync.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {where}: {e.message}") from e


def parse_config(data: dict[str, Any]) -> SyncConfig:
    """Build a SyncConfig from already-loaded data (validated first)."""
    _validate_config_schema(data)

    src = data.get("source") or {}
    source = SourceConfig(**src)

    db_raw = data.get("database") or {}
    database = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    tables = TableConfig(**(data.get("tables") or {}))

    ov = data.get("overrides") or {}
    for p in ov.get("pinned_fields") or []:
        if p["field"] not in CATEGORY_KEYS:
            raise ConfigError(f"config validation failed at overrides/pinned_fields: unknown field {p['field']!r}")
    overrides = OverrideConfig(
        locked_records=tuple(LockedRecord(**r) for r in ov.get("locked_records") or []),
        pinned_fields=tuple(PinnedField(**p) for p in ov.get("pinned_fields") or []),
    )
    return SyncConfig(
        source=source,
        database=database,
        tables=tables,
        overrides=overrides,
        error_sample_limit=data.get("error_sample_limit", 5),
        logs_dir=data.get("logs_dir", "./logs"),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return parse_config(data)
