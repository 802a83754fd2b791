from __future__ import annotations

from pathlib import Path

import pytest

from pnl_sync.config.loader import ConfigError, load_config, parse_config


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source.sheet_name == "PnL 2026"
    assert cfg.source.file == "./data/pnl.csv"
    assert cfg.source.range == "A1:AZ100"
    assert cfg.tables.pnl_monthly == "pnl_monthly"
    assert cfg.database.port == 5432
    assert cfg.overrides.locked_records[0].data_type == "budget"
    pinned = cfg.overrides.pinned_fields[0]
    assert (pinned.field, pinned.value) == ("ebit", -131441604)


def test_empty_file_gives_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "sync.yml"
    path.write_text("", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.error_sample_limit == 5
    assert cfg.logs_dir == "./logs"
    assert cfg.overrides.locked_records == ()


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "sync.yml"
    path.write_text("source: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(path)


@pytest.mark.parametrize(
    "data, where",
    [
        ({"unknown": 1}, "<root>"),
        ({"source": {"range": "A1-AZ100"}}, "source/range"),
        ({"overrides": {"locked_records": [{"year": 2025, "month": 13, "data_type": "budget"}]}},
         "overrides/locked_records/0/month"),
        ({"overrides": {"pinned_fields": [{"year": 2025, "month": 1, "data_type": "forecast", "field": "ebit"}]}},
         "overrides/pinned_fields/0/data_type"),
    ],
)
def test_schema_violations(data, where):
    with pytest.raises(ConfigError, match=f"at {where}"):
        parse_config(data)


def test_unknown_pinned_field():
    data = {"overrides": {"pinned_fields": [{"year": 2025, "month": 1, "data_type": "actual", "field": "profit"}]}}
    with pytest.raises(ConfigError, match="unknown field 'profit'"):
        parse_config(data)
