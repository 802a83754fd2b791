from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pnl_sync.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from pnl_sync.db.records import RecordQueryError, apply_correction, fetch_record
from pnl_sync.logging.init import enable_debug, log_summary, setup_logging
from pnl_sync.models.config_models import SyncConfig
from pnl_sync.models.month_column import DATA_TYPE_ACTUAL, DATA_TYPE_BUDGET
from pnl_sync.models.processing_result import STATUS_SUCCESS, SyncResult
from pnl_sync.services.orchestrator import run_sync
from pnl_sync.services.summary import render_summary_line

"""CLI entrypoint: ``python -m pnl_sync.cli <command>``.

Commands:
- sync     fetch, classify, aggregate and upsert the P&L sheet
- inspect  fetch and classify only, print the layout diagnostics
- show     print one stored record
- correct  hand-correct fields of one stored record

Exit codes: 0 success, 2 partial failure or nothing written, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _db_connection(cfg: SyncConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 cursor on a non-autocommit connection.

    Resolution order: DATABASE_URL / PGDSN, then PG* variables, then the
    ``database`` section of the config file.
    """
    import psycopg2

    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = False  # transaction boundaries are explicit (BEGIN/COMMIT)
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load ``.env``; its values win over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pnl_sync", description="P&L sheet -> PostgreSQL sync")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    def add_source_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--csv-url", help="Published-sheet CSV export URL")
        sp.add_argument("--file", help="Local .csv / .xlsx export instead of fetching")
        sp.add_argument("--sheet-name", help="Sheet (tab) name")
        sp.add_argument("--year-override", type=int, help="Replace the year of every month header")
        sp.add_argument("--header-row", type=_non_negative_int, help="Force the header row index (0-based)")
        sp.add_argument("--json", action="store_true", help="Print the result as JSON")

    sync = sub.add_parser("sync", help="Sync the P&L sheet into pnl_monthly")
    add_source_args(sync)
    sync.add_argument("--dry-run", action="store_true", help="Build rows but do not write")

    inspect = sub.add_parser("inspect", help="Classify the sheet and print diagnostics")
    add_source_args(inspect)

    def add_key_args(sp: argparse.ArgumentParser, default_type: str) -> None:
        sp.add_argument("--year", type=int, required=True)
        sp.add_argument("--month", type=int, required=True, choices=range(1, 13))
        sp.add_argument("--data-type", choices=[DATA_TYPE_BUDGET, DATA_TYPE_ACTUAL], default=default_type)

    show = sub.add_parser("show", help="Print one stored record")
    add_key_args(show, DATA_TYPE_BUDGET)

    correct = sub.add_parser("correct", help="Hand-correct fields of one stored record")
    add_key_args(correct, DATA_TYPE_ACTUAL)
    correct.add_argument(
        "--set", dest="updates", action="append", required=True, metavar="FIELD=VALUE",
        help="Field to set (category key or column name); repeatable",
    )
    return p.parse_args(argv)


def _apply_source_args(cfg: SyncConfig, args: argparse.Namespace) -> SyncConfig:
    changes: dict[str, Any] = {}
    if args.csv_url:
        changes["csv_url"] = args.csv_url
    if args.file:
        changes["file"] = args.file
    if args.sheet_name:
        changes["sheet_name"] = args.sheet_name
    if args.year_override is not None:
        changes["year_override"] = args.year_override
    if args.header_row is not None:
        changes["header_row"] = args.header_row
    if not changes:
        return cfg
    return replace(cfg, source=replace(cfg.source, **changes))


def _parse_updates(pairs: list[str]) -> dict[str, float]:
    updates: dict[str, float] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"expected FIELD=VALUE, got {pair!r}")
        value = float(raw)
        updates[name.strip()] = int(value) if value.is_integer() else value
    return updates


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _exit_code(result: SyncResult) -> int:
    if result.error_type is not None:
        return EXIT_FATAL
    if result.status != STATUS_SUCCESS:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_sync(cfg: SyncConfig, args: argparse.Namespace, logger: Any) -> int:
    dry_run = args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1"
    if dry_run:
        logger.info("dry-run: nothing will be written")
        result = run_sync(cfg, cursor=None)
    else:
        try:
            with _db_connection(cfg) as cur:
                result = run_sync(cfg, cursor=cur)
        except Exception as e:
            logger.error(f"database: {e}")
            return EXIT_FATAL

    if args.json:
        _print_json(result.to_dict(include_rows=dry_run))
    else:
        for line in result.errors:
            logger.error(line)
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return _exit_code(result)


def _cmd_inspect(cfg: SyncConfig, args: argparse.Namespace, logger: Any) -> int:
    result = run_sync(cfg, cursor=None)
    if args.json:
        _print_json(result.to_dict())
        return _exit_code(result)
    debug = result.diagnostics
    if result.error:
        logger.error(f"{result.error_type}: {result.error}")
        if debug.hint:
            logger.info(f"hint: {debug.hint}")
        for row in debug.scanned_cells or []:
            cells = [c["value"] for c in row["cells"]]
            print(f"  row {row['rowIndex']}: {cells}")
        if debug.raw_header_row:
            print(f"  header cells: {debug.raw_header_row}")
        return EXIT_FATAL
    print(f"header row: {debug.header_row_index} (of {debug.total_rows} rows)")
    for col in debug.month_columns:
        print(f"  {col.column_letter:>3} {col.header!r:<20} -> {col.year}-{col.month:02d} {col.data_type}")
    print("section changes:")
    for t in debug.section_changes:
        print(f"  row {t.row}: {t.from_section.value} -> {t.to_section.value}  {t.trigger}")
    print(f"categories: {', '.join(result.categories_found) or '-'}")
    for u in debug.unmatched_labels:
        print(f"  unmatched row {u['rowIndex']} [{u['section']}]: {u['label']}")
    if result.warnings:
        print(f"warnings ({result.warning_count}):")
        for w in result.warnings:
            print(f"  {w}")
    return EXIT_SUCCESS_ALL


def _cmd_show(cfg: SyncConfig, args: argparse.Namespace, logger: Any) -> int:
    with _db_connection(cfg) as cur:
        row = fetch_record(cur, cfg.tables.pnl_monthly, args.year, args.month, args.data_type)
    if row is None:
        logger.info(f"no data found for {args.year}-{args.month} ({args.data_type})")
        return EXIT_PARTIAL_FAILURE
    _print_json(row)
    return EXIT_SUCCESS_ALL


def _cmd_correct(cfg: SyncConfig, args: argparse.Namespace, logger: Any) -> int:
    try:
        updates = _parse_updates(args.updates)
    except ValueError as e:
        logger.error(f"correct: {e}")
        return EXIT_FATAL
    with _db_connection(cfg) as cur:
        cur.execute("BEGIN")
        try:
            outcome = apply_correction(
                cur, cfg.tables.pnl_monthly, args.year, args.month, args.data_type, updates
            )
        except RecordQueryError:
            cur.execute("ROLLBACK")
            raise
        cur.execute("COMMIT")
    action = "inserted" if outcome.inserted else "updated"
    logger.info(f"{action} {args.year}-{args.month} ({args.data_type}): {sorted(updates)}")
    _print_json({"before": outcome.before, "after": outcome.after})
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "sync": _cmd_sync,
    "inspect": _cmd_inspect,
    "show": _cmd_show,
    "correct": _cmd_correct,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an empty list from tests must not fall back to pytest's argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)
    if args.debug:
        enable_debug()

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command in ("sync", "inspect"):
        cfg = _apply_source_args(cfg, args)
    handler = COMMANDS[args.command]
    try:
        return handler(cfg, args, logger)
    except RecordQueryError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except Exception as e:  # connection failures surface here for show / correct
        logger.error(f"{args.command}: database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
