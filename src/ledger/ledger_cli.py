#!/usr/bin/env python3
"""
CLI for party ledger bulk import and snapshot transfer.

Usage:
    ledger parse-csv  parties.csv [--json]
    ledger import-csv parties.csv [--batch-size 10] [--skip-invalid] [--json]
    ledger export     [--out party-ledger-export.json]
    ledger import     party-ledger-export.json [--mode merge|overwrite] [--dry-run] [--json]
    ledger export-csv [--out-dir exports/]
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

from .config import LedgerConfig
from .core.exceptions import LedgerError
from .core.logging import configure_logging
from .core.money import format_money
from .csv_io.exporter import export_snapshot_csv
from .csv_io.parser import parse_csv_file
from .session import LedgerSession, export_snapshot, import_parties, import_snapshot
from .transfer.codec import write_snapshot_file

logger = logging.getLogger(__name__)

T = TypeVar("T")


def setup_logging(config: LedgerConfig, verbose: bool = False) -> None:
    """Configure logging from config, with -v forcing DEBUG."""
    level = logging.DEBUG if verbose else config.log_level()
    configure_logging(level=level, structured=bool(config.get("logging.structured", False)))


def load_config(args) -> LedgerConfig:
    """Load config and apply command-line store overrides."""
    config = LedgerConfig(Path(args.config) if args.config else None, validate=False)
    store = config.config.setdefault("store", {})
    if args.backend:
        store["backend"] = args.backend
    if args.db_path:
        store.setdefault("sqlite", {})["path"] = args.db_path
    if args.base_url:
        store.setdefault("http", {})["base_url"] = args.base_url
    config.validate()
    return config


def run_with_session(config: LedgerConfig, action: Callable[[LedgerSession], Awaitable[T]]) -> T:
    """Open the configured store, run `action`, and always close the store."""
    async def runner() -> T:
        store = config.create_store()
        session = LedgerSession(store=store, principal=os.environ.get("LEDGER_PRINCIPAL"))
        try:
            return await action(session)
        finally:
            await store.close()

    return asyncio.run(runner())


def _print_errors(errors: List[str]) -> None:
    for error in errors:
        print(f"  - {error}")


def cmd_parse_csv(args, config: LedgerConfig) -> int:
    """Validate a CSV file without touching the store."""
    path = Path(args.file)
    if not path.exists():
        logger.error(f"CSV file not found: {path}")
        return 1

    result = parse_csv_file(path, config.csv_parser_options())

    if args.json:
        print(json.dumps({
            "records": [dataclasses.asdict(r) for r in result.records],
            "errors": result.errors,
        }, indent=2))
    else:
        total_due = sum(r.due_amount for r in result.records)
        print(f"{len(result.records)} valid rows, total due {format_money(total_due)}")
        if result.errors:
            print(f"{len(result.errors)} errors:")
            _print_errors(result.errors)

    return 0 if result.ok else 1


def cmd_import_csv(args, config: LedgerConfig) -> int:
    """Parse a CSV file and create its parties in the store."""
    path = Path(args.file)
    if not path.exists():
        logger.error(f"CSV file not found: {path}")
        return 1

    result = parse_csv_file(path, config.csv_parser_options())
    if result.errors:
        print(f"{len(result.errors)} errors in {path.name}:")
        _print_errors(result.errors)
        if not args.skip_invalid or not result.records:
            return 1
        print(f"Continuing with {len(result.records)} valid rows")

    batch_config = config.batch_import_config()
    if args.batch_size is not None:
        batch_config.batch_size = args.batch_size

    def progress(processed: int, total: int) -> None:
        logger.info(f"Importing parties... {processed}/{total}")

    outcome = run_with_session(
        config,
        lambda session: import_parties(session, result.records, on_progress=progress, config=batch_config),
    )

    print(outcome.summary())
    if args.json:
        print("\n" + json.dumps(outcome.to_dict(), indent=2))

    return 0 if not outcome.failed else 1


def cmd_export(args, config: LedgerConfig) -> int:
    """Export the whole dataset to a JSON file."""
    out = Path(args.out or config.get("transfer.export_filename", "party-ledger-export.json"))
    indent = config.get("transfer.indent")

    async def action(session: LedgerSession) -> Path:
        snapshot = await export_snapshot(session)
        return write_snapshot_file(snapshot, out, indent=indent)

    written = run_with_session(config, action)
    print(f"Exported to {written}")
    return 0


def cmd_import(args, config: LedgerConfig) -> int:
    """Import a JSON snapshot file."""
    path = Path(args.file)
    if not path.exists():
        logger.error(f"Snapshot file not found: {path}")
        return 1

    mode = args.mode or config.get("transfer.default_mode", "merge")
    report = run_with_session(
        config,
        lambda session: import_snapshot(session, path, mode=mode, dry_run=args.dry_run),
    )

    print(report.summary())
    if args.json:
        print("\n" + json.dumps(report.to_dict(), indent=2))
    return 0


def cmd_export_csv(args, config: LedgerConfig) -> int:
    """Export parties and visit records as two CSV files."""
    snapshot = run_with_session(config, export_snapshot)
    parties_path, events_path = export_snapshot_csv(snapshot, Path(args.out_dir))
    print(f"Parties: {parties_path}")
    print(f"Events:  {events_path}")
    return 0


COMMANDS = {
    "parse-csv": cmd_parse_csv,
    "import-csv": cmd_import_csv,
    "export": cmd_export,
    "import": cmd_import,
    "export-csv": cmd_export_csv,
}


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Party ledger bulk import and transfer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--backend", choices=["sqlite", "http", "memory"], help="Remote store backend")
    parser.add_argument("--db-path", help="SQLite database path")
    parser.add_argument("--base-url", help="HTTP backend base URL")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Parse CSV command
    parse_parser = subparsers.add_parser("parse-csv", help="Validate a party CSV file")
    parse_parser.add_argument("file", help="Path to CSV file")
    parse_parser.add_argument("--json", action="store_true", help="Output records and errors as JSON")

    # Import CSV command
    import_csv_parser = subparsers.add_parser("import-csv", help="Bulk-create parties from a CSV file")
    import_csv_parser.add_argument("file", help="Path to CSV file")
    import_csv_parser.add_argument("--batch-size", type=_positive_int, help="Records per batch")
    import_csv_parser.add_argument("--skip-invalid", action="store_true",
                                   help="Import valid rows even if some rows have errors")
    import_csv_parser.add_argument("--json", action="store_true", help="Output outcome as JSON")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export all data to a JSON file")
    export_parser.add_argument("--out", help="Output file (default: party-ledger-export.json)")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a JSON export file")
    import_parser.add_argument("file", help="Path to JSON export file")
    import_parser.add_argument("--mode", choices=["merge", "overwrite"], help="Import mode")
    import_parser.add_argument("--dry-run", action="store_true", help="Report without making changes")
    import_parser.add_argument("--json", action="store_true", help="Output report as JSON")

    # Export CSV command
    export_csv_parser = subparsers.add_parser("export-csv", help="Export parties and events as CSV")
    export_csv_parser.add_argument("--out-dir", default=".", help="Output directory")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command not in COMMANDS:
        print("No command specified. Use --help for usage.", file=sys.stderr)
        return 1

    try:
        config = load_config(args)
    except LedgerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config, verbose=args.verbose)

    try:
        return COMMANDS[args.command](args, config)
    except LedgerError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
