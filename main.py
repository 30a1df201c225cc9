#!/usr/bin/env python3
"""
Main entry point for commlog.

Imports an exported communication log into the store and prints the
run's statistics.
"""
from typing import List, Optional
import argparse
import sys
import logging
import sqlite3
from pathlib import Path

from commlog.config import Config, set_config
from commlog.etl.pipeline import get_import_status, run_import
from commlog.logger_config import setup_logging
from commlog.utils import Colors, format_count

# Setup logging
setup_logging()


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{title}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import an exported SMS/call/instant-message/calendar log."
    )
    parser.add_argument("input_file", nargs="?", help="Exported log file to import.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and report without writing to the store.",
    )
    parser.add_argument(
        "--no-skip-duplicates",
        dest="skip_duplicates",
        action="store_false",
        help="Insert records even if an identical message is already stored.",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Messages per transaction (default: 100, or COMMLOG_BATCH_SIZE).",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the store (default: COMMLOG_DB_PATH or ~/.commlog/commlog.db).",
    )
    parser.add_argument(
        "--max-records",
        type=_positive_int,
        default=None,
        help="Stop after this many records (for trying out a large export).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file (rotated at 10 MB).",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show the store's counts and last import run instead of importing.",
    )
    args = parser.parse_args(argv)
    if args.input_file is None and not args.status:
        parser.error("input_file is required unless --status is given")
    return args


def print_status(config: Config) -> None:
    """Print the store's counts and the metadata of its last import."""
    status = get_import_status(config.db_path)
    print_section("Store Status")
    if not status["exists"]:
        print(f"{Colors.WARNING}No store at {config.db_path_str}{Colors.ENDC}")
        return
    if not status["schema_valid"]:
        print(f"{Colors.FAIL}Store schema is incomplete: {config.db_path_str}{Colors.ENDC}")
        return

    print(f"  Contacts: {format_count(status['contact_count'])}")
    print(f"  Messages: {format_count(status['message_count'])}")
    print(f"  Schema version: {status['schema_version']}")
    if status["last_import_file"]:
        print(f"  Last import: {status['last_import_file']} at {status['last_import_at']}")
    else:
        print("  Last import: never")


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.log_file:
        setup_logging(log_file=args.log_file)

    try:
        config = Config(db_path=args.db_path, batch_size=args.batch_size)
    except ValueError as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        sys.exit(1)
    set_config(config)

    if args.status:
        print_status(config)
        return

    input_path = Path(args.input_file)
    if not Config.validate_input(input_path):
        print(f"{Colors.FAIL}Error: Input file not found or not readable: {input_path}{Colors.ENDC}")
        sys.exit(1)

    if args.dry_run:
        print(f"{Colors.WARNING}Dry run: nothing will be written{Colors.ENDC}")
    else:
        print(f"{Colors.OKGREEN}Using store: {config.db_path_str}{Colors.ENDC}")

    try:
        result = run_import(
            input_path,
            config.db_path,
            dry_run=args.dry_run,
            skip_duplicates=args.skip_duplicates,
            batch_size=config.batch_size,
            max_records=args.max_records,
        )
    except (OSError, sqlite3.Error) as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        logging.exception("Import failed")
        sys.exit(1)

    stats = result.stats
    print_section("Import Statistics")
    for line in stats.report_lines():
        print(f"  {line}")
    if stats.parse_errors:
        print(
            f"\n{Colors.WARNING}{format_count(stats.parse_errors)} records could not be parsed; "
            f"see the log for their raw lines{Colors.ENDC}"
        )
    print(f"\n{Colors.OKGREEN}Done in {result.duration_seconds:.2f}s{Colors.ENDC}")


if __name__ == "__main__":
    main()
