#!/usr/bin/env python3
"""
Correction entry point for commlog.

Runs post-import correction passes against the store:

    receivers     fill in missing receivers of TO messages
    self-replies  flip owner replies recorded as FROM into TO messages
    contacts      merge contacts sharing a canonical phone number
    all           contacts, then receivers, then self-replies
"""
from typing import List, Optional
import argparse
import sys
import logging
import sqlite3

from commlog.config import Config, set_config
from commlog.database import StoreConnection
from commlog.etl.corrections import run_corrections
from commlog.etl.validation import validate_store
from commlog.logger_config import setup_logging
from commlog.snapshot import cleanup_old_backups, create_backup
from commlog.utils import Colors

# Setup logging
setup_logging()

# CLI name → pass name; 'all' runs them in this order
PASS_CHOICES = {
    "contacts": ["contacts"],
    "receivers": ["receivers"],
    "self-replies": ["self_replies"],
    "all": ["contacts", "receivers", "self_replies"],
}


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
    parser = argparse.ArgumentParser(description="Repair attribution in an imported store.")
    parser.add_argument(
        "correction",
        choices=sorted(PASS_CHOICES),
        help="Correction pass to run.",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the store (default: COMMLOG_DB_PATH or ~/.commlog/commlog.db).",
    )
    parser.add_argument(
        "--backup",
        action="store_true",
        help="Back up the store before running the pass.",
    )
    parser.add_argument(
        "--backup-dir",
        default=None,
        help="Directory for backups (default: 'backups' next to the store).",
    )
    parser.add_argument(
        "--keep-backups",
        type=_positive_int,
        default=5,
        help="How many backups to keep when --backup is given (default: 5).",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Check the store's invariants after the pass.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    config = Config(db_path=args.db_path, backup_dir=args.backup_dir)
    set_config(config)

    if not config.store_exists():
        print(f"{Colors.FAIL}Error: Store not found: {config.db_path_str}{Colors.ENDC}")
        print("Run commlog-import first to create it.")
        sys.exit(1)

    print(f"{Colors.OKGREEN}Using store: {config.db_path_str}{Colors.ENDC}")

    try:
        if args.backup:
            backup = create_backup(config.db_path, config.backup_dir)
            print(f"{Colors.OKGREEN}Backup created: {backup.backup_path}{Colors.ENDC}")
            cleanup_old_backups(
                config.backup_dir, keep_count=args.keep_backups, source_stem=config.db_path.stem
            )

        with StoreConnection(config, create=False) as store:
            results = run_corrections(store.connection, PASS_CHOICES[args.correction])
    except (OSError, sqlite3.Error) as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        logging.exception("Correction failed")
        sys.exit(1)

    print_section("Correction Results")
    for result in results:
        color = Colors.OKGREEN if result.errors == 0 else Colors.WARNING
        print(f"{color}{result}{Colors.ENDC}")

    if args.validate:
        print_section("Store Validation")
        print(validate_store(config.db_path))


if __name__ == "__main__":
    main()
