"""
Import pipeline orchestration.

Streams an exported communication log into the store:

Pipeline Steps:
    1. Check the input file and batch size (fatal errors raised up front)
    2. Initialize the store schema (skipped in dry-run mode)
    3. Reassemble multi-line records from the streamed file
    4. Parse each record with its type's parser
    5. Buffer parsed messages in a BatchWriter, which resolves contacts,
       skips duplicates and commits once per batch
    6. Record the run in etl_state

The input file is never loaded whole; memory use is bounded by the batch
size. Record-level failures are logged and counted, never raised.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional
import logging

from commlog.etl.loaders import (
    DEFAULT_BATCH_SIZE,
    BatchWriter,
    get_contact_count,
    get_etl_state,
    get_message_count,
    update_etl_state,
)
from commlog.etl.parsers import parse_record
from commlog.etl.reassembler import reassemble_records
from commlog.etl.schema import create_schema, open_store, verify_schema
from commlog.etl.session import ImportSession, ImportStats

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Result of an import run."""

    input_path: Path
    stats: ImportStats = field(default_factory=ImportStats)
    dry_run: bool = False
    cancelled: bool = False
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        status = "CANCELLED" if self.cancelled else "COMPLETED"
        mode = " (dry run)" if self.dry_run else ""
        body = "\n".join(f"  {line}" for line in self.stats.report_lines())
        return (
            f"Import {status}{mode}: {self.input_path.name}\n"
            f"{body}\n"
            f"  Duration: {self.duration_seconds:.2f}s"
        )


def run_import(
    input_path: Path,
    db_path: Path,
    dry_run: bool = False,
    skip_duplicates: bool = True,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_records: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> ImportResult:
    """
    Import an exported log file into the store.

    Args:
        input_path: Exported log file (UTF-8, BOM tolerated, any line endings).
        db_path: Store file; created with its schema if missing.
        dry_run: Parse and report without touching the store.
        skip_duplicates: Skip records whose duplicate key is already stored.
        batch_size: Messages per transaction; must be >= 1.
        max_records: Stop after this many records (None for no limit).
        should_stop: Polled between batches; returning True flushes the
                     pending batch and ends the run early.

    Returns:
        ImportResult with the run's statistics.

    Raises:
        FileNotFoundError: If the input file does not exist.
        OSError: If the input file cannot be opened.
        ValueError: If batch_size is less than 1.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    if not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    start_time = datetime.now()
    session = ImportSession()
    stats = session.stats
    result = ImportResult(input_path=input_path, stats=stats, dry_run=dry_run)

    logger.info(f"Step 1: Opening input file {input_path}")
    # utf-8-sig drops a leading BOM; universal newlines handle \r\n and \r
    source = open(input_path, "r", encoding="utf-8-sig", errors="replace")

    conn = None
    try:
        if not dry_run:
            logger.info("Step 2: Ensuring schema exists...")
            create_schema(db_path)
            conn = open_store(db_path)
        else:
            logger.info("Step 2: Dry run, store will not be touched")

        writer = BatchWriter(
            conn,
            session,
            batch_size=batch_size,
            dry_run=dry_run,
            skip_duplicates=skip_duplicates,
        )

        logger.info("Step 3: Processing records...")
        for record in reassemble_records(source, stats):
            stats.processed_records += 1

            parsed = parse_record(record)
            if parsed is None:
                stats.errors += 1
                stats.parse_errors += 1
                logger.warning(
                    f"Could not parse {record.header.type_token} record at line "
                    f"{record.line_number}:\n{record.raw_text}"
                )
            else:
                writer.add(parsed)

            if max_records is not None and stats.processed_records >= max_records:
                logger.info(f"Reached max_records={max_records}, stopping")
                break

            if should_stop is not None and writer.pending == 0 and should_stop():
                result.cancelled = True
                logger.info("Import cancelled, stopping after the current batch")
                break

        writer.flush()

        if conn is not None:
            logger.info("Step 4: Updating ETL state...")
            update_etl_state(conn, "last_import_file", str(input_path))
            update_etl_state(
                conn,
                "last_import_at",
                datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            )
            update_etl_state(conn, "last_import_stats", json.dumps(stats.to_dict()))
    finally:
        source.close()
        if conn is not None:
            conn.close()

    result.duration_seconds = (datetime.now() - start_time).total_seconds()
    logger.info(f"Import finished in {result.duration_seconds:.2f}s")
    return result


def get_import_status(db_path: Path) -> dict:
    """
    Get current import status from the store.

    Args:
        db_path: Path to the store.

    Returns:
        Dictionary with store counts and the last run's metadata.
    """
    if not db_path.exists():
        return {"exists": False}
    if not verify_schema(db_path):
        return {"exists": True, "schema_valid": False}

    conn = open_store(db_path)
    try:
        stats_json = get_etl_state(conn, "last_import_stats")
        return {
            "exists": True,
            "schema_valid": True,
            "contact_count": get_contact_count(conn),
            "message_count": get_message_count(conn),
            "last_import_file": get_etl_state(conn, "last_import_file"),
            "last_import_at": get_etl_state(conn, "last_import_at"),
            "last_import_stats": json.loads(stats_json) if stats_json else None,
            "schema_version": get_etl_state(conn, "schema_version"),
        }
    finally:
        conn.close()
