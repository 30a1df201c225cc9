"""
Schema definitions for the commlog store.

This module defines the DDL for the contact/message store that the import
pipeline writes and the correction passes and review interface read.

Design Decisions:
    1. INTEGER autoincrement ids so "lowest id" is a stable merge keeper
    2. phone_number is UNIQUE on its stored value; uniqueness by canonical
       form is restored by the contact merge pass
    3. Timestamps are ISO-8601 TEXT, which sorts chronologically
    4. raw_line keeps the verbatim source record for traceability
    5. etl_state tracks schema version, last import and last correction runs
"""

import sqlite3
from pathlib import Path
from typing import List
import logging

logger = logging.getLogger(__name__)

# Schema version for migration tracking
SCHEMA_VERSION = "1.0.0"

MESSAGE_TYPES = ("SMS", "CALL", "INSTANT", "CALENDAR")
DIRECTIONS = ("FROM", "TO", "UNKNOWN")
CONTACT_TYPES = ("INDIVIDUAL", "GROUP")

SCHEMA_DDL = """
-- =============================================================================
-- contact: one row per phone number seen in an import
-- =============================================================================
CREATE TABLE IF NOT EXISTS contact (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone_number TEXT NOT NULL UNIQUE,
    name TEXT,
    type TEXT NOT NULL DEFAULT 'INDIVIDUAL' CHECK (type IN ('INDIVIDUAL', 'GROUP')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- =============================================================================
-- message: one row per imported record
-- =============================================================================
-- sender_id/receiver_id/direction are the only columns mutated after import.
--
CREATE TABLE IF NOT EXISTS message (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message_type TEXT NOT NULL CHECK (message_type IN ('SMS', 'CALL', 'INSTANT', 'CALENDAR')),
    direction TEXT NOT NULL CHECK (direction IN ('FROM', 'TO', 'UNKNOWN')),
    sender_id INTEGER REFERENCES contact(id),
    receiver_id INTEGER REFERENCES contact(id),
    timestamp TEXT NOT NULL,
    content TEXT,
    attachment TEXT,
    location TEXT,
    raw_line TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_message_timestamp
    ON message(timestamp);

CREATE INDEX IF NOT EXISTS idx_message_sender
    ON message(sender_id);

CREATE INDEX IF NOT EXISTS idx_message_receiver
    ON message(receiver_id);

-- Duplicate detection key (content compared after the index narrows rows)
CREATE INDEX IF NOT EXISTS idx_message_dedup
    ON message(message_type, direction, timestamp);

-- =============================================================================
-- etl_state: key-value run metadata
-- =============================================================================
-- Common keys:
--   - 'schema_version'
--   - 'last_import_file', 'last_import_at', 'last_import_stats'
--   - 'last_correction_<pass>'
--
CREATE TABLE IF NOT EXISTS etl_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

INSERT OR REPLACE INTO etl_state (key, value, updated_at)
VALUES ('schema_version', '{schema_version}', datetime('now'));
""".format(
    schema_version=SCHEMA_VERSION
)


def create_schema(db_path: Path) -> None:
    """
    Create the store schema if it doesn't exist.

    Idempotent: every table and index uses IF NOT EXISTS.

    Args:
        db_path: Path to the store file. Parent directory will be created
                 if it doesn't exist.

    Raises:
        sqlite3.Error: If schema creation fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Creating/verifying schema at: {db_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.executescript(SCHEMA_DDL)
        conn.commit()

        logger.info(f"Schema created/verified successfully (version {SCHEMA_VERSION})")
    except sqlite3.Error as e:
        logger.error(f"Schema creation failed: {e}")
        raise
    finally:
        conn.close()


def open_store(db_path: Path) -> sqlite3.Connection:
    """
    Open the store read-write with foreign keys enforced.

    Args:
        db_path: Path to the store file.

    Returns:
        SQLite connection whose rows support access by column name.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def get_table_names(db_path: Path) -> List[str]:
    """
    Get all table names in the store.

    Args:
        db_path: Path to the store file.

    Returns:
        List of table names.
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;")
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()


def verify_schema(db_path: Path) -> bool:
    """
    Verify that the schema exists and has all required tables.

    Args:
        db_path: Path to the store file.

    Returns:
        True if schema is valid, False otherwise.
    """
    required_tables = {"contact", "message", "etl_state"}

    if not db_path.exists():
        return False

    existing_tables = set(get_table_names(db_path))
    return required_tables.issubset(existing_tables)
