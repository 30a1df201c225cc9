"""
Message loading for the commlog store.

Parsed records are buffered by a BatchWriter and written in batches, one
transaction per batch. Contact resolution happens at flush time so the
receiver fallback sees contacts in the same order the records appeared.

Design Decisions:
    1. One commit per flush, never per message
    2. Duplicate detection on (message_type, direction, timestamp, content);
       sender/receiver identity is not part of the key
    3. A failing message is logged and counted; the rest of the batch is kept
    4. Dry-run never touches the store
"""

import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import List, Optional
import logging

from commlog.etl.identity import resolve_contact
from commlog.etl.parsers import ParsedMessage
from commlog.etl.session import ImportSession

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DRY_RUN_SAMPLE_SIZE = 5


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_timestamp(value: datetime) -> str:
    """Render a message timestamp the way it is stored (naive, seconds precision)."""
    return value.isoformat(timespec="seconds")


def find_duplicate_message(
    conn: sqlite3.Connection,
    message_type: str,
    direction: str,
    timestamp: str,
    content: Optional[str],
) -> Optional[int]:
    """
    Look for an existing message with the same duplicate key.

    Args:
        conn: SQLite connection to the store.
        message_type: SMS, CALL, INSTANT or CALENDAR.
        direction: FROM, TO or UNKNOWN.
        timestamp: Stored timestamp text.
        content: Message content (NULL matches NULL).

    Returns:
        Id of the matching message, or None.
    """
    query = """
        SELECT id FROM message
        WHERE message_type = ? AND direction = ? AND timestamp = ?
        AND content IS ?
        LIMIT 1;
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (message_type, direction, timestamp, content))
        result = cursor.fetchone()
        return result[0] if result else None


def insert_message(
    conn: sqlite3.Connection,
    parsed: ParsedMessage,
    sender_id: Optional[int],
    receiver_id: Optional[int],
) -> int:
    """
    Insert one message row. The caller commits.

    Returns:
        The new message id.
    """
    query = """
        INSERT INTO message
            (message_type, direction, sender_id, receiver_id, timestamp,
             content, attachment, location, raw_line, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            query,
            (
                parsed.message_type,
                parsed.direction,
                sender_id,
                receiver_id,
                format_timestamp(parsed.timestamp),
                parsed.content,
                parsed.attachment,
                parsed.location,
                parsed.raw_line,
                _now_iso(),
            ),
        )
        return int(cursor.lastrowid)


class BatchWriter:
    """
    Buffers parsed messages and persists them in batches.

    Args:
        conn: SQLite connection to the store (may be None in dry-run mode).
        session: Import session shared with the contact resolver.
        batch_size: Messages per flush; must be >= 1.
        dry_run: Log what would be written instead of writing it.
        skip_duplicates: Skip messages whose duplicate key already exists.

    Raises:
        ValueError: If batch_size is less than 1.
    """

    def __init__(
        self,
        conn: Optional[sqlite3.Connection],
        session: ImportSession,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
        skip_duplicates: bool = True,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if conn is None and not dry_run:
            raise ValueError("A store connection is required unless dry_run is set")

        self.conn = conn
        self.session = session
        self.batch_size = batch_size
        self.dry_run = dry_run
        self.skip_duplicates = skip_duplicates
        self._buffer: List[ParsedMessage] = []

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, parsed: ParsedMessage) -> None:
        """Buffer a message, flushing when the batch is full."""
        self._buffer.append(parsed)
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """
        Persist the buffered messages.

        Returns:
            Number of messages written (always 0 in dry-run mode).
        """
        if not self._buffer:
            return 0

        batch, self._buffer = self._buffer, []

        if self.dry_run:
            self._log_dry_run(batch)
            return 0

        assert self.conn is not None
        written = 0
        for parsed in batch:
            try:
                if self._write_one(parsed):
                    written += 1
            except sqlite3.Error as e:
                self.session.stats.errors += 1
                logger.error(
                    f"Failed to store {parsed.message_type} message "
                    f"at {format_timestamp(parsed.timestamp)}: {e}"
                )

        self.conn.commit()
        logger.debug(f"Committed batch of {len(batch)} ({written} written)")
        return written

    def _write_one(self, parsed: ParsedMessage) -> bool:
        assert self.conn is not None
        stats = self.session.stats

        sender_id = None
        if parsed.sender_number:
            sender_id = resolve_contact(
                self.conn, self.session, parsed.sender_number, parsed.sender_name
            )

        receiver_id = None
        if parsed.receiver_number:
            receiver_id = resolve_contact(
                self.conn, self.session, parsed.receiver_number, parsed.receiver_name
            )
        elif parsed.direction == "TO":
            receiver_id = self.session.last_contact_id

        timestamp = format_timestamp(parsed.timestamp)
        if self.skip_duplicates:
            existing = find_duplicate_message(
                self.conn, parsed.message_type, parsed.direction, timestamp, parsed.content
            )
            if existing is not None:
                stats.duplicates_skipped += 1
                logger.debug(f"Duplicate of message {existing} skipped: {timestamp}")
                return False

        message_id = insert_message(self.conn, parsed, sender_id, receiver_id)
        stats.created_messages += 1
        logger.info(
            f"Imported message {message_id}: {parsed.message_type} {parsed.direction} {timestamp}"
        )
        return True

    def _log_dry_run(self, batch: List[ParsedMessage]) -> None:
        logger.info(f"[dry run] Would write {len(batch)} messages")
        for parsed in batch[:DRY_RUN_SAMPLE_SIZE]:
            party = parsed.counterpart_number or "-"
            logger.info(
                f"[dry run]   {parsed.message_type} {parsed.direction} "
                f"{format_timestamp(parsed.timestamp)} {party}: {parsed.content}"
            )


def update_etl_state(conn: sqlite3.Connection, key: str, value: str) -> None:
    """
    Update or insert an ETL state value.

    Args:
        conn: SQLite connection to the store.
        key: State key (e.g., 'last_import_file', 'last_correction_receivers').
        value: State value.
    """
    query = """
        INSERT OR REPLACE INTO etl_state (key, value, updated_at)
        VALUES (?, ?, ?);
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (key, value, _now_iso()))
        conn.commit()

    logger.debug(f"Updated ETL state: {key} = {value}")


def get_etl_state(conn: sqlite3.Connection, key: str) -> Optional[str]:
    """
    Get an ETL state value.

    Returns:
        State value, or None if not found.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT value FROM etl_state WHERE key = ?;", (key,))
        result = cursor.fetchone()
        return result[0] if result else None


def get_message_count(conn: sqlite3.Connection) -> int:
    """Get total message count in the store."""
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT COUNT(*) FROM message;")
        result = cursor.fetchone()
        return result[0] if result else 0


def get_contact_count(conn: sqlite3.Connection) -> int:
    """Get total contact count in the store."""
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT COUNT(*) FROM contact;")
        result = cursor.fetchone()
        return result[0] if result else 0
