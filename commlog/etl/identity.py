"""
Contact resolution for the import pipeline.

Maps a phone number seen in a record to a persistent contact id. Identity
is the canonical phone number (see normalizers.normalize_phone).

Resolution Strategy:
    1. Session cache (phone → contact id) for this run
    2. Exact match on contact.phone_number by canonical form
    3. Create a new INDIVIDUAL contact

Every resolution, hit or miss, updates the session's last_contact_id,
which TO records without a receiver number fall back to.

Names follow first-name-wins-if-absent: a contact's name is filled in
when it has none, and never overwritten once set.
"""

import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import Optional
import logging

from commlog.etl.normalizers import normalize_phone
from commlog.etl.session import ImportSession

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def find_contact_by_phone(conn: sqlite3.Connection, phone: str) -> Optional[sqlite3.Row]:
    """
    Look up a contact by its stored phone number.

    Args:
        conn: SQLite connection to the store.
        phone: Phone number, compared verbatim.

    Returns:
        Row with id, phone_number and name, or None.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            "SELECT id, phone_number, name FROM contact WHERE phone_number = ? LIMIT 1;",
            (phone,),
        )
        return cursor.fetchone()


def create_contact(
    conn: sqlite3.Connection,
    phone: str,
    name: Optional[str] = None,
    contact_type: str = "INDIVIDUAL",
) -> int:
    """
    Insert a new contact.

    The caller owns the transaction; nothing is committed here.

    Args:
        conn: SQLite connection to the store.
        phone: Phone number to store (canonical form expected).
        name: Optional display name.
        contact_type: 'INDIVIDUAL' or 'GROUP'.

    Returns:
        The new contact id.
    """
    now = _now_iso()
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            INSERT INTO contact (phone_number, name, type, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            (phone, name, contact_type, now, now),
        )
        contact_id = cursor.lastrowid
    logger.debug(f"Created contact {contact_id} for {phone}")
    return int(contact_id)


def backfill_contact_name(conn: sqlite3.Connection, contact_id: int, name: str) -> bool:
    """
    Set a contact's name only if it has none.

    Returns:
        True if the name was written.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            UPDATE contact SET name = ?, updated_at = ?
            WHERE id = ? AND (name IS NULL OR name = '');
            """,
            (name, _now_iso(), contact_id),
        )
        updated = cursor.rowcount > 0
    if updated:
        logger.debug(f"Backfilled name for contact {contact_id}: {name}")
    return updated


def resolve_contact(
    conn: sqlite3.Connection,
    session: ImportSession,
    phone: str,
    name: Optional[str] = None,
) -> int:
    """
    Resolve a phone number to a contact id, creating the contact if needed.

    Args:
        conn: SQLite connection to the store.
        session: The current import session (cache, fallback pointer, stats).
        phone: Phone number as extracted from the record.
        name: Optional display name from the record.

    Returns:
        Contact id.
    """
    canonical = normalize_phone(phone) or phone
    name = name.strip() if name else None

    contact_id = session.cached(canonical)
    if contact_id is not None:
        logger.debug(f"Cache hit: {canonical} → {contact_id}")
    else:
        row = find_contact_by_phone(conn, canonical)
        if row is not None:
            contact_id = int(row["id"])
            if row["name"]:
                session.named_contact_ids.add(contact_id)
        else:
            contact_id = create_contact(conn, canonical, name)
            session.stats.created_contacts += 1
            if name:
                session.named_contact_ids.add(contact_id)

    if name and contact_id not in session.named_contact_ids:
        backfill_contact_name(conn, contact_id, name)
        session.named_contact_ids.add(contact_id)

    session.remember(canonical, contact_id)
    return contact_id
