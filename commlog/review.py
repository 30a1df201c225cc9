"""
Browse, search and correct the commlog store.

These functions are the query/mutation surface the API (and any external
UI) builds on. They take an open store connection and return plain
dictionaries ready for JSON serialization.

Errors:
    LookupError  a referenced message or contact does not exist
    ValueError   the request itself is invalid (empty search, bad direction)
"""

import sqlite3
from contextlib import closing
from typing import Any, Dict, List, Optional
import logging

from commlog import queries
from commlog.etl import corrections
from commlog.etl.schema import DIRECTIONS

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_WINDOW = 10


def _fetch_all(conn: sqlite3.Connection, query: str, params: tuple = ()) -> List[sqlite3.Row]:
    with closing(conn.cursor()) as cursor:
        cursor.row_factory = sqlite3.Row
        cursor.execute(query, params)
        return cursor.fetchall()


def _fetch_one(conn: sqlite3.Connection, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
    rows = _fetch_all(conn, query, params)
    return rows[0] if rows else None


def _party(contact_id: Optional[int], name: Any, phone: Any, contact_type: Any) -> Optional[Dict[str, Any]]:
    if contact_id is None:
        return None
    return {"id": contact_id, "name": name, "phone_number": phone, "type": contact_type}


def _message_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "message_type": row["message_type"],
        "direction": row["direction"],
        "timestamp": row["timestamp"],
        "content": row["content"],
        "attachment": row["attachment"],
        "location": row["location"],
        "sender": _party(
            row["sender_id"], row["sender_name"], row["sender_phone"], row["sender_type"]
        ),
        "receiver": _party(
            row["receiver_id"], row["receiver_name"], row["receiver_phone"], row["receiver_type"]
        ),
    }


def _contact_dict(row: sqlite3.Row) -> Dict[str, Any]:
    sent = row["sent_count"] or 0
    received = row["received_count"] or 0
    return {
        "id": row["id"],
        "phone_number": row["phone_number"],
        "name": row["name"],
        "type": row["type"],
        "created_at": row["created_at"],
        "sent_count": sent,
        "received_count": received,
        "message_count": sent + received,
    }


def _require_contact(conn: sqlite3.Connection, contact_id: int) -> Dict[str, Any]:
    row = _fetch_one(conn, *queries.get_contact(contact_id))
    if row is None:
        raise LookupError(f"Contact not found: {contact_id}")
    return _contact_dict(row)


def list_contacts(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    """
    List all contacts with their message counts (sent + received).

    Args:
        conn: Connection to the store.

    Returns:
        Contact dictionaries, busiest first.
    """
    return [_contact_dict(row) for row in _fetch_all(conn, queries.list_contacts())]


def get_contact_messages(conn: sqlite3.Connection, contact_id: int) -> List[Dict[str, Any]]:
    """
    Get every message a contact sent or received, ordered by timestamp.

    Raises:
        LookupError: If the contact does not exist.
    """
    _require_contact(conn, contact_id)
    return [
        _message_dict(row) for row in _fetch_all(conn, *queries.get_contact_messages(contact_id))
    ]


def search_messages(
    conn: sqlite3.Connection,
    term: str,
    window: int = DEFAULT_SEARCH_WINDOW,
) -> Dict[str, Any]:
    """
    Find the earliest message containing a term, with its surroundings.

    The match is a case-insensitive substring match over content. The
    result holds the target message plus up to `window` messages before
    and after it on the global timeline, in chronological order.

    Args:
        conn: Connection to the store.
        term: Text to search for.
        window: Messages to include on each side of the target.

    Returns:
        {"messages": [...], "target_message": {...} or None, "total": n}

    Raises:
        ValueError: If the term is blank or the window is negative.
    """
    if not term or not term.strip():
        raise ValueError("Search query is required")
    if window < 0:
        raise ValueError(f"window must not be negative, got {window}")

    target_row = _fetch_one(conn, *queries.find_first_match(term))
    if target_row is None:
        logger.debug(f"No message matches {term!r}")
        return {"messages": [], "target_message": None, "total": 0}

    target = _message_dict(target_row)
    before = _fetch_all(
        conn, *queries.get_messages_before(target["timestamp"], target["id"], window)
    )
    after = _fetch_all(conn, *queries.get_messages_after(target["timestamp"], target["id"], window))

    messages = [_message_dict(row) for row in reversed(before)]
    messages.append(target)
    messages.extend(_message_dict(row) for row in after)

    return {"messages": messages, "target_message": target, "total": len(messages)}


def correct_message(
    conn: sqlite3.Connection,
    message_id: int,
    sender_id: Optional[int] = None,
    receiver_id: Optional[int] = None,
    direction: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Set a message's sender, receiver and direction by hand.

    Sender and receiver are replaced as given (None clears them). A missing
    direction keeps the message's current direction.

    Args:
        conn: Connection to the store.
        message_id: Message to correct.
        sender_id: New sender contact id, or None.
        receiver_id: New receiver contact id, or None.
        direction: 'FROM', 'TO' or 'UNKNOWN', or None to keep the current one.

    Returns:
        The updated message dictionary.

    Raises:
        LookupError: If the message does not exist.
        ValueError: If the direction is invalid or a contact id is unknown.
    """
    existing = _fetch_one(conn, *queries.get_message(message_id))
    if existing is None:
        raise LookupError(f"Message not found: {message_id}")

    if direction is not None and direction not in DIRECTIONS:
        raise ValueError(f"Invalid direction: {direction!r}")
    for role, contact_id in (("sender", sender_id), ("receiver", receiver_id)):
        if contact_id is not None and _fetch_one(conn, *queries.get_contact(contact_id)) is None:
            raise ValueError(f"Unknown {role} contact: {contact_id}")

    new_direction = direction or existing["direction"]
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            *queries.update_message_attribution(message_id, sender_id, receiver_id, new_direction)
        )
    conn.commit()

    logger.info(
        f"Corrected message {message_id}: sender={sender_id} receiver={receiver_id} "
        f"direction={new_direction}"
    )
    updated = _fetch_one(conn, *queries.get_message(message_id))
    assert updated is not None
    return _message_dict(updated)


def merge_contacts(conn: sqlite3.Connection, keeper_id: int, other_id: int) -> Dict[str, Any]:
    """
    Merge other_id into keeper_id.

    Returns:
        The keeper's contact dictionary after the merge.

    Raises:
        LookupError: If either contact does not exist.
        ValueError: If both ids are the same.
    """
    corrections.merge_contacts(conn, keeper_id, other_id)
    return _require_contact(conn, keeper_id)


def get_summary(conn: sqlite3.Connection) -> Dict[str, Any]:
    """
    Get store-wide counts, the message date range and the last import run.

    Args:
        conn: Connection to the store.

    Returns:
        Summary dictionary.
    """
    row = _fetch_one(conn, queries.store_summary())
    assert row is not None
    by_type = {r["message_type"]: r["message_count"] for r in _fetch_all(conn, queries.messages_by_type())}
    state = {r["key"]: r["value"] for r in _fetch_all(conn, "SELECT key, value FROM etl_state;")}

    return {
        "total_contacts": row["total_contacts"],
        "total_messages": row["total_messages"],
        "messages_by_type": by_type,
        "unattributed_to_messages": row["unattributed_to_messages"],
        "date_range": {
            "first_message": row["first_message"],
            "last_message": row["last_message"],
        },
        "etl_state": state,
    }
