"""
SQL query definitions for the commlog store.

Contains reusable SQL for the review interface and the API. Builders that
take arguments return a (query, parameters) tuple.
"""

from typing import Any, Tuple

# Message columns with both parties joined in
_MESSAGE_SELECT = """
    SELECT
        m.id,
        m.message_type,
        m.direction,
        m.timestamp,
        m.content,
        m.attachment,
        m.location,
        m.sender_id,
        s.name AS sender_name,
        s.phone_number AS sender_phone,
        s.type AS sender_type,
        m.receiver_id,
        r.name AS receiver_name,
        r.phone_number AS receiver_phone,
        r.type AS receiver_type
    FROM message m
    LEFT JOIN contact s ON s.id = m.sender_id
    LEFT JOIN contact r ON r.id = m.receiver_id
"""

_CONTACT_SELECT = """
    SELECT
        c.id,
        c.phone_number,
        c.name,
        c.type,
        c.created_at,
        (SELECT COUNT(*) FROM message WHERE sender_id = c.id) AS sent_count,
        (SELECT COUNT(*) FROM message WHERE receiver_id = c.id) AS received_count
    FROM contact c
"""


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_contacts() -> str:
    """
    Get query for all contacts with sent/received message counts.

    Returns:
        SQL query string, busiest contacts first.
    """
    return _CONTACT_SELECT + " ORDER BY (sent_count + received_count) DESC, c.id ASC;"


def get_contact(contact_id: int) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query for one contact with its message counts.

    Args:
        contact_id: Contact id.

    Returns:
        (SQL query string, parameters tuple).
    """
    return _CONTACT_SELECT + " WHERE c.id = ?;", (contact_id,)


def get_contact_messages(contact_id: int) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query for every message a contact sent or received, oldest first.

    Args:
        contact_id: Contact id.

    Returns:
        (SQL query string, parameters tuple).
    """
    query = (
        _MESSAGE_SELECT
        + """
        WHERE m.sender_id = ? OR m.receiver_id = ?
        ORDER BY m.timestamp ASC, m.id ASC;
    """
    )
    return query, (contact_id, contact_id)


def get_message(message_id: int) -> Tuple[str, Tuple[Any, ...]]:
    """Get query for one message with its parties."""
    return _MESSAGE_SELECT + " WHERE m.id = ?;", (message_id,)


def find_first_match(search_term: str) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query for the earliest message whose content contains a term.

    Matching is case-insensitive (ASCII letters, as SQLite's LIKE).

    Args:
        search_term: Substring to look for.

    Returns:
        (SQL query string, parameters tuple).
    """
    query = (
        _MESSAGE_SELECT
        + """
        WHERE m.content LIKE ? ESCAPE '\\'
        ORDER BY m.timestamp ASC, m.id ASC
        LIMIT 1;
    """
    )
    return query, (f"%{_escape_like(search_term)}%",)


def get_messages_before(timestamp: str, message_id: int, limit: int) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query for the messages immediately preceding a message, newest first.

    Messages are ordered on (timestamp, id), so messages sharing the
    anchor's timestamp are placed by id.

    Returns:
        (SQL query string, parameters tuple).
    """
    query = (
        _MESSAGE_SELECT
        + """
        WHERE m.timestamp < ? OR (m.timestamp = ? AND m.id < ?)
        ORDER BY m.timestamp DESC, m.id DESC
        LIMIT ?;
    """
    )
    return query, (timestamp, timestamp, message_id, limit)


def get_messages_after(timestamp: str, message_id: int, limit: int) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query for the messages immediately following a message, oldest first.

    Returns:
        (SQL query string, parameters tuple).
    """
    query = (
        _MESSAGE_SELECT
        + """
        WHERE m.timestamp > ? OR (m.timestamp = ? AND m.id > ?)
        ORDER BY m.timestamp ASC, m.id ASC
        LIMIT ?;
    """
    )
    return query, (timestamp, timestamp, message_id, limit)


def update_message_attribution(
    message_id: int,
    sender_id: Any,
    receiver_id: Any,
    direction: str,
) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get statement setting a message's sender, receiver and direction.

    Returns:
        (SQL statement string, parameters tuple).
    """
    query = """
        UPDATE message
        SET sender_id = ?, receiver_id = ?, direction = ?
        WHERE id = ?;
    """
    return query, (sender_id, receiver_id, direction, message_id)


def store_summary() -> str:
    """
    Get query for store-wide counts and the message date range.

    Returns:
        SQL query string returning one row.
    """
    return """
        SELECT
            (SELECT COUNT(*) FROM contact) AS total_contacts,
            (SELECT COUNT(*) FROM message) AS total_messages,
            (SELECT COUNT(*) FROM message WHERE direction = 'TO' AND receiver_id IS NULL)
                AS unattributed_to_messages,
            (SELECT MIN(timestamp) FROM message) AS first_message,
            (SELECT MAX(timestamp) FROM message) AS last_message;
    """


def messages_by_type() -> str:
    """Get query for message counts per message type."""
    return """
        SELECT message_type, COUNT(*) AS message_count
        FROM message
        GROUP BY message_type
        ORDER BY message_type;
    """
