"""
Post-import correction passes.

The export does not reliably say who sent what. These passes run against
the store after any number of imports and repair sender/receiver
attribution and duplicate contacts.

Passes:
    receivers     TO messages without a receiver get the sender of the
                  nearest earlier message as receiver
    self_replies  FROM messages that read like the device owner's own
                  replies are flipped to TO the previous sender
    contacts      contacts whose phones share a canonical form are merged;
                  remaining phones are rewritten to canonical form

"Nearest earlier" always means the global timeline (strictly earlier
timestamp, latest first), not the message's own conversation.

Every pass returns a CorrectionResult and records when it last ran in
etl_state under 'last_correction_<name>'. A row that cannot be fixed
because no earlier sender exists is counted as skipped; a database error
on a row is counted as an error and the pass continues.
"""

import re
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Protocol, Sequence, Tuple
import logging

from commlog.etl.loaders import update_etl_state
from commlog.etl.normalizers import normalize_phone
from commlog.utils import truncate

logger = logging.getLogger(__name__)

ReplyLikelihood = Literal["likely", "unlikely"]

# Words and phrases typical of the device owner's short replies
# fmt: off
REPLY_VOCABULARY = (
    "ok", "yes", "no", "thanks", "thank you", "sorry", "hi", "hello",
    "how are you", "what", "when", "where", "why", "can you", "will you",
    "please", "pls", "okay", "sure", "fine", "good", "bad", "great",
    "meet", "call", "come", "go", "see", "talk", "speak",
)
# fmt: on

SHORT_REPLY_LENGTH = 50
PROGRESS_INTERVAL = 1000


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class CorrectionResult:
    """Outcome of one correction pass."""

    name: str
    examined: int = 0
    fixed: int = 0
    skipped: int = 0
    errors: int = 0

    def __str__(self) -> str:
        return (
            f"{self.name}: {self.fixed} fixed, {self.skipped} skipped, "
            f"{self.errors} errors ({self.examined} examined)"
        )


class ReplyClassifier(Protocol):
    """Decides whether a message's content reads like the owner's reply."""

    def classify(self, content: str) -> ReplyLikelihood: ...


class KeywordReplyClassifier:
    """
    Heuristic reply classifier.

    A message is a likely reply when it is short, asks a question, or
    contains a word or phrase from the vocabulary (whole words, any case).

    Examples:
        >>> KeywordReplyClassifier().classify("Ok see you")
        'likely'
    """

    def __init__(
        self,
        vocabulary: Sequence[str] = REPLY_VOCABULARY,
        short_length: int = SHORT_REPLY_LENGTH,
    ):
        self.short_length = short_length
        alternatives = "|".join(re.escape(word) for word in vocabulary)
        self._pattern = re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)

    def classify(self, content: str) -> ReplyLikelihood:
        if len(content) < self.short_length:
            return "likely"
        if "?" in content:
            return "likely"
        if self._pattern.search(content):
            return "likely"
        return "unlikely"


def _find_previous_sender(conn: sqlite3.Connection, timestamp: str) -> Optional[int]:
    """Sender id of the latest message strictly before timestamp that has one."""
    query = """
        SELECT sender_id FROM message
        WHERE timestamp < ? AND sender_id IS NOT NULL
        ORDER BY timestamp DESC, id DESC
        LIMIT 1;
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (timestamp,))
        result = cursor.fetchone()
        return result[0] if result else None


def _record_run(conn: sqlite3.Connection, result: CorrectionResult) -> None:
    update_etl_state(conn, f"last_correction_{result.name}", _now_iso())
    logger.info(str(result))


def backfill_receivers(conn: sqlite3.Connection) -> CorrectionResult:
    """
    Give TO messages without a receiver the nearest earlier sender.

    Messages are processed in ascending timestamp order (ties by id).
    Running the pass again changes nothing: a message skipped once has no
    earlier sender the second time either.

    Args:
        conn: SQLite connection to the store.

    Returns:
        CorrectionResult named 'receivers'.
    """
    result = CorrectionResult(name="receivers")

    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            SELECT id, timestamp FROM message
            WHERE direction = 'TO' AND receiver_id IS NULL
            ORDER BY timestamp ASC, id ASC;
            """
        )
        candidates = cursor.fetchall()

    logger.info(f"Found {len(candidates)} TO messages without receiver")

    for message_id, timestamp in candidates:
        result.examined += 1
        try:
            sender_id = _find_previous_sender(conn, timestamp)
            if sender_id is None:
                logger.debug(f"Skipped message {message_id}: no previous sender")
                result.skipped += 1
                continue

            with closing(conn.cursor()) as cursor:
                cursor.execute(
                    "UPDATE message SET receiver_id = ? WHERE id = ?;",
                    (sender_id, message_id),
                )
            logger.debug(f"Fixed message {message_id}: receiver → contact {sender_id}")
            result.fixed += 1
        except sqlite3.Error as e:
            logger.error(f"Error fixing message {message_id}: {e}")
            result.errors += 1

    conn.commit()
    _record_run(conn, result)
    return result


def reclassify_self_replies(
    conn: sqlite3.Connection,
    classifier: Optional[ReplyClassifier] = None,
) -> CorrectionResult:
    """
    Flip FROM messages that look like the owner's replies into TO messages.

    For each FROM message with content, in ascending timestamp order, the
    classifier decides. A likely reply takes the nearest earlier sender as
    its receiver, loses its sender and becomes direction TO.

    Args:
        conn: SQLite connection to the store.
        classifier: Reply classifier; KeywordReplyClassifier by default.

    Returns:
        CorrectionResult named 'self_replies'.
    """
    classifier = classifier or KeywordReplyClassifier()
    result = CorrectionResult(name="self_replies")

    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            SELECT id, timestamp, content FROM message
            WHERE direction = 'FROM' AND content IS NOT NULL
            ORDER BY timestamp ASC, id ASC;
            """
        )
        candidates = cursor.fetchall()

    logger.info(f"Found {len(candidates)} FROM messages to analyze")

    for message_id, timestamp, content in candidates:
        result.examined += 1
        if result.examined % PROGRESS_INTERVAL == 0:
            logger.info(f"Analyzed {result.examined}/{len(candidates)} messages...")

        if classifier.classify(content) != "likely":
            continue

        try:
            sender_id = _find_previous_sender(conn, timestamp)
            if sender_id is None:
                logger.debug(f"Skipped message {message_id}: no previous sender")
                result.skipped += 1
                continue

            with closing(conn.cursor()) as cursor:
                cursor.execute(
                    """
                    UPDATE message
                    SET direction = 'TO', receiver_id = ?, sender_id = NULL
                    WHERE id = ?;
                    """,
                    (sender_id, message_id),
                )
            logger.debug(
                f"Fixed message {message_id}: \"{truncate(content)}\" → TO contact {sender_id}"
            )
            result.fixed += 1
        except sqlite3.Error as e:
            logger.error(f"Error fixing message {message_id}: {e}")
            result.errors += 1

    conn.commit()
    _record_run(conn, result)
    return result


def _fetch_contact(conn: sqlite3.Connection, contact_id: int) -> Optional[Tuple[int, str, Optional[str]]]:
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            "SELECT id, phone_number, name FROM contact WHERE id = ?;", (contact_id,)
        )
        row = cursor.fetchone()
        return (row[0], row[1], row[2]) if row else None


def _merge_into(conn: sqlite3.Connection, keeper_id: int, other_ids: Sequence[int]) -> int:
    """
    Move all messages of other_ids to keeper_id and delete those contacts.

    The caller commits.

    Returns:
        Number of message references reassigned.
    """
    reassigned = 0
    now = _now_iso()
    with closing(conn.cursor()) as cursor:
        for other_id in other_ids:
            cursor.execute(
                "UPDATE message SET sender_id = ? WHERE sender_id = ?;", (keeper_id, other_id)
            )
            reassigned += cursor.rowcount
            cursor.execute(
                "UPDATE message SET receiver_id = ? WHERE receiver_id = ?;",
                (keeper_id, other_id),
            )
            reassigned += cursor.rowcount
            cursor.execute("DELETE FROM contact WHERE id = ?;", (other_id,))
            logger.debug(f"Merged contact {other_id} into {keeper_id}")
        cursor.execute("UPDATE contact SET updated_at = ? WHERE id = ?;", (now, keeper_id))
    return reassigned


def _set_contact_fields(
    conn: sqlite3.Connection,
    contact_id: int,
    phone: str,
    name: Optional[str],
) -> None:
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            "UPDATE contact SET phone_number = ?, name = ?, updated_at = ? WHERE id = ?;",
            (phone, name, _now_iso(), contact_id),
        )


def merge_duplicate_contacts(conn: sqlite3.Connection) -> CorrectionResult:
    """
    Merge contacts whose phone numbers normalize to the same canonical form.

    For each group of more than one contact the lowest id is kept. It takes
    over every message the others sent or received, adopts the first
    available name if it has none, and its phone is rewritten to canonical
    form once the others are deleted. Single contacts stored in a
    non-canonical form are rewritten in place.

    'fixed' counts contacts merged away plus phones rewritten. Each group
    is committed on its own, so an error leaves other groups unaffected.

    Args:
        conn: SQLite connection to the store.

    Returns:
        CorrectionResult named 'contacts'.
    """
    result = CorrectionResult(name="contacts")

    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT id, phone_number, name FROM contact ORDER BY id ASC;")
        contacts = cursor.fetchall()

    groups: Dict[str, List[Tuple[int, str, Optional[str]]]] = {}
    for contact_id, phone, name in contacts:
        result.examined += 1
        canonical = normalize_phone(phone) or phone
        groups.setdefault(canonical, []).append((contact_id, phone, name))

    for canonical, members in groups.items():
        keeper_id, keeper_phone, keeper_name = members[0]
        others = members[1:]
        if not others and keeper_phone == canonical:
            continue

        name = keeper_name or next((m[2] for m in others if m[2]), None)
        try:
            if others:
                logger.info(f"Found {len(members)} contacts with same number: {canonical}")
                _merge_into(conn, keeper_id, [m[0] for m in others])
                result.fixed += len(others)
            if keeper_phone != canonical:
                result.fixed += 1
            _set_contact_fields(conn, keeper_id, canonical, name)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Error merging contacts for {canonical}: {e}")
            result.errors += 1

    _record_run(conn, result)
    return result


def merge_contacts(conn: sqlite3.Connection, keeper_id: int, other_id: int) -> int:
    """
    Merge one contact into another.

    The keeper takes over the other contact's messages and, if it has no
    name, the other's name. The other contact is deleted. The keeper's phone
    is rewritten to canonical form when no remaining contact holds it.

    Args:
        conn: SQLite connection to the store.
        keeper_id: Contact that survives.
        other_id: Contact merged away.

    Returns:
        Number of message references reassigned.

    Raises:
        ValueError: If both ids are the same.
        LookupError: If either contact does not exist.
    """
    if keeper_id == other_id:
        raise ValueError("Cannot merge a contact into itself")

    keeper = _fetch_contact(conn, keeper_id)
    if keeper is None:
        raise LookupError(f"Contact not found: {keeper_id}")
    other = _fetch_contact(conn, other_id)
    if other is None:
        raise LookupError(f"Contact not found: {other_id}")

    try:
        reassigned = _merge_into(conn, keeper_id, [other_id])

        phone = keeper[1]
        canonical = normalize_phone(phone) or phone
        if canonical != phone:
            with closing(conn.cursor()) as cursor:
                cursor.execute(
                    "SELECT 1 FROM contact WHERE phone_number = ? AND id != ?;",
                    (canonical, keeper_id),
                )
                if cursor.fetchone() is None:
                    phone = canonical

        _set_contact_fields(conn, keeper_id, phone, keeper[2] or other[2])
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise

    logger.info(f"Merged contact {other_id} into {keeper_id} ({reassigned} references moved)")
    return reassigned


# Pass name → pass function, in the order 'all' runs them
CORRECTION_PASSES = {
    "contacts": merge_duplicate_contacts,
    "receivers": backfill_receivers,
    "self_replies": reclassify_self_replies,
}


def run_corrections(conn: sqlite3.Connection, names: Sequence[str]) -> List[CorrectionResult]:
    """
    Run correction passes by name, in the given order.

    Raises:
        ValueError: For an unknown pass name.
    """
    unknown = [name for name in names if name not in CORRECTION_PASSES]
    if unknown:
        raise ValueError(f"Unknown correction pass: {', '.join(unknown)}")
    return [CORRECTION_PASSES[name](conn) for name in names]
