"""
Store validation module.

Checks the store's invariants after an import or a correction run.

Validation Checks:
    1. Contact phones are unique by canonical form
    2. Contact phones are stored in canonical form
    3. Calendar entries have direction UNKNOWN and no sender/receiver
    4. TO messages have a receiver
    5. No message references a missing contact
    6. Message timestamps are YYYY-MM-DDTHH:MM:SS

Checks 1 and 2 fail until the contact merge pass has run; check 4 fails
until the receiver backfill has run (or could not find a sender).
"""

import sqlite3
from collections import Counter
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging

from commlog.etl.normalizers import normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class ValidationCheck:
    """Result of a single validation check."""

    name: str
    passed: bool
    message: str
    details: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of all validation checks."""

    passed: bool
    checks: List[ValidationCheck] = field(default_factory=list)
    summary: str = ""

    def __str__(self) -> str:
        lines = []
        for check in self.checks:
            icon = "✓" if check.passed else "✗"
            lines.append(f"{icon} {check.name}: {check.message}")
            if check.details and not check.passed:
                lines.append(f"  → {check.details}")

        status = "All checks passed" if self.passed else "Some checks failed"
        lines.append(f"\n{status}.")
        return "\n".join(lines)


def _open_store_readonly(path: Path) -> sqlite3.Connection:
    """Open the store in read-only mode for validation."""
    uri = f"file:{path}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def _scalar(conn: sqlite3.Connection, query: str) -> int:
    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        return cursor.fetchone()[0]


def check_canonical_uniqueness(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify no two contacts share a canonical phone number.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT phone_number FROM contact;")
        phones = [row[0] for row in cursor.fetchall()]

    counts = Counter(normalize_phone(phone) for phone in phones)
    duplicated = sorted(phone for phone, count in counts.items() if count > 1)

    passed = not duplicated
    message = (
        f"{len(phones)} contacts, all unique"
        if passed
        else f"{len(duplicated)} canonical numbers held by several contacts"
    )

    return ValidationCheck(
        name="Contact uniqueness",
        passed=passed,
        message=message,
        details=f"e.g. {', '.join(duplicated[:3])}; run the contacts pass" if not passed else None,
    )


def check_phone_normalization(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify contact phones are stored in canonical form.

    Numbers outside the local convention normalize to themselves and count
    as canonical.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT phone_number FROM contact;")
        phones = [row[0] for row in cursor.fetchall()]

    if not phones:
        return ValidationCheck(
            name="Phone normalization",
            passed=True,
            message="No contacts to validate",
        )

    non_canonical = sum(1 for phone in phones if normalize_phone(phone) != phone)
    passed = non_canonical == 0
    message = (
        "All phones canonical"
        if passed
        else f"{non_canonical}/{len(phones)} phones not in canonical form"
    )

    return ValidationCheck(name="Phone normalization", passed=passed, message=message)


def check_calendar_entries(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify calendar entries carry no direction and no parties.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    invalid_count = _scalar(
        conn,
        """
        SELECT COUNT(*) FROM message
        WHERE message_type = 'CALENDAR'
        AND (direction != 'UNKNOWN' OR sender_id IS NOT NULL OR receiver_id IS NOT NULL);
        """,
    )

    passed = invalid_count == 0
    message = "All calendar entries valid" if passed else f"{invalid_count} invalid calendar entries"

    return ValidationCheck(name="Calendar entries", passed=passed, message=message)


def check_to_receivers(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify TO messages have a receiver.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    missing = _scalar(
        conn,
        "SELECT COUNT(*) FROM message WHERE direction = 'TO' AND receiver_id IS NULL;",
    )

    passed = missing == 0
    message = "All TO messages have a receiver" if passed else f"{missing} TO messages without receiver"

    return ValidationCheck(
        name="TO receivers",
        passed=passed,
        message=message,
        details="Run the receivers pass" if not passed else None,
    )


def check_no_orphan_messages(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify every sender_id/receiver_id references an existing contact.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    orphan_count = _scalar(
        conn,
        """
        SELECT COUNT(*) FROM message
        WHERE (sender_id IS NOT NULL AND sender_id NOT IN (SELECT id FROM contact))
        OR (receiver_id IS NOT NULL AND receiver_id NOT IN (SELECT id FROM contact));
        """,
    )

    passed = orphan_count == 0
    message = "No orphaned messages" if passed else f"{orphan_count} orphaned messages"

    return ValidationCheck(
        name="No orphan messages",
        passed=passed,
        message=message,
        details="Messages reference non-existent contacts" if not passed else None,
    )


def check_timestamp_formats(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify all message timestamps are YYYY-MM-DDTHH:MM:SS.

    Args:
        conn: Connection to the store.

    Returns:
        ValidationCheck result.
    """
    invalid_count = _scalar(
        conn,
        """
        SELECT COUNT(*) FROM message
        WHERE timestamp NOT GLOB
            '[0-9][0-9][0-9][0-9]-[0-9][0-9]-[0-9][0-9]T[0-9][0-9]:[0-9][0-9]:[0-9][0-9]';
        """,
    )

    passed = invalid_count == 0
    message = "All timestamps valid" if passed else f"{invalid_count} invalid timestamps"

    return ValidationCheck(name="Timestamp formats", passed=passed, message=message)


def validate_store(db_path: Path) -> ValidationResult:
    """
    Run all validation checks against the store.

    Args:
        db_path: Path to the store.

    Returns:
        ValidationResult with all check results.
    """
    checks: List[ValidationCheck] = []

    if not db_path.exists():
        checks.append(
            ValidationCheck(name="Store", passed=False, message=f"Store not found: {db_path}")
        )
    else:
        try:
            conn = _open_store_readonly(db_path)
            try:
                checks.append(check_canonical_uniqueness(conn))
                checks.append(check_phone_normalization(conn))
                checks.append(check_calendar_entries(conn))
                checks.append(check_to_receivers(conn))
                checks.append(check_no_orphan_messages(conn))
                checks.append(check_timestamp_formats(conn))
            finally:
                conn.close()
        except sqlite3.Error as e:
            checks.append(
                ValidationCheck(
                    name="Connection",
                    passed=False,
                    message=f"Failed to validate store: {e}",
                )
            )

    all_passed = all(check.passed for check in checks)
    passed_count = sum(1 for c in checks if c.passed)

    result = ValidationResult(
        passed=all_passed,
        checks=checks,
        summary=f"{passed_count}/{len(checks)} checks passed",
    )

    logger.info(f"Validation complete: {result.summary}")
    return result
