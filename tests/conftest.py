"""
Pytest fixtures for commlog tests.

This module provides shared fixtures for testing the import pipeline,
the correction passes and the review interface.

Fixture Categories:
    1. Store fixtures (empty store, open connection, populated store)
    2. Export fixtures (sample log text and file, log writer)

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - The sample export mixes every record type plus the awkward cases
      (header noise, blank lines, wrapped content, an impossible date)
"""

import sqlite3
from pathlib import Path
from typing import Callable, Iterator

import pytest

from commlog.etl.schema import create_schema, open_store


def pytest_configure(config):
    config.addinivalue_line("markers", "property: property-based tests using Hypothesis")


# =============================================================================
# Export fixtures
# =============================================================================

SAMPLE_LOG = """Exported by PhoneDump 2.1
1 SMS From 05/06/2014 From: +9607777472 Ahmed
05:07:40(UTC+0) Hello there
2 SMS To 05/06/2014
05:09:12(UTC+0) On my way,
see you soon

3 Call Log From 05/06/2014 From: 7771234 Mariyam
06:00:00(UTC+0)
4 Instant From 06/06/2014 From: 9607771234
08:15:00(UTC+0) Did you get the file?
5 Calendar 07/06/2014 3:30 PM - Team meeting
Conference room B
6 SMS From 31/02/2014 From: +9607777472
10:00:00(UTC+0) Impossible date
"""


@pytest.fixture
def sample_log_text() -> str:
    """
    A small export covering every record type.

    Expected import outcome (fresh store):
        total lines 15, records 6, contacts 2, messages 5,
        errors 1 (record 6, 31 February), skipped lines 2
    """
    return SAMPLE_LOG


@pytest.fixture
def write_log(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory writing export text to a file in tmp_path.

    Returns:
        Function (text, name="export.txt") -> Path.
    """

    def _write(text: str, name: str = "export.txt") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_log_file(write_log: Callable[..., Path], sample_log_text: str) -> Path:
    """Write the sample export to disk."""
    return write_log(sample_log_text)


def make_sms_records(count: int, start_id: int = 1) -> str:
    """Build `count` well-formed, distinct SMS records from two senders."""
    lines = []
    for i in range(count):
        record_id = start_id + i
        phone = "+9607777472" if i % 2 == 0 else "7771234"
        minute, second = divmod(i, 60)
        lines.append(f"{record_id} SMS From 05/06/2014 From: {phone} Sender{i % 2}")
        lines.append(f"10:{minute:02d}:{second:02d}(UTC+0) Message number {record_id}")
    return "\n".join(lines) + "\n"


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def empty_store(tmp_path: Path) -> Path:
    """
    Create an empty store with schema.

    Returns:
        Path to the store file.
    """
    db_path = tmp_path / "commlog.db"
    create_schema(db_path)
    return db_path


@pytest.fixture
def store_conn(empty_store: Path) -> Iterator[sqlite3.Connection]:
    """Open connection to an empty store, closed after the test."""
    conn = open_store(empty_store)
    try:
        yield conn
    finally:
        conn.close()


NOW = "2024-01-01T00:00:00Z"


def insert_contact(conn: sqlite3.Connection, phone: str, name=None) -> int:
    """Insert a contact directly and return its id."""
    cursor = conn.execute(
        "INSERT INTO contact (phone_number, name, type, created_at, updated_at) "
        "VALUES (?, ?, 'INDIVIDUAL', ?, ?);",
        (phone, name, NOW, NOW),
    )
    conn.commit()
    return int(cursor.lastrowid)


def insert_message(
    conn: sqlite3.Connection,
    timestamp: str,
    direction: str = "FROM",
    sender_id=None,
    receiver_id=None,
    content="Hello",
    message_type: str = "SMS",
) -> int:
    """Insert a message directly and return its id."""
    cursor = conn.execute(
        "INSERT INTO message (message_type, direction, sender_id, receiver_id, timestamp, "
        "content, raw_line, created_at) VALUES (?, ?, ?, ?, ?, ?, '', ?);",
        (message_type, direction, sender_id, receiver_id, timestamp, content, NOW),
    )
    conn.commit()
    return int(cursor.lastrowid)


@pytest.fixture
def populated_store(empty_store: Path) -> Path:
    """
    Create a store with two contacts and a short conversation.

    Contacts:
        1  +9607777472  Ahmed
        2  +9607771234  Mariyam

    Messages (id, timestamp, direction, sender → receiver, content):
        1  2014-06-05T05:07:40  FROM  1 → -   Hello there
        2  2014-06-05T05:09:12  TO    - → 1   On my way
        3  2014-06-05T06:00:00  FROM  2 → -   Call            (CALL)
        4  2014-06-06T08:15:00  FROM  2 → -   Did you get the file?
        5  2014-06-07T15:30:00  UNKNOWN       Team meeting    (CALENDAR)
    """
    conn = open_store(empty_store)
    try:
        ahmed = insert_contact(conn, "+9607777472", "Ahmed")
        mariyam = insert_contact(conn, "+9607771234", "Mariyam")
        insert_message(conn, "2014-06-05T05:07:40", "FROM", sender_id=ahmed, content="Hello there")
        insert_message(conn, "2014-06-05T05:09:12", "TO", receiver_id=ahmed, content="On my way")
        insert_message(
            conn, "2014-06-05T06:00:00", "FROM", sender_id=mariyam, content="Call", message_type="CALL"
        )
        insert_message(
            conn, "2014-06-06T08:15:00", "FROM", sender_id=mariyam, content="Did you get the file?"
        )
        insert_message(
            conn, "2014-06-07T15:30:00", "UNKNOWN", content="Team meeting", message_type="CALENDAR"
        )
    finally:
        conn.close()

    return empty_store


# =============================================================================
# Helper fixtures
# =============================================================================


@pytest.fixture
def add_contact() -> Callable[..., int]:
    """Function (conn, phone, name=None) -> contact id."""
    return insert_contact


@pytest.fixture
def add_message() -> Callable[..., int]:
    """Function (conn, timestamp, direction, sender_id, receiver_id, content, message_type) -> id."""
    return insert_message


@pytest.fixture
def sms_records() -> Callable[..., str]:
    """Function (count, start_id=1) -> export text of distinct SMS records."""
    return make_sms_records
