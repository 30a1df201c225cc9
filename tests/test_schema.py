"""
Tests for the store schema.

Verifies table creation, idempotency, constraints, and the helpers used to
open and inspect the store.
"""

import sqlite3
from pathlib import Path

import pytest

from commlog.etl.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_table_names,
    open_store,
    verify_schema,
)


class TestCreateSchema:
    """Tests for create_schema."""

    def test_creates_tables(self, tmp_path: Path):
        db_path = tmp_path / "commlog.db"
        create_schema(db_path)
        tables = set(get_table_names(db_path))
        assert {"contact", "message", "etl_state"} <= tables

    def test_creates_parent_directory(self, tmp_path: Path):
        db_path = tmp_path / "a" / "b" / "commlog.db"
        create_schema(db_path)
        assert db_path.exists()

    def test_idempotent(self, empty_store: Path):
        """Running create_schema twice keeps existing data."""
        conn = sqlite3.connect(str(empty_store))
        conn.execute(
            "INSERT INTO contact (phone_number, created_at, updated_at) VALUES ('+9607771234', 'x', 'x');"
        )
        conn.commit()
        conn.close()

        create_schema(empty_store)

        conn = sqlite3.connect(str(empty_store))
        count = conn.execute("SELECT COUNT(*) FROM contact;").fetchone()[0]
        conn.close()
        assert count == 1

    def test_records_schema_version(self, store_conn: sqlite3.Connection):
        row = store_conn.execute(
            "SELECT value FROM etl_state WHERE key = 'schema_version';"
        ).fetchone()
        assert row[0] == SCHEMA_VERSION


class TestConstraints:
    """Tests for column constraints."""

    def test_phone_number_unique(self, store_conn: sqlite3.Connection, add_contact):
        add_contact(store_conn, "+9607771234")
        with pytest.raises(sqlite3.IntegrityError):
            add_contact(store_conn, "+9607771234")

    def test_invalid_direction_rejected(self, store_conn: sqlite3.Connection, add_message):
        with pytest.raises(sqlite3.IntegrityError):
            add_message(store_conn, "2014-06-05T10:00:00", direction="SIDEWAYS")

    def test_invalid_message_type_rejected(self, store_conn: sqlite3.Connection, add_message):
        with pytest.raises(sqlite3.IntegrityError):
            add_message(store_conn, "2014-06-05T10:00:00", message_type="FAX")

    def test_sender_must_exist(self, store_conn: sqlite3.Connection, add_message):
        """open_store enforces foreign keys."""
        with pytest.raises(sqlite3.IntegrityError):
            add_message(store_conn, "2014-06-05T10:00:00", sender_id=999)


class TestStoreHelpers:
    """Tests for open_store and verify_schema."""

    def test_open_store_rows_by_name(self, store_conn: sqlite3.Connection):
        row = store_conn.execute("SELECT 1 AS one;").fetchone()
        assert row["one"] == 1

    def test_verify_schema_valid(self, empty_store: Path):
        assert verify_schema(empty_store) is True

    def test_verify_schema_missing_file(self, tmp_path: Path):
        assert verify_schema(tmp_path / "missing.db") is False

    def test_verify_schema_incomplete(self, tmp_path: Path):
        db_path = tmp_path / "partial.db"
        conn = sqlite3.connect(str(db_path))
        conn.execute("CREATE TABLE contact (id INTEGER);")
        conn.commit()
        conn.close()
        assert verify_schema(db_path) is False
