"""
Tests for contact resolution.

Verifies the cache → store → create order, the receiver fallback pointer
and the first-name-wins-if-absent naming policy.
"""

import sqlite3

from commlog.etl.identity import (
    backfill_contact_name,
    create_contact,
    find_contact_by_phone,
    resolve_contact,
)
from commlog.etl.session import ImportSession


def contact_rows(conn: sqlite3.Connection):
    return conn.execute("SELECT id, phone_number, name FROM contact ORDER BY id;").fetchall()


class TestResolveContact:
    """Tests for resolve_contact."""

    def test_creates_contact_with_canonical_phone(self, store_conn):
        session = ImportSession()
        contact_id = resolve_contact(store_conn, session, "7771234", "Mariyam")

        rows = contact_rows(store_conn)
        assert len(rows) == 1
        assert rows[0]["id"] == contact_id
        assert rows[0]["phone_number"] == "+9607771234"
        assert rows[0]["name"] == "Mariyam"
        assert session.stats.created_contacts == 1

    def test_local_forms_resolve_to_same_contact(self, store_conn):
        session = ImportSession()
        first = resolve_contact(store_conn, session, "7771234")
        second = resolve_contact(store_conn, session, "+960 777 1234")
        third = resolve_contact(store_conn, ImportSession(), "9607771234")
        assert first == second == third
        assert len(contact_rows(store_conn)) == 1

    def test_finds_existing_contact_in_store(self, store_conn, add_contact):
        existing = add_contact(store_conn, "+9607777472", "Ahmed")
        session = ImportSession()
        assert resolve_contact(store_conn, session, "7777472") == existing
        assert session.stats.created_contacts == 0

    def test_cache_populated(self, store_conn):
        session = ImportSession()
        contact_id = resolve_contact(store_conn, session, "7771234")
        assert session.cached("+9607771234") == contact_id

    def test_last_contact_updated_on_every_resolution(self, store_conn):
        session = ImportSession()
        first = resolve_contact(store_conn, session, "7771234")
        second = resolve_contact(store_conn, session, "7777472")
        assert session.last_contact_id == second
        resolve_contact(store_conn, session, "7771234")
        assert session.last_contact_id == first

    def test_name_backfilled_when_absent(self, store_conn):
        session = ImportSession()
        contact_id = resolve_contact(store_conn, session, "7771234")
        resolve_contact(store_conn, session, "7771234", "Mariyam")
        row = find_contact_by_phone(store_conn, "+9607771234")
        assert row["id"] == contact_id
        assert row["name"] == "Mariyam"

    def test_name_never_overwritten(self, store_conn):
        session = ImportSession()
        resolve_contact(store_conn, session, "7771234", "Mariyam")
        resolve_contact(store_conn, session, "7771234", "Someone Else")
        resolve_contact(store_conn, ImportSession(), "7771234", "Third Name")
        assert find_contact_by_phone(store_conn, "+9607771234")["name"] == "Mariyam"

    def test_blank_name_ignored(self, store_conn):
        session = ImportSession()
        resolve_contact(store_conn, session, "7771234", "   ")
        assert find_contact_by_phone(store_conn, "+9607771234")["name"] is None

    def test_foreign_number_stored_verbatim(self, store_conn):
        session = ImportSession()
        resolve_contact(store_conn, session, "+14155551234")
        assert find_contact_by_phone(store_conn, "+14155551234") is not None

    def test_sessions_are_isolated(self, store_conn):
        first = ImportSession()
        resolve_contact(store_conn, first, "7771234")
        second = ImportSession()
        assert second.cached("+9607771234") is None
        assert second.last_contact_id is None


class TestContactHelpers:
    """Tests for create_contact and backfill_contact_name."""

    def test_create_contact_does_not_commit(self, empty_store, store_conn):
        create_contact(store_conn, "+9607771234")
        other = sqlite3.connect(str(empty_store))
        try:
            count = other.execute("SELECT COUNT(*) FROM contact;").fetchone()[0]
        finally:
            other.close()
        assert count == 0

    def test_create_group_contact(self, store_conn):
        contact_id = create_contact(store_conn, "+9607771234", contact_type="GROUP")
        row = store_conn.execute("SELECT type FROM contact WHERE id = ?;", (contact_id,)).fetchone()
        assert row["type"] == "GROUP"

    def test_backfill_only_when_absent(self, store_conn, add_contact):
        named = add_contact(store_conn, "+9607777472", "Ahmed")
        unnamed = add_contact(store_conn, "+9607771234")
        assert backfill_contact_name(store_conn, named, "Other") is False
        assert backfill_contact_name(store_conn, unnamed, "Mariyam") is True
        assert find_contact_by_phone(store_conn, "+9607771234")["name"] == "Mariyam"
