"""
Tests for FastAPI endpoints.

Tests the API routes using FastAPI's TestClient against temporary stores.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from commlog.api import app


@pytest.fixture
def client():
    """Create a TestClient for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def store_env(populated_store: Path, monkeypatch) -> Path:
    """Point the API at the populated store."""
    monkeypatch.setenv("COMMLOG_DB_PATH", str(populated_store))
    return populated_store


@pytest.fixture
def missing_store_env(tmp_path: Path, monkeypatch) -> Path:
    """Point the API at a store that doesn't exist."""
    path = tmp_path / "missing.db"
    monkeypatch.setenv("COMMLOG_DB_PATH", str(path))
    return path


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_ok(self, client, store_env):
        """Health endpoint should report an existing store."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "store_exists": True,
            "store_path": str(store_env),
        }

    def test_health_degraded(self, client, missing_store_env):
        """A missing store degrades health instead of failing it."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_health_is_get_only(self, client, store_env):
        """Health endpoint should only accept GET requests."""
        assert client.post("/health").status_code == 405


class TestMissingStore:
    """Every data endpoint answers 503 without a store."""

    @pytest.mark.parametrize(
        "path", ["/summary", "/contacts", "/contacts/1/messages", "/messages/search?q=hi"]
    )
    def test_returns_503(self, client, missing_store_env, path):
        response = client.get(path)
        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "store not found"


class TestSummaryEndpoint:
    """Tests for /summary endpoint."""

    def test_summary(self, client, store_env):
        data = client.get("/summary").json()
        assert data["total_contacts"] == 2
        assert data["total_messages"] == 5
        assert data["store_path"] == str(store_env)


class TestContactEndpoints:
    """Tests for /contacts endpoints."""

    def test_list(self, client, store_env):
        data = client.get("/contacts").json()
        assert [c["phone_number"] for c in data] == ["+9607777472", "+9607771234"]

    def test_messages(self, client, store_env):
        response = client.get("/contacts/2/messages")
        assert response.status_code == 200
        assert [m["message_type"] for m in response.json()] == ["CALL", "SMS"]

    def test_messages_unknown_contact(self, client, store_env):
        assert client.get("/contacts/999/messages").status_code == 404

    def test_merge(self, client, store_env):
        response = client.post("/contacts/merge", json={"keeper_id": 1, "other_id": 2})
        assert response.status_code == 200
        assert response.json()["message_count"] == 4
        assert len(client.get("/contacts").json()) == 1

    def test_merge_same_contact(self, client, store_env):
        response = client.post("/contacts/merge", json={"keeper_id": 1, "other_id": 1})
        assert response.status_code == 400

    def test_merge_unknown_contact(self, client, store_env):
        response = client.post("/contacts/merge", json={"keeper_id": 1, "other_id": 999})
        assert response.status_code == 404


class TestSearchEndpoint:
    """Tests for /messages/search."""

    def test_search(self, client, store_env):
        response = client.get("/messages/search", params={"q": "file", "window": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["target_message"]["id"] == 4
        assert [m["id"] for m in data["messages"]] == [3, 4, 5]

    def test_missing_query(self, client, store_env):
        assert client.get("/messages/search").status_code == 400

    def test_window_bounds(self, client, store_env):
        assert client.get("/messages/search", params={"q": "a", "window": -1}).status_code == 422
        assert client.get("/messages/search", params={"q": "a", "window": 501}).status_code == 422


class TestCorrectEndpoint:
    """Tests for PUT /messages/{id}/correct."""

    def test_correct(self, client, store_env):
        response = client.put(
            "/messages/3/correct", json={"sender_id": None, "receiver_id": 1, "direction": "TO"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["direction"] == "TO"
        assert data["receiver"]["name"] == "Ahmed"

    def test_unknown_message(self, client, store_env):
        response = client.put("/messages/999/correct", json={"sender_id": 1})
        assert response.status_code == 404

    def test_invalid_direction(self, client, store_env):
        response = client.put("/messages/1/correct", json={"direction": "SIDEWAYS"})
        assert response.status_code == 400
