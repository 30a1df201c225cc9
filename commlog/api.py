"""
FastAPI backend for commlog.

Exposes the review interface (browse, search, correct, merge) over HTTP
for an external UI. The API never imports data; run the import CLI first
to populate the store.

Store path: COMMLOG_DB_PATH, else ~/.commlog/commlog.db.
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from commlog import review
from commlog.config import Config
from commlog.etl.schema import open_store


class CorrectionRequest(BaseModel):
    """Body of PUT /messages/{id}/correct."""

    sender_id: Optional[int] = None
    receiver_id: Optional[int] = None
    direction: Optional[str] = None


class MergeRequest(BaseModel):
    """Body of POST /contacts/merge."""

    keeper_id: int
    other_id: int


def _get_store_path() -> Path:
    """Get the path to the store."""
    return Config().db_path


def _open_store() -> sqlite3.Connection:
    """
    Open the store for one request.

    Raises HTTPException(503) if the store doesn't exist.
    """
    path = _get_store_path()
    if not path.exists():
        raise HTTPException(
            status_code=503,
            detail={
                "error": "store not found",
                "message": "Run commlog-import first to populate the store",
                "path": str(path),
            },
        )
    return open_store(path)


app = FastAPI(
    title="commlog API",
    version="0.1.0",
    description="Browse, search and correct imported communication logs.",
)

# Local dev CORS defaults
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        os.getenv("COMMLOG_ALLOWED_ORIGIN", "http://127.0.0.1:5173"),
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> Dict[str, Any]:
    """Health check - also reports whether the store exists."""
    path = _get_store_path()
    return {
        "status": "ok" if path.exists() else "degraded",
        "store_exists": path.exists(),
        "store_path": str(path),
    }


@app.get("/summary")
def summary() -> Dict[str, Any]:
    """Get store-wide counts and the last import run."""
    conn = _open_store()
    try:
        result = review.get_summary(conn)
        result["store_path"] = str(_get_store_path())
        return result
    finally:
        conn.close()


@app.get("/contacts")
def contacts() -> List[Dict[str, Any]]:
    """Get all contacts with message counts, busiest first."""
    conn = _open_store()
    try:
        return review.list_contacts(conn)
    finally:
        conn.close()


@app.get("/contacts/{contact_id}/messages")
def contact_messages(contact_id: int) -> List[Dict[str, Any]]:
    """Get every message a contact sent or received, oldest first."""
    conn = _open_store()
    try:
        return review.get_contact_messages(conn, contact_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    finally:
        conn.close()


@app.get("/messages/search")
def search(
    q: str = Query(default=""),
    window: int = Query(default=review.DEFAULT_SEARCH_WINDOW, ge=0, le=500),
) -> Dict[str, Any]:
    """Find the earliest message containing q, with `window` messages either side."""
    conn = _open_store()
    try:
        return review.search_messages(conn, q, window)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        conn.close()


@app.put("/messages/{message_id}/correct")
def correct(message_id: int, body: CorrectionRequest) -> Dict[str, Any]:
    """Set a message's sender, receiver and direction."""
    conn = _open_store()
    try:
        return review.correct_message(
            conn,
            message_id,
            sender_id=body.sender_id,
            receiver_id=body.receiver_id,
            direction=body.direction,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        conn.close()


@app.post("/contacts/merge")
def merge(body: MergeRequest) -> Dict[str, Any]:
    """Merge other_id into keeper_id and return the keeper."""
    conn = _open_store()
    try:
        return review.merge_contacts(conn, body.keeper_id, body.other_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        conn.close()
