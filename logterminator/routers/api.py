"""Read-only query API over ingested sessions, plus bookmark editing."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from logterminator.db import connection
from logterminator.db.factory import get_gateway
from logterminator.ingestion.bookmarks import ensure_auto_bookmarks
from logterminator.levels import load_level_priority
from logterminator.models import (
    Bookmark,
    BookmarkWithEntry,
    LogEntry,
    PaginatedResponse,
    StackFrame,
    TestSession,
)
from logterminator.parsers.stack_traces import (
    is_python_stack_trace,
    parse_python_stack_trace,
    stack_preview,
)

logger = logging.getLogger("logterminator.api")

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])
entries_router = APIRouter(prefix="/api/entries", tags=["entries"])
bookmarks_router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])


class BookmarkCreate(BaseModel):
    logEntryId: int
    title: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None


class BookmarkUpdate(BaseModel):
    title: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None


class EntryPage(BaseModel):
    entryId: int
    page: int
    perPage: int


class StackTraceView(BaseModel):
    entryId: int
    preview: str
    isPython: bool
    frames: list[StackFrame] = Field(default_factory=list)
    raw: Optional[str] = None


@lru_cache(maxsize=1)
def _level_priority() -> dict[str, int]:
    return load_level_priority()


def _parse_levels(raw: Optional[str]) -> Optional[list[str]]:
    """``None`` means unfiltered; an empty string selects no level at all."""
    if raw is None:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


async def _gateway():
    db = await connection.get_connection()
    return get_gateway(db)


async def _require_session(gateway, session_id: str) -> TestSession:
    session = await gateway.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


# ── Sessions ────────────────────────────────────────────────────────

@sessions_router.get("", response_model=list[TestSession])
async def list_sessions():
    """Return all ingested sessions, most recently ingested first."""
    gateway = await _gateway()
    return await gateway.list_sessions()


@sessions_router.get("/{session_id}", response_model=TestSession)
async def get_session(session_id: str):
    gateway = await _gateway()
    return await _require_session(gateway, session_id)


@sessions_router.delete("/{session_id}")
async def delete_session(session_id: str):
    gateway = await _gateway()
    if not await gateway.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    logger.info("Deleted session %s", session_id)
    return {"status": "ok", "sessionId": session_id}


@sessions_router.get("/{session_id}/entries", response_model=PaginatedResponse[LogEntry])
async def list_entries(
    session_id: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=5000),
    levels: Optional[str] = Query(None, description="Comma-separated levels; an empty value selects none"),
    search: Optional[str] = Query(None, description="Substring match on timestamp or message"),
):
    """Entries in log order, filtered by level and search term."""
    gateway = await _gateway()
    await _require_session(gateway, session_id)
    items, total = await gateway.get_entries_paginated(
        session_id, offset, limit, _parse_levels(levels), search or None
    )
    return PaginatedResponse(items=items, total=total, offset=offset, limit=limit)


@sessions_router.get("/{session_id}/levels", response_model=list[str])
async def list_session_levels(session_id: str):
    gateway = await _gateway()
    await _require_session(gateway, session_id)
    return await gateway.get_session_levels(session_id, _level_priority())


@sessions_router.get("/{session_id}/search")
async def search_session(
    session_id: str,
    q: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=1000),
):
    gateway = await _gateway()
    await _require_session(gateway, session_id)
    hits = await gateway.search_entries(session_id, q, limit)
    return {"query": q, "count": len(hits), "items": hits}


@sessions_router.get("/{session_id}/bookmarks", response_model=list[BookmarkWithEntry])
async def list_session_bookmarks(session_id: str):
    gateway = await _gateway()
    await _require_session(gateway, session_id)
    return await gateway.list_bookmarks(session_id)


@sessions_router.post("/{session_id}/bookmarks", response_model=Bookmark)
async def create_bookmark(session_id: str, body: BookmarkCreate):
    gateway = await _gateway()
    entry = await gateway.get_entry(body.logEntryId)
    if not entry or entry.sessionId != session_id:
        raise HTTPException(
            status_code=404,
            detail=f"Entry {body.logEntryId} not found in session {session_id}",
        )
    bookmark_id = await gateway.add_bookmark(
        Bookmark(logEntryId=body.logEntryId, title=body.title, notes=body.notes, color=body.color)
    )
    return await gateway.get_bookmark(bookmark_id)


@sessions_router.post("/{session_id}/auto-bookmarks")
async def refresh_auto_bookmarks(session_id: str):
    """Re-apply automatic bookmarks to a stored session."""
    gateway = await _gateway()
    await _require_session(gateway, session_id)
    changed = await ensure_auto_bookmarks(gateway, session_id)
    return {"status": "ok", "sessionId": session_id, "changed": changed}


# ── Entries ─────────────────────────────────────────────────────────

@entries_router.get("/{entry_id}", response_model=LogEntry)
async def get_entry(entry_id: int):
    gateway = await _gateway()
    entry = await gateway.get_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Entry {entry_id} not found")
    return entry


@entries_router.get("/{entry_id}/page", response_model=EntryPage)
async def get_entry_page(
    entry_id: int,
    per_page: int = Query(100, ge=1, le=5000),
    levels: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """1-based page that holds the entry under the given filters."""
    gateway = await _gateway()
    page = await gateway.get_entry_page(entry_id, per_page, _parse_levels(levels), search or None)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Entry {entry_id} not found")
    return EntryPage(entryId=entry_id, page=page, perPage=per_page)


@entries_router.get("/{entry_id}/stack", response_model=StackTraceView)
async def get_entry_stack(entry_id: int):
    gateway = await _gateway()
    entry = await gateway.get_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Entry {entry_id} not found")
    return StackTraceView(
        entryId=entry_id,
        preview=stack_preview(entry.stack),
        isPython=is_python_stack_trace(entry.stack),
        frames=parse_python_stack_trace(entry.stack),
        raw=entry.stack,
    )


# ── Bookmarks ───────────────────────────────────────────────────────

@bookmarks_router.patch("/{bookmark_id}", response_model=Bookmark)
async def update_bookmark(bookmark_id: int, body: BookmarkUpdate):
    """Update only the fields present in the request body."""
    gateway = await _gateway()
    existing = await gateway.get_bookmark(bookmark_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Bookmark {bookmark_id} not found")

    fields = body.model_fields_set
    if "color" in fields:
        title = body.title if "title" in fields else existing.title
        await gateway.update_bookmark(bookmark_id, title, body.color)
    elif "title" in fields:
        await gateway.update_bookmark_title(bookmark_id, body.title)
    if "notes" in fields:
        await gateway.update_bookmark_notes(bookmark_id, body.notes)
    return await gateway.get_bookmark(bookmark_id)


@bookmarks_router.delete("/{bookmark_id}")
async def delete_bookmark(bookmark_id: int):
    gateway = await _gateway()
    if not await gateway.delete_bookmark(bookmark_id):
        raise HTTPException(status_code=404, detail=f"Bookmark {bookmark_id} not found")
    return {"status": "ok", "bookmarkId": bookmark_id}
