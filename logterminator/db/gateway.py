"""Persistence gateway used by ingestion and the query API.

All writes made by ingestion go through one connection. ``write_lock``
serializes them so a session's transaction never interleaves with another
session's statements; ``replace_session`` takes the lock itself, callers
doing several bookmark writes in a row take it explicitly.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional, Sequence

import aiosqlite

from logterminator.db.factory import (
    get_bookmark_repository,
    get_entry_repository,
    get_session_repository,
)
from logterminator.db.repositories.bookmarks import bookmark_from_row
from logterminator.db.repositories.entries import entry_from_row
from logterminator.db.repositories.sessions import session_from_row
from logterminator.errors import PersistenceError
from logterminator.levels import sort_levels
from logterminator.models import Bookmark, BookmarkWithEntry, LogEntry, TestSession

logger = logging.getLogger("logterminator.db")


class PersistenceGateway:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.sessions = get_session_repository(db)
        self.entries = get_entry_repository(db)
        self.bookmarks = get_bookmark_repository(db)
        self.write_lock = asyncio.Lock()

    # ── Core write operations ──────────────────────────────────────

    async def find_session(self, name: str, source_path: str) -> Optional[str]:
        return await self.sessions.find_id(name, source_path)

    async def delete_session(self, session_id: str) -> bool:
        return await self.sessions.delete(session_id)

    async def delete_session_by_name_and_path(self, name: str, source_path: str) -> Optional[str]:
        session_id = await self.find_session(name, source_path)
        if session_id is None:
            return None
        await self.delete_session(session_id)
        return session_id

    async def create_session(self, session: TestSession) -> str:
        return await self.sessions.insert(session)

    async def insert_entries(self, session_id: str, entries: Sequence[LogEntry]) -> list[int]:
        return await self.entries.insert_many(session_id, entries)

    async def add_bookmark(self, bookmark: Bookmark) -> int:
        return await self.bookmarks.add(bookmark)

    async def find_bookmark_by_entry(self, log_entry_id: int) -> Optional[int]:
        return await self.bookmarks.find_by_entry(log_entry_id)

    async def update_bookmark(self, bookmark_id: int, title: Optional[str], color: Optional[str]) -> bool:
        return await self.bookmarks.update(bookmark_id, title, color)

    async def replace_session(self, session: TestSession, entries: Sequence[LogEntry]) -> list[int]:
        """Atomically replace any session with the same (name, sourcePath).

        Deletes the prior session (entries and bookmarks cascade), inserts the
        new session and its entries, and commits once. Returns the new entry
        ids in the order of ``entries``.

        Raises:
            PersistenceError: the write failed and was rolled back.
        """
        async with self.write_lock:
            try:
                await self.db.execute("BEGIN IMMEDIATE")
                prior_id = await self.sessions.find_id(session.name, session.sourcePath)
                if prior_id is not None:
                    await self.sessions.delete(prior_id, commit=False)
                await self.sessions.insert(session, commit=False)
                ids = await self.entries.insert_many(session.id, entries, commit=False)
                await self.db.commit()
            except aiosqlite.Error as exc:
                await self.db.rollback()
                logger.error("Rolled back write of session %s: %s", session.name, exc)
                raise PersistenceError(session.name, str(exc)) from exc
            except BaseException:
                await self.db.rollback()
                raise

        if prior_id is not None:
            logger.info("Replaced session %s (%s) with %d entries", session.name, prior_id, len(ids))
        else:
            logger.info("Created session %s with %d entries", session.name, len(ids))
        return ids

    # ── Query interface ────────────────────────────────────────────

    async def list_sessions(self) -> list[TestSession]:
        return [session_from_row(row) for row in await self.sessions.list_all()]

    async def list_sessions_for_source(self, source_path: str) -> list[TestSession]:
        return [session_from_row(row) for row in await self.sessions.list_by_source(source_path)]

    async def get_session(self, session_id: str) -> Optional[TestSession]:
        row = await self.sessions.get_by_id(session_id)
        return session_from_row(row) if row else None

    async def get_entries(self, session_id: str) -> list[LogEntry]:
        return [entry_from_row(row) for row in await self.entries.list_by_session(session_id)]

    async def get_entry(self, entry_id: int) -> Optional[LogEntry]:
        row = await self.entries.get_by_id(entry_id)
        return entry_from_row(row) if row else None

    async def get_entries_paginated(
        self,
        session_id: str,
        offset: int = 0,
        limit: int = 100,
        levels: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> tuple[list[LogEntry], int]:
        rows, total = await self.entries.get_paginated(session_id, offset, limit, levels, search)
        return [entry_from_row(row) for row in rows], total

    async def get_entry_page(
        self,
        entry_id: int,
        per_page: int,
        levels: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> Optional[int]:
        return await self.entries.get_page_number(entry_id, per_page, levels, search)

    async def get_session_levels(
        self,
        session_id: str,
        priority: Optional[Mapping[str, int]] = None,
    ) -> list[str]:
        return sort_levels(await self.entries.distinct_levels(session_id), priority)

    async def search_entries(self, session_id: str, term: str, limit: int = 100) -> list[dict]:
        return await self.entries.search(session_id, term, limit)

    async def list_bookmarks(self, session_id: str) -> list[BookmarkWithEntry]:
        return [
            BookmarkWithEntry(bookmark=bookmark_from_row(bookmark), entry=entry_from_row(entry))
            for bookmark, entry in await self.bookmarks.list_by_session(session_id)
        ]

    async def get_bookmark(self, bookmark_id: int) -> Optional[Bookmark]:
        row = await self.bookmarks.get_by_id(bookmark_id)
        return bookmark_from_row(row) if row else None

    async def update_bookmark_title(self, bookmark_id: int, title: Optional[str]) -> bool:
        return await self.bookmarks.update_title(bookmark_id, title)

    async def update_bookmark_notes(self, bookmark_id: int, notes: Optional[str]) -> bool:
        return await self.bookmarks.update_notes(bookmark_id, notes)

    async def delete_bookmark(self, bookmark_id: int) -> bool:
        return await self.bookmarks.delete(bookmark_id)
