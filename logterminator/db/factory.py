"""Repository accessors."""
from __future__ import annotations

import aiosqlite

from logterminator.db.repositories.bookmarks import SqliteBookmarkRepository
from logterminator.db.repositories.entries import SqliteLogEntryRepository
from logterminator.db.repositories.sessions import SqliteTestSessionRepository


def get_session_repository(db: aiosqlite.Connection):
    return SqliteTestSessionRepository(db)


def get_entry_repository(db: aiosqlite.Connection):
    return SqliteLogEntryRepository(db)


def get_bookmark_repository(db: aiosqlite.Connection):
    return SqliteBookmarkRepository(db)


def get_gateway(db: aiosqlite.Connection):
    from logterminator.db.gateway import PersistenceGateway
    return PersistenceGateway(db)
