"""Repository package for database access."""

from .sessions import SqliteTestSessionRepository
from .entries import SqliteLogEntryRepository
from .bookmarks import SqliteBookmarkRepository

__all__ = [
    "SqliteTestSessionRepository",
    "SqliteLogEntryRepository",
    "SqliteBookmarkRepository",
]
