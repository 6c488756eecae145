"""Database connection factory.

Provides a singleton async connection to SQLite with WAL mode and foreign
keys enabled.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import aiosqlite

from logterminator import config

logger = logging.getLogger("logterminator.db")

_connection: aiosqlite.Connection | None = None


async def open_connection(path: str | Path) -> aiosqlite.Connection:
    """Open a configured connection without touching the singleton."""
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(path))
    conn.row_factory = aiosqlite.Row
    # WAL lets readers see only committed sessions while a writer is active.
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(path: Optional[str | Path] = None) -> aiosqlite.Connection:
    """Return the singleton database connection, creating it if needed."""
    global _connection
    if _connection is not None:
        return _connection

    db_path = path if path is not None else config.DB_PATH
    _connection = await open_connection(db_path)
    logger.info("Database connection established: %s", db_path)
    return _connection


async def close_connection() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        await _connection.close()
        _connection = None
        logger.info("Database connection closed")
