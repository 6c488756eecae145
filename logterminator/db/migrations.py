"""Database schema creation and versioning.

All CREATE TABLE statements use IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("logterminator.db")

SCHEMA_VERSION = 2

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── Test sessions ──────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS test_sessions (
    id               TEXT PRIMARY KEY,
    name             TEXT NOT NULL,
    source_path      TEXT NOT NULL,
    source_kind      TEXT NOT NULL DEFAULT 'local',
    file_count       INTEGER NOT NULL DEFAULT 0,
    total_entries    INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT NOT NULL,
    last_ingested_at TEXT NOT NULL,
    UNIQUE(name, source_path)
);

-- ── Log entries ────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS log_entries (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id        TEXT NOT NULL REFERENCES test_sessions(id) ON DELETE CASCADE,
    session_key       TEXT NOT NULL DEFAULT '',
    file_path         TEXT NOT NULL DEFAULT '',
    file_index        INTEGER NOT NULL DEFAULT 0,
    line_number       INTEGER NOT NULL DEFAULT 0,
    timestamp         TEXT NOT NULL DEFAULT '',
    level             TEXT NOT NULL DEFAULT '',
    message           TEXT NOT NULL DEFAULT '',
    stack             TEXT,
    is_failure_marker INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_entries_order ON log_entries(session_id, file_index, line_number);
CREATE INDEX IF NOT EXISTS idx_entries_level ON log_entries(session_id, level);

-- ── Bookmarks ──────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS bookmarks (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    log_entry_id  INTEGER NOT NULL REFERENCES log_entries(id) ON DELETE CASCADE,
    title         TEXT,
    notes         TEXT,
    color         TEXT,
    created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bookmarks_entry ON bookmarks(log_entry_id);
"""


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return any(row[1] == column for row in rows)


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    if await _column_exists(db, table, column):
        return
    await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info("Schema is up to date (version %s)", current_version)
        return

    logger.info("Running migrations: %s -> %s", current_version, SCHEMA_VERSION)
    await db.executescript(_TABLES)

    # Version 1 databases predate source kinds and stored notes.
    await _ensure_column(db, "test_sessions", "source_kind", "TEXT NOT NULL DEFAULT 'local'")
    await _ensure_column(db, "bookmarks", "notes", "TEXT")

    await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    await db.commit()
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
