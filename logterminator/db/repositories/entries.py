"""SQLite implementation of LogEntryRepository.

Entries are always read back in ``(file_index, line_number)`` order, which
is the order they were parsed in.
"""
from __future__ import annotations

from typing import Optional, Sequence

import aiosqlite

from logterminator.models import LogEntry

_ORDER = "ORDER BY file_index ASC, line_number ASC, id ASC"


def entry_from_row(row: dict) -> LogEntry:
    return LogEntry(
        id=row["id"],
        sessionId=row["session_id"],
        sessionKey=row.get("session_key") or "",
        filePath=row.get("file_path") or "",
        sourceFileIndex=row.get("file_index") or 0,
        lineNumberInFile=row.get("line_number") or 0,
        timestamp=row.get("timestamp") or "",
        level=row.get("level") or "",
        message=row.get("message") or "",
        stack=row.get("stack"),
        isFailureMarker=bool(row.get("is_failure_marker")),
    )


def _filter_clause(
    session_id: str,
    levels: Optional[Sequence[str]],
    search: Optional[str],
) -> tuple[list[str], list]:
    """WHERE conditions shared by pagination and page lookup.

    ``levels=None`` means no level filter; an empty list matches nothing.
    ``"ALL"`` and blank values are ignored, and each level also matches its
    bracketed ``[LEVEL]`` spelling.
    """
    conditions = ["session_id = ?"]
    params: list = [session_id]

    if levels is not None:
        if len(levels) == 0:
            conditions.append("1 = 0")
        else:
            wanted = [level for level in levels if level and level != "ALL"]
            if wanted:
                placeholders = ", ".join("?" for _ in range(len(wanted) * 2))
                conditions.append(f"level IN ({placeholders})")
                params.extend(wanted)
                params.extend(f"[{level}]" for level in wanted)

    if search:
        pattern = f"%{search}%"
        conditions.append("(timestamp LIKE ? OR message LIKE ?)")
        params.extend([pattern, pattern])

    return conditions, params


class SqliteLogEntryRepository:
    """SQLite-backed log entry storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def insert_many(
        self,
        session_id: str,
        entries: Sequence[LogEntry],
        *,
        commit: bool = True,
    ) -> list[int]:
        """Bulk insert in the given order and return the new ids in that order."""
        if not entries:
            return []
        async with self.db.execute(
            "SELECT COALESCE(MAX(id), 0) FROM log_entries"
        ) as cur:
            row = await cur.fetchone()
            floor = row[0] if row else 0

        await self.db.executemany(
            """INSERT INTO log_entries (
                session_id, session_key, file_path, file_index, line_number,
                timestamp, level, message, stack, is_failure_marker
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (
                    session_id,
                    entry.sessionKey,
                    entry.filePath,
                    entry.sourceFileIndex,
                    entry.lineNumberInFile,
                    entry.timestamp,
                    entry.level,
                    entry.message,
                    entry.stack,
                    1 if entry.isFailureMarker else 0,
                )
                for entry in entries
            ],
        )
        # AUTOINCREMENT ids are strictly increasing in insertion order.
        async with self.db.execute(
            "SELECT id FROM log_entries WHERE session_id = ? AND id > ? ORDER BY id",
            (session_id, floor),
        ) as cur:
            ids = [r[0] for r in await cur.fetchall()]
        if commit:
            await self.db.commit()
        return ids

    async def get_by_id(self, entry_id: int) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM log_entries WHERE id = ?", (entry_id,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_by_session(self, session_id: str) -> list[dict]:
        async with self.db.execute(
            f"SELECT * FROM log_entries WHERE session_id = ? {_ORDER}",
            (session_id,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def get_paginated(
        self,
        session_id: str,
        offset: int = 0,
        limit: int = 100,
        levels: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> tuple[list[dict], int]:
        conditions, params = _filter_clause(session_id, levels, search)
        where = " AND ".join(conditions)

        async with self.db.execute(
            f"SELECT COUNT(*) FROM log_entries WHERE {where}", params
        ) as cur:
            row = await cur.fetchone()
            total = row[0] if row else 0

        async with self.db.execute(
            f"SELECT * FROM log_entries WHERE {where} {_ORDER} LIMIT ? OFFSET ?",
            [*params, limit, offset],
        ) as cur:
            rows = [dict(r) for r in await cur.fetchall()]
        return rows, total

    async def get_page_number(
        self,
        entry_id: int,
        per_page: int,
        levels: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> int | None:
        """1-based page holding ``entry_id`` under the same filters, or None."""
        entry = await self.get_by_id(entry_id)
        if entry is None or per_page <= 0:
            return None

        conditions, params = _filter_clause(entry["session_id"], levels, search)
        conditions.append(
            "(file_index < ? OR (file_index = ? AND (line_number < ? OR (line_number = ? AND id < ?))))"
        )
        params.extend([
            entry["file_index"],
            entry["file_index"],
            entry["line_number"],
            entry["line_number"],
            entry["id"],
        ])
        async with self.db.execute(
            f"SELECT COUNT(*) FROM log_entries WHERE {' AND '.join(conditions)}", params
        ) as cur:
            row = await cur.fetchone()
            before = row[0] if row else 0
        return before // per_page + 1

    async def distinct_levels(self, session_id: str) -> list[str]:
        async with self.db.execute(
            "SELECT DISTINCT level FROM log_entries WHERE session_id = ? AND level != ''",
            (session_id,),
        ) as cur:
            return [r[0] for r in await cur.fetchall()]

    async def search(self, session_id: str, term: str, limit: int = 100) -> list[dict]:
        pattern = f"%{term}%"
        async with self.db.execute(
            f"""SELECT id, file_index, line_number, timestamp, level, message
                FROM log_entries
                WHERE session_id = ? AND (message LIKE ? OR timestamp LIKE ? OR level LIKE ?)
                {_ORDER} LIMIT ?""",
            (session_id, pattern, pattern, pattern, limit),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]
