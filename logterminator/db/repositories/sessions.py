"""SQLite implementation of TestSessionRepository."""
from __future__ import annotations

import aiosqlite

from logterminator.models import TestSession


def session_from_row(row: dict) -> TestSession:
    return TestSession(
        id=row["id"],
        name=row["name"],
        sourcePath=row["source_path"],
        sourceKind=row.get("source_kind") or "local",
        fileCount=row.get("file_count") or 0,
        totalEntries=row.get("total_entries") or 0,
        createdAt=row.get("created_at") or "",
        lastIngestedAt=row.get("last_ingested_at") or "",
    )


class SqliteTestSessionRepository:
    """SQLite-backed test session storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def find_id(self, name: str, source_path: str) -> str | None:
        async with self.db.execute(
            "SELECT id FROM test_sessions WHERE name = ? AND source_path = ?",
            (name, source_path),
        ) as cur:
            row = await cur.fetchone()
            return row[0] if row else None

    async def get_by_id(self, session_id: str) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM test_sessions WHERE id = ?", (session_id,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_all(self) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM test_sessions ORDER BY last_ingested_at DESC, name"
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def list_by_source(self, source_path: str) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM test_sessions WHERE source_path = ? ORDER BY name",
            (source_path,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def insert(self, session: TestSession, *, commit: bool = True) -> str:
        await self.db.execute(
            """INSERT INTO test_sessions (
                id, name, source_path, source_kind,
                file_count, total_entries, created_at, last_ingested_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session.id,
                session.name,
                session.sourcePath,
                session.sourceKind,
                session.fileCount,
                session.totalEntries,
                session.createdAt,
                session.lastIngestedAt,
            ),
        )
        if commit:
            await self.db.commit()
        return session.id

    async def delete(self, session_id: str, *, commit: bool = True) -> bool:
        """Delete a session; entries and their bookmarks go with it."""
        cur = await self.db.execute("DELETE FROM test_sessions WHERE id = ?", (session_id,))
        deleted = cur.rowcount > 0
        await cur.close()
        if commit:
            await self.db.commit()
        return deleted
