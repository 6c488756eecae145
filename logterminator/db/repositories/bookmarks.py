"""SQLite implementation of BookmarkRepository."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from logterminator.models import Bookmark


def bookmark_from_row(row: dict) -> Bookmark:
    return Bookmark(
        id=row["id"],
        logEntryId=row["log_entry_id"],
        title=row.get("title"),
        notes=row.get("notes"),
        color=row.get("color"),
        createdAt=row.get("created_at") or "",
    )


class SqliteBookmarkRepository:
    """SQLite-backed bookmark storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def add(self, bookmark: Bookmark, *, commit: bool = True) -> int:
        created_at = bookmark.createdAt or datetime.now(timezone.utc).isoformat()
        cur = await self.db.execute(
            """INSERT INTO bookmarks (log_entry_id, title, notes, color, created_at)
            VALUES (?, ?, ?, ?, ?)""",
            (bookmark.logEntryId, bookmark.title, bookmark.notes, bookmark.color, created_at),
        )
        bookmark_id = cur.lastrowid
        await cur.close()
        if commit:
            await self.db.commit()
        return int(bookmark_id)

    async def get_by_id(self, bookmark_id: int) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM bookmarks WHERE id = ?", (bookmark_id,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def find_by_entry(self, log_entry_id: int) -> int | None:
        async with self.db.execute(
            "SELECT id FROM bookmarks WHERE log_entry_id = ? ORDER BY id LIMIT 1",
            (log_entry_id,),
        ) as cur:
            row = await cur.fetchone()
            return row[0] if row else None

    async def list_by_session(self, session_id: str) -> list[tuple[dict, dict]]:
        """Bookmarks of a session with their entries, in log order."""
        async with self.db.execute(
            """SELECT b.id AS b_id, b.log_entry_id AS b_log_entry_id, b.title AS b_title,
                      b.notes AS b_notes, b.color AS b_color, b.created_at AS b_created_at,
                      e.*
               FROM bookmarks b
               JOIN log_entries e ON e.id = b.log_entry_id
               WHERE e.session_id = ?
               ORDER BY e.file_index ASC, e.line_number ASC, b.id ASC""",
            (session_id,),
        ) as cur:
            rows = [dict(r) for r in await cur.fetchall()]

        pairs: list[tuple[dict, dict]] = []
        for row in rows:
            bookmark = {
                key[2:]: row.pop(key)
                for key in ("b_id", "b_log_entry_id", "b_title", "b_notes", "b_color", "b_created_at")
            }
            pairs.append((bookmark, row))
        return pairs

    async def count_by_session(self, session_id: str) -> int:
        async with self.db.execute(
            """SELECT COUNT(*) FROM bookmarks b
               JOIN log_entries e ON e.id = b.log_entry_id
               WHERE e.session_id = ?""",
            (session_id,),
        ) as cur:
            row = await cur.fetchone()
            return row[0] if row else 0

    async def update(
        self,
        bookmark_id: int,
        title: Optional[str],
        color: Optional[str],
        *,
        commit: bool = True,
    ) -> bool:
        cur = await self.db.execute(
            "UPDATE bookmarks SET title = ?, color = ? WHERE id = ?",
            (title, color, bookmark_id),
        )
        updated = cur.rowcount > 0
        await cur.close()
        if commit:
            await self.db.commit()
        return updated

    async def update_title(self, bookmark_id: int, title: Optional[str]) -> bool:
        cur = await self.db.execute(
            "UPDATE bookmarks SET title = ? WHERE id = ?", (title, bookmark_id)
        )
        updated = cur.rowcount > 0
        await cur.close()
        await self.db.commit()
        return updated

    async def update_notes(self, bookmark_id: int, notes: Optional[str]) -> bool:
        cur = await self.db.execute(
            "UPDATE bookmarks SET notes = ? WHERE id = ?", (notes, bookmark_id)
        )
        updated = cur.rowcount > 0
        await cur.close()
        await self.db.commit()
        return updated

    async def delete(self, bookmark_id: int) -> bool:
        cur = await self.db.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,))
        deleted = cur.rowcount > 0
        await cur.close()
        await self.db.commit()
        return deleted
