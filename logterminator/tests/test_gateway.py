import unittest

import aiosqlite

from logterminator.db.gateway import PersistenceGateway
from logterminator.db.migrations import run_migrations
from logterminator.errors import PersistenceError
from logterminator.models import Bookmark, LogEntry, TestSession


def _session(session_id: str = "S-1", name: str = "TestA_ID_1", total: int = 0) -> TestSession:
    return TestSession(
        id=session_id,
        name=name,
        sourcePath="/logs",
        fileCount=2,
        totalEntries=total,
        createdAt="2026-01-14T07:00:00+00:00",
        lastIngestedAt="2026-01-14T07:00:00+00:00",
    )


def _entry(file_index: int, line: int, level: str = "INFO", message: str = "") -> LogEntry:
    return LogEntry(
        sessionKey="TestA_ID_1",
        filePath=f"/logs/TestA_ID_1---{file_index}.html",
        sourceFileIndex=file_index,
        lineNumberInFile=line,
        timestamp=f"t{file_index}.{line}",
        level=level,
        message=message or f"f{file_index}l{line}",
    )


class PersistenceGatewayTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await self.db.execute("PRAGMA foreign_keys=ON")
        await run_migrations(self.db)
        self.gateway = PersistenceGateway(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_replace_session_round_trips_order_across_files(self) -> None:
        entries = [_entry(0, 1), _entry(0, 2), _entry(1, 0), _entry(1, 1), _entry(2, 5)]
        ids = await self.gateway.replace_session(_session(total=5), entries)

        self.assertEqual(len(ids), 5)
        stored = await self.gateway.get_entries("S-1")
        self.assertEqual([e.id for e in stored], ids)
        self.assertEqual([e.order_key() for e in stored], [e.order_key() for e in entries])
        self.assertEqual({e.sessionId for e in stored}, {"S-1"})

        session = await self.gateway.get_session("S-1")
        self.assertEqual(session.totalEntries, 5)
        self.assertEqual(await self.gateway.find_session("TestA_ID_1", "/logs"), "S-1")

    async def test_replacing_does_not_duplicate_and_drops_old_bookmarks(self) -> None:
        first_ids = await self.gateway.replace_session(_session(total=2), [_entry(0, 0), _entry(0, 1)])
        await self.gateway.add_bookmark(Bookmark(logEntryId=first_ids[0], title="old"))

        second_ids = await self.gateway.replace_session(_session(total=3), [_entry(0, 0), _entry(0, 1), _entry(0, 2)])

        self.assertEqual(len(await self.gateway.list_sessions()), 1)
        stored = await self.gateway.get_entries("S-1")
        self.assertEqual([e.id for e in stored], second_ids)
        self.assertEqual(await self.gateway.list_bookmarks("S-1"), [])
        self.assertIsNone(await self.gateway.get_entry(first_ids[0]))

    async def test_failed_write_rolls_back(self) -> None:
        await self.gateway.replace_session(_session(), [_entry(0, 0)])

        # Same primary key under a different name: the insert violates the key.
        clash = _session(session_id="S-1", name="TestB_ID_1")
        with self.assertRaises(PersistenceError) as ctx:
            await self.gateway.replace_session(clash, [_entry(0, 0), _entry(0, 1)])

        self.assertEqual(ctx.exception.locator, "TestB_ID_1")
        self.assertEqual(ctx.exception.stage, "persist")
        self.assertIsNone(await self.gateway.find_session("TestB_ID_1", "/logs"))
        self.assertEqual(len(await self.gateway.get_entries("S-1")), 1)
        # The connection is usable again after the rollback.
        await self.gateway.replace_session(_session(session_id="S-2", name="TestB_ID_1"), [_entry(0, 0)])
        self.assertEqual(len(await self.gateway.list_sessions()), 2)

    async def test_delete_session_by_name_and_path(self) -> None:
        await self.gateway.replace_session(_session(), [_entry(0, 0)])
        self.assertEqual(await self.gateway.delete_session_by_name_and_path("TestA_ID_1", "/logs"), "S-1")
        self.assertIsNone(await self.gateway.delete_session_by_name_and_path("TestA_ID_1", "/logs"))
        self.assertIsNone(await self.gateway.get_session("S-1"))

    async def test_session_levels_follow_priority(self) -> None:
        await self.gateway.replace_session(
            _session(),
            [_entry(0, 0, "INFO"), _entry(0, 1, "ERROR"), _entry(0, 2, "CUSTOM"), _entry(0, 3, "MARKER")],
        )
        self.assertEqual(await self.gateway.get_session_levels("S-1"), ["ERROR", "MARKER", "INFO", "CUSTOM"])
        self.assertEqual(
            await self.gateway.get_session_levels("S-1", {"INFO": 0, "ERROR": 1}),
            ["INFO", "ERROR", "CUSTOM", "MARKER"],
        )

    async def test_bookmarks_come_back_with_their_entries(self) -> None:
        ids = await self.gateway.replace_session(_session(), [_entry(0, 0), _entry(1, 0)])
        bookmark_id = await self.gateway.add_bookmark(Bookmark(logEntryId=ids[1], title="here", color="#409EFF"))
        await self.gateway.update_bookmark_notes(bookmark_id, "look at this")

        listed = await self.gateway.list_bookmarks("S-1")
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0].bookmark.id, bookmark_id)
        self.assertEqual(listed[0].bookmark.notes, "look at this")
        self.assertEqual(listed[0].entry.id, ids[1])
        self.assertEqual(listed[0].entry.sourceFileIndex, 1)

        self.assertTrue(await self.gateway.update_bookmark(bookmark_id, "renamed", None))
        bookmark = await self.gateway.get_bookmark(bookmark_id)
        self.assertEqual((bookmark.title, bookmark.color), ("renamed", None))

    async def test_paginated_entries_and_page_lookup(self) -> None:
        entries = [_entry(0, i) for i in range(7)]
        ids = await self.gateway.replace_session(_session(), entries)

        page, total = await self.gateway.get_entries_paginated("S-1", 5, 5)
        self.assertEqual(total, 7)
        self.assertEqual([e.id for e in page], ids[5:])
        self.assertEqual(await self.gateway.get_entry_page(ids[6], 5), 2)


if __name__ == "__main__":
    unittest.main()
