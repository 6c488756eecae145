import unittest
from unittest.mock import AsyncMock, patch

import aiosqlite
from fastapi import HTTPException

from logterminator.db.gateway import PersistenceGateway
from logterminator.db.migrations import run_migrations
from logterminator.models import Bookmark, LogEntry, TestSession
from logterminator.routers import api as api_router

_STACK = """Traceback (most recent call last):
  File "test_device.py", line 12, in test_connect
    client.connect()
  File "client.py", line 40, in connect
    raise TimeoutError()"""


def _entry(line: int, level: str, message: str, stack: str | None = None) -> LogEntry:
    return LogEntry(
        sessionKey="TestA_ID_1",
        filePath="/logs/TestA_ID_1---0.html",
        sourceFileIndex=0,
        lineNumberInFile=line,
        timestamp=f"2026/01/14 07:00:0{line}",
        level=level,
        message=message,
        stack=stack,
    )


class ApiRouterTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await self.db.execute("PRAGMA foreign_keys=ON")
        await run_migrations(self.db)
        self.gateway = PersistenceGateway(self.db)

        session = TestSession(id="S-1", name="TestA_ID_1", sourcePath="/logs", fileCount=1, totalEntries=4)
        self.ids = await self.gateway.replace_session(
            session,
            [
                _entry(1, "INFO", "connecting"),
                _entry(2, "DEBUG", "handshake"),
                _entry(3, "ERROR", "timeout", stack=_STACK),
                _entry(4, "INFO", "teardown"),
            ],
        )

        patcher = patch.object(api_router, "_gateway", AsyncMock(return_value=self.gateway))
        patcher.start()
        self.addCleanup(patcher.stop)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_list_and_get_sessions(self) -> None:
        sessions = await api_router.list_sessions()
        self.assertEqual([s.id for s in sessions], ["S-1"])
        self.assertEqual((await api_router.get_session("S-1")).name, "TestA_ID_1")

        with self.assertRaises(HTTPException) as ctx:
            await api_router.get_session("S-404")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_entries_are_paginated_and_filtered(self) -> None:
        page = await api_router.list_entries("S-1", offset=0, limit=2, levels=None, search=None)
        self.assertEqual(page.total, 4)
        self.assertEqual([e.message for e in page.items], ["connecting", "handshake"])

        page = await api_router.list_entries("S-1", offset=0, limit=10, levels="INFO,ERROR", search=None)
        self.assertEqual([e.message for e in page.items], ["connecting", "timeout", "teardown"])

        page = await api_router.list_entries("S-1", offset=0, limit=10, levels="", search=None)
        self.assertEqual((page.items, page.total), ([], 0))

        page = await api_router.list_entries("S-1", offset=0, limit=10, levels=None, search="tear")
        self.assertEqual([e.message for e in page.items], ["teardown"])

    async def test_entries_for_unknown_session(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await api_router.list_entries("S-404", offset=0, limit=10, levels=None, search=None)
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_levels_use_display_priority(self) -> None:
        with patch.object(api_router, "_level_priority", return_value={"ERROR": 0, "INFO": 1, "DEBUG": 2}):
            levels = await api_router.list_session_levels("S-1")
        self.assertEqual(levels, ["ERROR", "INFO", "DEBUG"])

    async def test_search(self) -> None:
        result = await api_router.search_session("S-1", q="hand", limit=10)
        self.assertEqual(result["count"], 1)
        self.assertEqual(result["items"][0]["id"], self.ids[1])

    async def test_entry_page_and_stack(self) -> None:
        page = await api_router.get_entry_page(self.ids[3], per_page=2, levels=None, search=None)
        self.assertEqual((page.page, page.perPage), (2, 2))
        page = await api_router.get_entry_page(self.ids[3], per_page=2, levels="INFO", search=None)
        self.assertEqual(page.page, 1)

        view = await api_router.get_entry_stack(self.ids[2])
        self.assertTrue(view.isPython)
        self.assertEqual(view.preview, "Traceback (most recent call last):")
        self.assertEqual([f.function for f in view.frames], ["test_connect", "connect"])

        plain = await api_router.get_entry_stack(self.ids[0])
        self.assertEqual((plain.preview, plain.frames), ("-", []))

        with self.assertRaises(HTTPException) as ctx:
            await api_router.get_entry(999999)
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_bookmark_lifecycle(self) -> None:
        created = await api_router.create_bookmark(
            "S-1", api_router.BookmarkCreate(logEntryId=self.ids[2], title="timeout here")
        )
        self.assertEqual(created.logEntryId, self.ids[2])

        updated = await api_router.update_bookmark(created.id, api_router.BookmarkUpdate(notes="flaky"))
        self.assertEqual((updated.title, updated.notes, updated.color), ("timeout here", "flaky", None))

        updated = await api_router.update_bookmark(created.id, api_router.BookmarkUpdate(color="#F56C6C"))
        self.assertEqual((updated.title, updated.color), ("timeout here", "#F56C6C"))

        updated = await api_router.update_bookmark(created.id, api_router.BookmarkUpdate(title="renamed"))
        self.assertEqual((updated.title, updated.color), ("renamed", "#F56C6C"))

        listed = await api_router.list_session_bookmarks("S-1")
        self.assertEqual([b.entry.message for b in listed], ["timeout"])

        self.assertEqual((await api_router.delete_bookmark(created.id))["status"], "ok")
        with self.assertRaises(HTTPException) as ctx:
            await api_router.delete_bookmark(created.id)
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_bookmark_entry_must_belong_to_session(self) -> None:
        other = TestSession(id="S-2", name="TestB_ID_1", sourcePath="/logs")
        other_ids = await self.gateway.replace_session(other, [_entry(1, "INFO", "elsewhere")])

        with self.assertRaises(HTTPException) as ctx:
            await api_router.create_bookmark("S-1", api_router.BookmarkCreate(logEntryId=other_ids[0]))
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_refresh_auto_bookmarks(self) -> None:
        marked = TestSession(id="S-3", name="TestC_ID_1", sourcePath="/logs")
        ids = await self.gateway.replace_session(marked, [_entry(1, "MARKER", "###Setup###")])
        await self.gateway.add_bookmark(Bookmark(logEntryId=self.ids[0], title="mine"))

        self.assertEqual((await api_router.refresh_auto_bookmarks("S-3"))["changed"], 1)
        self.assertEqual((await api_router.refresh_auto_bookmarks("S-3"))["changed"], 0)
        listed = await api_router.list_session_bookmarks("S-3")
        self.assertEqual([(b.entry.id, b.bookmark.title) for b in listed], [(ids[0], "Setup")])

        with self.assertRaises(HTTPException):
            await api_router.refresh_auto_bookmarks("S-404")

    async def test_delete_session(self) -> None:
        self.assertEqual((await api_router.delete_session("S-1"))["sessionId"], "S-1")
        with self.assertRaises(HTTPException) as ctx:
            await api_router.delete_session("S-1")
        self.assertEqual(ctx.exception.status_code, 404)


class ParseLevelsTests(unittest.TestCase):
    def test_none_empty_and_list(self) -> None:
        self.assertIsNone(api_router._parse_levels(None))
        self.assertEqual(api_router._parse_levels(""), [])
        self.assertEqual(api_router._parse_levels(" INFO, ,ERROR"), ["INFO", "ERROR"])


if __name__ == "__main__":
    unittest.main()
