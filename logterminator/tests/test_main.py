import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from logterminator import config, main
from logterminator.db import connection
from logterminator.ingestion.engine import IngestionEngine


class LifespanTests(unittest.IsolatedAsyncioTestCase):
    async def test_in_memory_database_is_refused(self) -> None:
        with patch.object(config, "DB_PATH", ":memory:"):
            with self.assertRaises(RuntimeError) as ctx:
                async with main.lifespan(main.app):
                    pass
        self.assertIn(":memory:", str(ctx.exception))
        self.assertIsNone(connection._connection)

    async def test_writer_has_its_own_connection(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name)

        with patch.object(config, "DB_PATH", str(root / "logs.db")), \
                patch.object(config, "HISTORY_PATH", root / "history.json"):
            async with main.lifespan(main.app):
                reader = connection._connection
                self.assertIsNotNone(reader)
                self.assertIsNot(main.app.state.writer_connection, reader)
                self.assertIsInstance(main.app.state.ingest_engine, IngestionEngine)
                self.assertEqual(main.app.state.recent_sources.path, root / "history.json")
            self.assertIsNone(connection._connection)


if __name__ == "__main__":
    unittest.main()
