#!/usr/bin/env python3
"""Ingest a test-log directory or URL into the local database.

Usage:
  python -m logterminator.scripts.ingest ./logs
  python -m logterminator.scripts.ingest http://ci.example/logs/ --only TestA_ID_1
  python -m logterminator.scripts.ingest ./logs --preview
  python -m logterminator.scripts.ingest --list
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging

from logterminator import config
from logterminator.db import connection, migrations
from logterminator.db.gateway import PersistenceGateway
from logterminator.errors import EnumerationError
from logterminator.history import RecentSources
from logterminator.ingestion.engine import IngestionEngine


async def _run(args: argparse.Namespace) -> int:
    db = await connection.get_connection(args.db or None)
    await migrations.run_migrations(db)
    gateway = PersistenceGateway(db)

    try:
        if args.list:
            sessions = await gateway.list_sessions()
            if args.json:
                print(json.dumps([s.model_dump() for s in sessions], indent=2))
            else:
                for session in sessions:
                    print(
                        f"{session.id}  {session.name}  files={session.fileCount} "
                        f"entries={session.totalEntries}  source={session.sourcePath}"
                    )
                if not sessions:
                    print("No sessions ingested yet.")
            return 0

        engine = IngestionEngine(gateway)
        if args.preview:
            previews = await engine.preview(args.locator)
            if args.json:
                print(json.dumps([p.model_dump() for p in previews], indent=2))
            else:
                for preview in previews:
                    marker = " (already loaded)" if preview.alreadyLoaded else ""
                    print(f"{preview.name}  files={preview.fileCount}{marker}")
            return 0

        report = await engine.ingest(args.locator, args.only or None, trigger="cli")
        RecentSources().add(args.locator)
        if args.json:
            print(json.dumps(report.model_dump(), indent=2))
        else:
            for result in report.sessions:
                action = "replaced" if result.replaced else "created"
                print(
                    f"{result.name}: {action}, files={result.fileCount} entries={result.totalEntries} "
                    f"bookmarks={result.autoBookmarks}"
                )
            for failure in report.fileFailures:
                print(f"  failed [{failure.stage}] {failure.locator}: {failure.reason}")
            for failure in report.sessionFailures:
                print(f"  session {failure.sessionKey} failed [{failure.stage}]: {failure.reason}")
            print(report.summary())
        return 1 if report.sessionFailures else 0
    except EnumerationError as exc:
        print(f"Cannot read {exc.locator}: {exc.reason}")
        return 2
    finally:
        await connection.close_connection()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ingest HTML test logs")
    parser.add_argument("locator", nargs="?", default="", help="Directory path or http(s) URL")
    parser.add_argument("--only", nargs="+", metavar="NAME", help="Only ingest these session names")
    parser.add_argument("--preview", action="store_true", help="Show sessions without ingesting")
    parser.add_argument("--list", action="store_true", help="List ingested sessions and exit")
    parser.add_argument("--json", action="store_true", help="Print machine-readable output")
    parser.add_argument("--db", default="", help=f"Database path (default: {config.DB_PATH})")
    args = parser.parse_args(argv)
    if not args.list and not args.locator:
        parser.error("a directory or URL is required unless --list is given")

    logging.basicConfig(level=config.LOG_LEVEL)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
