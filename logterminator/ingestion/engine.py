"""Ingestion engine: directory or URL -> grouped, parsed, persisted sessions.

For each session group the engine fetches every file (bounded fan-out,
retries), waits for all of them, rebuilds entry order from the file's
position in the group and ``lineNumberInFile``, writes the session in a
single transaction and then runs the auto-bookmark pass. Files that cannot
be fetched or parsed are reported and skipped; a group with no usable files
is not written at all.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

import aiosqlite

from logterminator import config
from logterminator.db.gateway import PersistenceGateway
from logterminator.errors import EnumerationError, FetchError, LogParseError, PersistenceError
from logterminator.ingestion.bookmarks import apply_auto_bookmarks
from logterminator.ingestion.grouping import group_files
from logterminator.models import (
    ClassifiedFile,
    FileFailure,
    IngestionReport,
    LogEntry,
    SessionFailure,
    SessionGroup,
    SessionPreview,
    SessionResult,
    TestSession,
)
from logterminator.parsers.html_logs import parse_log_html
from logterminator.sources.base import LogSource, fetch_with_retry
from logterminator.sources.factory import get_log_source

logger = logging.getLogger("logterminator.ingest")

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def session_storage_id(source_path: str, name: str) -> str:
    """Deterministic session id for a (sourcePath, name) pair."""
    digest = hashlib.sha1(f"{source_path}::{name}".encode("utf-8")).hexdigest()[:12]
    slug = _UNSAFE_ID_CHARS.sub("_", name).strip("_")[:64] or "session"
    return f"session_{slug}_{digest}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IngestOperation:
    """Observable state of one ingestion run."""
    id: str
    locator: str
    trigger: str
    selected: list[str]
    status: str = "running"  # running | completed | failed
    phase: str = "queued"  # queued | enumerate | ingest
    message: str = ""
    startedAt: str = ""
    updatedAt: str = ""
    finishedAt: str = ""
    durationMs: int = 0
    counters: dict[str, int] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _FileOutcome:
    file: ClassifiedFile
    entries: Optional[list[LogEntry]] = None
    failure: Optional[FileFailure] = None


@dataclass
class _SessionOutcome:
    group: SessionGroup
    result: Optional[SessionResult] = None
    file_failures: list[FileFailure] = field(default_factory=list)
    session_failures: list[SessionFailure] = field(default_factory=list)
    skipped: bool = False


class IngestionEngine:
    """Ingests test-log directories and tracks each run as an operation."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        source_factory: Callable[[str], LogSource] = get_log_source,
        *,
        max_concurrent_files: Optional[int] = None,
        max_concurrent_sessions: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        failure_anchor_ids: Optional[Iterable[str]] = None,
        auto_bookmarks: Optional[bool] = None,
    ):
        self.gateway = gateway
        self._source_factory = source_factory
        self.max_concurrent_files = max(1, max_concurrent_files or config.MAX_CONCURRENT_FILES)
        self.max_concurrent_sessions = max(1, max_concurrent_sessions or config.MAX_CONCURRENT_SESSIONS)
        self.max_retries = config.FETCH_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = config.FETCH_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.backoff_max_seconds = (
            config.FETCH_BACKOFF_MAX_SECONDS if backoff_max_seconds is None else backoff_max_seconds
        )
        self.failure_anchor_ids = (
            tuple(failure_anchor_ids) if failure_anchor_ids is not None else config.FAILURE_ANCHOR_IDS
        )
        self.auto_bookmarks = config.AUTO_BOOKMARKS_ENABLED if auto_bookmarks is None else auto_bookmarks

        self._ops_lock = asyncio.Lock()
        # Insertion ordered, oldest first.
        self._operations: dict[str, IngestOperation] = {}
        self._max_operation_history = max(1, config.MAX_OPERATION_HISTORY)

    # ── Operation tracking ─────────────────────────────────────────

    async def start_operation(
        self,
        locator: str,
        trigger: str = "api",
        selected: Optional[Iterable[str]] = None,
    ) -> str:
        """Register a run before it starts and return its id."""
        now = _utcnow().isoformat()
        operation = IngestOperation(
            id=f"OP-{uuid.uuid4()}",
            locator=locator,
            trigger=trigger,
            selected=sorted(set(selected or [])),
            startedAt=now,
            updatedAt=now,
        )
        async with self._ops_lock:
            self._operations[operation.id] = operation
            while len(self._operations) > self._max_operation_history:
                # Running operations are never evicted.
                finished = [op_id for op_id, op in self._operations.items() if op.status != "running"]
                if not finished:
                    break
                del self._operations[finished[0]]
        logger.info("Operation started [%s] ingest %s (trigger=%s)", operation.id, locator, trigger)
        return operation.id

    async def list_operations(self, limit: int = 20) -> list[dict[str, Any]]:
        """Newest first."""
        async with self._ops_lock:
            newest = list(reversed(self._operations.values()))[: max(1, limit)]
            return [operation.snapshot() for operation in newest]

    async def get_operation(self, operation_id: str) -> dict[str, Any] | None:
        async with self._ops_lock:
            operation = self._operations.get(operation_id)
            return operation.snapshot() if operation else None

    async def active_operation_count(self) -> int:
        async with self._ops_lock:
            return sum(1 for operation in self._operations.values() if operation.status == "running")

    async def _update_operation(
        self,
        operation_id: str,
        *,
        phase: Optional[str] = None,
        message: Optional[str] = None,
        counters: Optional[dict[str, int]] = None,
        increment: Optional[dict[str, int]] = None,
    ) -> None:
        async with self._ops_lock:
            operation = self._operations.get(operation_id)
            if operation is None:
                return
            if phase:
                operation.phase = phase
            if message is not None:
                operation.message = message
            operation.counters.update(counters or {})
            for key, value in (increment or {}).items():
                operation.counters[key] = operation.counters.get(key, 0) + value
            operation.updatedAt = _utcnow().isoformat()
        if phase:
            logger.info("Operation [%s] %s: %s", operation_id, phase, message or "")

    async def _finish_operation(
        self,
        operation_id: str,
        *,
        status: str,
        stats: Optional[dict[str, Any]] = None,
        error: str = "",
    ) -> None:
        now = _utcnow()
        async with self._ops_lock:
            operation = self._operations.get(operation_id)
            if operation is None:
                return
            operation.status = status
            operation.updatedAt = operation.finishedAt = now.isoformat()
            operation.stats.update(stats or {})
            operation.error = error
            started = datetime.fromisoformat(operation.startedAt)
            operation.durationMs = max(0, int((now - started).total_seconds() * 1000))

        if status == "failed":
            logger.error("Operation failed [%s]: %s", operation_id, error)
        else:
            logger.info("Operation finished [%s] status=%s", operation_id, status)

    # ── Ingestion ──────────────────────────────────────────────────

    async def preview(self, locator: str) -> list[SessionPreview]:
        """Enumerate and group without fetching; flag sessions already loaded."""
        source = self._source_factory(locator)
        try:
            groups = group_files(await source.list_directory())
            previews: list[SessionPreview] = []
            for group in groups:
                existing_id = await self.gateway.find_session(group.sessionKey, source.locator)
                previews.append(
                    SessionPreview(
                        name=group.sessionKey,
                        fileCount=len(group.files),
                        alreadyLoaded=existing_id is not None,
                        existingSessionId=existing_id,
                    )
                )
            return previews
        finally:
            await source.aclose()

    async def ingest(
        self,
        locator: str,
        selected: Optional[Iterable[str]] = None,
        operation_id: Optional[str] = None,
        trigger: str = "api",
    ) -> IngestionReport:
        """Ingest every test-log session found at ``locator``.

        ``selected`` restricts ingestion to those session names. Returns the
        report of what was written and what failed.

        Raises:
            EnumerationError: the locator is invalid, or the directory or
                listing could not be read. Nothing is written in that case.
        """
        selected_keys = sorted(set(selected)) if selected is not None else None
        if not operation_id:
            operation_id = await self.start_operation(locator, trigger, selected_keys)

        t0 = time.monotonic()
        source: Optional[LogSource] = None
        try:
            source = self._source_factory(locator)
            report = IngestionReport(sourcePath=source.locator, sourceKind=source.kind, operationId=operation_id)
            await self._update_operation(operation_id, phase="enumerate", message=f"Listing {source.locator}")
            refs = await source.list_directory()
            groups = group_files(refs, selected_keys)
            await self._update_operation(
                operation_id,
                phase="ingest",
                message=f"Ingesting {len(groups)} session(s)",
                counters={"filesListed": len(refs), "sessionsFound": len(groups)},
            )

            session_slots = asyncio.Semaphore(self.max_concurrent_sessions)
            outcomes = await asyncio.gather(
                *(self._ingest_group(source, group, session_slots, operation_id) for group in groups)
            )
        except EnumerationError as exc:
            logger.error("Enumeration failed for %s: %s", locator, exc.reason)
            await self._finish_operation(operation_id, status="failed", error=str(exc))
            raise
        except BaseException as exc:
            await self._finish_operation(operation_id, status="failed", error=str(exc) or exc.__class__.__name__)
            raise
        finally:
            if source is not None:
                await source.aclose()

        for outcome in outcomes:
            if outcome.result is not None:
                report.sessions.append(outcome.result)
            if outcome.skipped:
                report.skippedSessions.append(outcome.group.sessionKey)
            report.fileFailures.extend(outcome.file_failures)
            report.sessionFailures.extend(outcome.session_failures)

        elapsed = int((time.monotonic() - t0) * 1000)
        logger.info("%s in %dms", report.summary(), elapsed)
        await self._finish_operation(
            operation_id,
            status="completed",
            stats={
                "sessionsIngested": len(report.sessions),
                "sessionsSkipped": len(report.skippedSessions),
                "sessionsFailed": len(report.sessionFailures),
                "filesFailed": len(report.fileFailures),
                "summary": report.summary(),
            },
        )
        return report

    async def _ingest_group(
        self,
        source: LogSource,
        group: SessionGroup,
        session_slots: asyncio.Semaphore,
        operation_id: str,
    ) -> _SessionOutcome:
        outcome = _SessionOutcome(group=group)
        outcome.file_failures = [self._duplicate_failure(group, item) for item in group.duplicates]
        async with session_slots:
            file_slots = asyncio.Semaphore(self.max_concurrent_files)
            # Join point: every file is fetched or failed before anything is written.
            file_outcomes = await asyncio.gather(
                *(self._load_file(source, item, file_slots) for item in group.files)
            )

            # gather keeps group.files order, so the position is the file's rank in the session.
            loaded = [(position, item) for position, item in enumerate(file_outcomes) if item.entries is not None]
            outcome.file_failures.extend(item.failure for item in file_outcomes if item.failure is not None)
            if outcome.file_failures:
                logger.warning(
                    "Session %s: %d of %d files failed",
                    group.sessionKey,
                    len(outcome.file_failures),
                    len(group.files) + len(group.duplicates),
                )
            await self._update_operation(
                operation_id,
                increment={"filesLoaded": len(loaded), "filesFailed": len(outcome.file_failures)},
            )
            if not loaded:
                logger.warning("Session %s has no usable files and was not written", group.sessionKey)
                outcome.skipped = True
                return outcome

            ranked = sorted(
                ((position, entry.lineNumberInFile, entry) for position, item in loaded for entry in item.entries),
                key=lambda ranked_entry: ranked_entry[:2],
            )
            entries = [entry for _, _, entry in ranked]
            now = _utcnow().isoformat()
            session = TestSession(
                id=session_storage_id(source.locator, group.sessionKey),
                name=group.sessionKey,
                sourcePath=source.locator,
                sourceKind=source.kind,
                fileCount=len(loaded),
                totalEntries=len(entries),
                createdAt=now,
                lastIngestedAt=now,
            )

            try:
                replaced = await self.gateway.find_session(session.name, session.sourcePath) is not None
                ids = await self.gateway.replace_session(session, entries)
            except PersistenceError as exc:
                outcome.session_failures.append(
                    SessionFailure(sessionKey=group.sessionKey, stage=exc.stage, reason=exc.reason)
                )
                return outcome
            except aiosqlite.Error as exc:
                logger.error("Could not write session %s: %s", session.name, exc)
                outcome.session_failures.append(
                    SessionFailure(sessionKey=group.sessionKey, stage=PersistenceError.stage, reason=str(exc))
                )
                return outcome

            stored = [
                entry.model_copy(update={"id": entry_id, "sessionId": session.id})
                for entry, entry_id in zip(entries, ids)
            ]
            auto_count = 0
            if self.auto_bookmarks:
                try:
                    async with self.gateway.write_lock:
                        auto_count = await apply_auto_bookmarks(self.gateway, stored)
                except aiosqlite.Error as exc:
                    logger.error("Auto-bookmark pass failed for %s: %s", session.name, exc)
                    outcome.session_failures.append(
                        SessionFailure(
                            sessionKey=group.sessionKey,
                            stage=PersistenceError.stage,
                            reason=f"auto-bookmark pass failed: {exc}",
                        )
                    )

            outcome.result = SessionResult(
                sessionId=session.id,
                name=session.name,
                fileCount=session.fileCount,
                totalEntries=session.totalEntries,
                failedFiles=len(outcome.file_failures),
                autoBookmarks=auto_count,
                replaced=replaced,
            )
            await self._update_operation(operation_id, increment={"sessionsIngested": 1})
        return outcome

    async def _load_file(
        self,
        source: LogSource,
        item: ClassifiedFile,
        file_slots: asyncio.Semaphore,
    ) -> _FileOutcome:
        locator = item.ref.locator
        async with file_slots:
            try:
                content = await fetch_with_retry(
                    source,
                    locator,
                    max_retries=self.max_retries,
                    backoff_seconds=self.backoff_seconds,
                    backoff_max_seconds=self.backoff_max_seconds,
                )
            except FetchError as exc:
                return _FileOutcome(file=item, failure=self._file_failure(item, exc, exc.attempts))

        try:
            entries = parse_log_html(
                content,
                item.sequenceIndex,
                locator=locator,
                session_key=item.sessionKey,
                failure_anchor_ids=self.failure_anchor_ids,
            )
        except LogParseError as exc:
            logger.warning("Could not parse %s: %s", locator, exc.reason)
            return _FileOutcome(file=item, failure=self._file_failure(item, exc, 1))
        return _FileOutcome(file=item, entries=entries)

    @staticmethod
    def _file_failure(item: ClassifiedFile, exc: FetchError | LogParseError, attempts: int) -> FileFailure:
        return FileFailure(
            sessionKey=item.sessionKey,
            locator=item.ref.locator,
            sequenceIndex=item.sequenceIndex,
            stage=exc.stage,
            reason=exc.reason,
            attempts=attempts,
        )

    @staticmethod
    def _duplicate_failure(group: SessionGroup, item: ClassifiedFile) -> FileFailure:
        kept = next(f for f in group.files if f.sequenceIndex == item.sequenceIndex)
        return FileFailure(
            sessionKey=item.sessionKey,
            locator=item.ref.locator,
            sequenceIndex=item.sequenceIndex,
            stage="group",
            reason=f"sequence index {item.sequenceIndex} already provided by {kept.ref.filename}",
            attempts=0,
        )
