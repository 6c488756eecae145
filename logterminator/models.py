"""Pydantic models shared by the parsers, the ingestion engine and the API."""
from __future__ import annotations

from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

SourceKind = Literal["local", "http"]


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int

# ── Log data ────────────────────────────────────────────────────────

class LogEntry(BaseModel):
    """One parsed log row.

    ``id`` and ``sessionId`` are only known once the entry has been persisted.
    Within a session, entries are totally ordered by
    ``(sourceFileIndex, lineNumberInFile)``.
    """
    id: Optional[int] = None
    sessionId: str = ""
    sessionKey: str = ""
    filePath: str = ""
    sourceFileIndex: int = 0
    lineNumberInFile: int = 0
    timestamp: str = ""
    level: str = ""
    message: str = ""
    stack: Optional[str] = None
    isFailureMarker: bool = False

    def order_key(self) -> tuple[int, int]:
        return (self.sourceFileIndex, self.lineNumberInFile)


class TestSession(BaseModel):
    id: str
    name: str
    sourcePath: str
    sourceKind: SourceKind = "local"
    fileCount: int = 0
    totalEntries: int = 0
    createdAt: str = ""
    lastIngestedAt: str = ""


class Bookmark(BaseModel):
    id: Optional[int] = None
    logEntryId: int
    title: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None
    createdAt: str = ""


class BookmarkWithEntry(BaseModel):
    bookmark: Bookmark
    entry: LogEntry


class StackFrame(BaseModel):
    file: str
    line: int
    function: str
    code: str = ""

# ── Source enumeration ──────────────────────────────────────────────

class FileRef(BaseModel):
    """A candidate file: ``locator`` is a filesystem path or an absolute URL."""
    locator: str
    filename: str


class ClassifiedFile(BaseModel):
    ref: FileRef
    sessionKey: str
    sequenceIndex: int


class SessionGroup(BaseModel):
    """Files of one session in sequence order.

    ``duplicates`` holds files whose sequence index is already taken by a
    file in ``files``; they are never merged into the session.
    """
    sessionKey: str
    files: list[ClassifiedFile] = Field(default_factory=list)
    duplicates: list[ClassifiedFile] = Field(default_factory=list)

# ── Ingestion reporting ─────────────────────────────────────────────

class FileFailure(BaseModel):
    sessionKey: str
    locator: str
    sequenceIndex: int
    stage: str  # "fetch" | "parse" | "group"
    reason: str
    attempts: int = 1


class SessionFailure(BaseModel):
    sessionKey: str
    stage: str
    reason: str


class SessionResult(BaseModel):
    sessionId: str
    name: str
    fileCount: int
    totalEntries: int
    failedFiles: int = 0
    autoBookmarks: int = 0
    replaced: bool = False


class SessionPreview(BaseModel):
    name: str
    fileCount: int
    alreadyLoaded: bool = False
    existingSessionId: Optional[str] = None


class IngestionReport(BaseModel):
    sourcePath: str
    sourceKind: SourceKind
    operationId: str = ""
    sessions: list[SessionResult] = Field(default_factory=list)
    skippedSessions: list[str] = Field(default_factory=list)
    fileFailures: list[FileFailure] = Field(default_factory=list)
    sessionFailures: list[SessionFailure] = Field(default_factory=list)

    @property
    def total_files(self) -> int:
        succeeded = sum(result.fileCount for result in self.sessions)
        return succeeded + len(self.fileFailures)

    def summary(self) -> str:
        parts = [f"{len(self.sessions)} session(s) ingested from {self.sourcePath}"]
        if self.fileFailures:
            parts.append(f"{len(self.fileFailures)} of {self.total_files} files failed")
        if self.skippedSessions:
            parts.append(f"{len(self.skippedSessions)} session(s) skipped with no usable files")
        if self.sessionFailures:
            parts.append(f"{len(self.sessionFailures)} session(s) failed to persist")
        return "; ".join(parts)
