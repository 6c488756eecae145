"""Automatic bookmarks for notable log entries.

Rules, highest priority first; an entry gets at most one automatic bookmark:

1. failure markers: "Failure", red. Replaces any existing bookmark's title
   and color on that entry.
2. MARKER entries containing ``[STEP``: the message, turquoise. Recolors an
   existing bookmark.
3. ``###text###`` in the message: ``text``, the auto color.
4. other MARKER entries: the message, the auto color.

Rules 3 and 4 never touch an entry that already has a bookmark.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional

from logterminator.levels import normalize_level
from logterminator.models import Bookmark, LogEntry

logger = logging.getLogger("logterminator.ingest")

FAILURE_TITLE = "Failure"
FAILURE_COLOR = "#F56C6C"
STEP_COLOR = "#00CED1"
AUTO_COLOR = "#409EFF"

_MARKER_LEVEL = "MARKER"
_STEP_TOKEN = "[STEP"
_TITLE_PATTERN = re.compile(r"###(.+?)###", re.DOTALL)


class AutoBookmark(NamedTuple):
    rule: str  # "failure" | "step" | "title" | "marker"
    title: str
    color: str

    @property
    def overrides_existing(self) -> bool:
        return self.rule in ("failure", "step")


def extract_marker_title(message: str) -> Optional[str]:
    """Text of the first ``###...###`` span, trimmed; None when absent or blank."""
    match = _TITLE_PATTERN.search(message or "")
    if not match:
        return None
    title = match.group(1).strip()
    return title or None


def detect_auto_bookmark(entry: LogEntry) -> Optional[AutoBookmark]:
    if entry.isFailureMarker:
        return AutoBookmark("failure", FAILURE_TITLE, FAILURE_COLOR)

    is_marker = normalize_level(entry.level) == _MARKER_LEVEL
    if is_marker and _STEP_TOKEN in entry.message:
        return AutoBookmark("step", entry.message, STEP_COLOR)

    title = extract_marker_title(entry.message)
    if title is not None:
        return AutoBookmark("title", title, AUTO_COLOR)

    if is_marker and entry.message:
        return AutoBookmark("marker", entry.message, AUTO_COLOR)
    return None


async def apply_auto_bookmarks(gateway, entries: Iterable[LogEntry]) -> int:
    """Create or upgrade automatic bookmarks for persisted entries.

    Entries without an id are ignored. Returns the number of bookmarks
    created or changed. Callers running concurrently with other writers
    should hold ``gateway.write_lock``.
    """
    changed = 0
    for entry in entries:
        if entry.id is None:
            continue
        detected = detect_auto_bookmark(entry)
        if detected is None:
            continue

        existing_id = await gateway.find_bookmark_by_entry(entry.id)
        if existing_id is None:
            await gateway.add_bookmark(
                Bookmark(logEntryId=entry.id, title=detected.title, color=detected.color)
            )
            changed += 1
            continue

        if not detected.overrides_existing:
            continue
        existing = await gateway.get_bookmark(existing_id)
        if existing is not None and existing.color == detected.color:
            continue
        await gateway.update_bookmark(existing_id, detected.title, detected.color)
        changed += 1

    if changed:
        logger.info("Auto-bookmark pass created or updated %d bookmark(s)", changed)
    return changed


async def ensure_auto_bookmarks(gateway, session_id: str) -> int:
    """Re-run the pass over a stored session, e.g. after user edits."""
    async with gateway.write_lock:
        return await apply_auto_bookmarks(gateway, await gateway.get_entries(session_id))
