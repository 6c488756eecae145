"""Parse HTML test-log pages into ordered LogEntry records.

A log page is a table whose rows carry a timestamp, a level, a message and,
optionally, a hidden stack-trace cell. Cells are recognized by class first
and by column position as a fallback, so pages from different producers
parse the same way. Rows that lack the required cells are skipped; only a
page with no table at all is an error.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, Tag

from logterminator import config
from logterminator.errors import LogParseError
from logterminator.models import LogEntry

logger = logging.getLogger("logterminator.parser")

_TIMESTAMP_CLASSES = {"date", "timestamp", "time"}
_LEVEL_CLASSES = {"level", "severity"}
_MESSAGE_CLASSES = {"message", "msg"}
_STACK_CLASSES = {"stack", "stacktrace", "trace"}
_HEADER_TIMESTAMP_LABELS = {"timestamp", "date", "time"}
_FAIL_TEXT_SUFFIX = "[FAIL]"


def _decode(content: bytes | str) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Log page is not valid UTF-8, decoding with replacement characters")
        return content.decode("utf-8", errors="replace")


def _walk(node: Tag) -> Iterator[Tag]:
    """Depth-first, document-order traversal of element descendants."""
    stack: list[Iterator] = [iter(node.children)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if isinstance(child, Tag):
            yield child
            stack.append(iter(child.children))


def _direct_cells(row: Tag) -> list[Tag]:
    return [child for child in row.children if isinstance(child, Tag) and child.name in ("td", "th")]


def _iter_table_rows(root: Tag) -> Iterator[Tag]:
    """Rows of every table in document order, without descending into nested tables twice."""
    for element in _walk(root):
        if element.name != "tr":
            continue
        parent = element.parent
        while parent is not None and parent.name not in ("table", "[document]"):
            parent = parent.parent
        if parent is not None and parent.name == "table":
            yield element


def _cell_text(cell: Tag) -> str:
    """Rendered text with entities decoded and line breaks preserved."""
    parts: list[str] = []
    stack: list[Iterator] = [iter(cell.children)]
    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            continue
        if isinstance(node, Comment):
            continue
        if isinstance(node, NavigableString):
            parts.append(str(node))
        elif isinstance(node, Tag):
            if node.name == "br":
                parts.append("\n")
            elif node.name not in ("script", "style"):
                stack.append(iter(node.children))
    return "".join(parts)


def _classes(cell: Tag) -> set[str]:
    raw = cell.get("class") or []
    if isinstance(raw, str):
        raw = raw.split()
    return {value.lower() for value in raw}


def _strip_level(raw: str) -> str:
    return raw.strip().strip("[]").strip()


def _has_failure_anchor(cell: Tag, anchor_ids: Iterable[str]) -> bool:
    recognized = set(anchor_ids)
    for element in _walk(cell):
        if element.name != "a":
            continue
        for attr in ("id", "name"):
            value = element.get(attr)
            if isinstance(value, str) and value in recognized:
                return True
    return False


def _classify_cells(cells: list[Tag]) -> dict[str, Tag]:
    """Assign timestamp/level/message/stack roles, by class then by position."""
    roles: dict[str, Tag] = {}
    for cell in cells:
        names = _classes(cell)
        if "timestamp" not in roles and names & _TIMESTAMP_CLASSES:
            roles["timestamp"] = cell
        elif "level" not in roles and names & _LEVEL_CLASSES:
            roles["level"] = cell
        elif "message" not in roles and names & _MESSAGE_CLASSES:
            roles["message"] = cell
        elif "stack" not in roles and names & _STACK_CLASSES:
            roles["stack"] = cell

    # Tag.__eq__ compares markup, so assignment is tracked by identity.
    assigned = {id(cell) for cell in roles.values()}

    if "stack" not in roles:
        for cell in cells:
            if cell.has_attr("hidden") and id(cell) not in assigned:
                roles["stack"] = cell
                assigned.add(id(cell))
                break

    visible = [cell for cell in cells if not cell.has_attr("hidden")]
    for role, position, min_cells in (("timestamp", 0, 1), ("message", -1, 2), ("level", 1, 3)):
        if role in roles or len(visible) < min_cells:
            continue
        candidate = visible[position]
        if id(candidate) not in assigned:
            roles[role] = candidate
            assigned.add(id(candidate))
    return roles


def _is_header_row(row: Tag, cells: list[Tag]) -> bool:
    if any(cell.name == "th" for cell in cells):
        return True
    return "header" in _classes(row)


def parse_log_html(
    content: bytes | str,
    source_file_index: int = 0,
    *,
    locator: str = "",
    session_key: str = "",
    failure_anchor_ids: Optional[Iterable[str]] = None,
) -> list[LogEntry]:
    """Parse one log page.

    ``lineNumberInFile`` is the 0-based position of the row among all table
    rows of the page, so header and skipped rows still occupy a slot and the
    numbering is stable across re-parses.

    Raises:
        LogParseError: the page contains no table rows at all.
    """
    text = _decode(content)
    anchor_ids = tuple(failure_anchor_ids) if failure_anchor_ids is not None else config.FAILURE_ANCHOR_IDS
    soup = BeautifulSoup(text, "html.parser")

    rows = list(_iter_table_rows(soup))
    if not rows:
        raise LogParseError(locator or "<memory>", "no log table found")

    entries: list[LogEntry] = []
    skipped = 0
    for line_number, row in enumerate(rows):
        cells = _direct_cells(row)
        if not cells or _is_header_row(row, cells):
            continue

        roles = _classify_cells(cells)
        if not {"timestamp", "level", "message"} <= roles.keys():
            skipped += 1
            continue

        timestamp = _cell_text(roles["timestamp"]).strip()
        if not timestamp or timestamp.lower() in _HEADER_TIMESTAMP_LABELS:
            skipped += 1
            continue

        message = _cell_text(roles["message"]).strip()
        stack_text = _cell_text(roles["stack"]).strip() if "stack" in roles else ""
        is_failure = _has_failure_anchor(roles["message"], anchor_ids) or message.endswith(_FAIL_TEXT_SUFFIX)

        entries.append(
            LogEntry(
                sessionKey=session_key,
                filePath=locator,
                sourceFileIndex=source_file_index,
                lineNumberInFile=line_number,
                timestamp=timestamp,
                level=_strip_level(_cell_text(roles["level"])),
                message=message,
                stack=stack_text or None,
                isFailureMarker=is_failure,
            )
        )

    if skipped:
        logger.debug("Skipped %d malformed row(s) in %s", skipped, locator or "<memory>")
    logger.info("Parsed %d log entries from %s", len(entries), locator or "<memory>")
    return entries
