"""Classify test-log filenames: ``<TestName>_ID_<N>---<Y>.html``.

Anything else (``MainRollup.html``, ``summary.html``, ``_ID_1---0.html``,
non-html files) is not a test log and is silently ignored by ingestion.
"""
from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import NamedTuple, Optional
from urllib.parse import unquote, urlsplit

# Greedy key so the trailing ``---<digits>.html`` is the last one in the name.
_TEST_LOG_PATTERN = re.compile(r"^(?P<key>.*)---(?P<index>[0-9]+)\.html$")
_ID_MARKER = "_ID_"


class Classification(NamedTuple):
    session_key: str
    sequence_index: int


def classify(filename: str) -> Optional[Classification]:
    """Return the session key and sequence index, or None for non-test files."""
    match = _TEST_LOG_PATTERN.match(filename or "")
    if not match:
        return None
    key = match.group("key")
    # _ID_ needs a non-empty test name in front of it.
    if key.find(_ID_MARKER, 1) == -1:
        return None
    return Classification(key, int(match.group("index")))


def is_test_log_file(filename: str) -> bool:
    return classify(filename) is not None


def filename_from_locator(locator: str) -> str:
    """Base name of a filesystem path or URL."""
    if "://" in locator:
        path = urlsplit(locator).path
        return unquote(path.rstrip("/").rsplit("/", 1)[-1])
    return PurePosixPath(locator.replace("\\", "/")).name


def extract_session_key(locator: str) -> Optional[str]:
    classified = classify(filename_from_locator(locator))
    return classified.session_key if classified else None


def extract_file_index(locator: str) -> int:
    """Sequence index encoded in a test-log name, 0 when there is none."""
    classified = classify(filename_from_locator(locator))
    return classified.sequence_index if classified else 0
