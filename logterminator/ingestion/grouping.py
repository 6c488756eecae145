"""Group enumerated files into sessions by their classified filename."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from logterminator.models import ClassifiedFile, FileRef, SessionGroup
from logterminator.parsers.filenames import classify

logger = logging.getLogger("logterminator.ingest")


def group_files(
    refs: Iterable[FileRef],
    selected: Optional[Iterable[str]] = None,
) -> list[SessionGroup]:
    """Classify, filter and group files.

    Unclassified files are dropped. Groups come back sorted by session key,
    files within a group by sequence index, so the result depends only on
    the set of inputs and not on listing order. ``selected`` restricts the
    result to those session keys.

    Sequence indices are unique within a group: when two names resolve to
    the same index (``---1`` and ``---01``) the first by locator is kept and
    the other goes to ``duplicates``.
    """
    wanted = set(selected) if selected is not None else None
    grouped: dict[str, list[ClassifiedFile]] = {}
    ignored = 0

    for ref in refs:
        classified = classify(ref.filename)
        if classified is None:
            ignored += 1
            continue
        if wanted is not None and classified.session_key not in wanted:
            continue
        grouped.setdefault(classified.session_key, []).append(
            ClassifiedFile(
                ref=ref,
                sessionKey=classified.session_key,
                sequenceIndex=classified.sequence_index,
            )
        )

    if ignored:
        logger.debug("Ignored %d file(s) not matching the test-log naming pattern", ignored)

    groups: list[SessionGroup] = []
    for key in sorted(grouped):
        files: list[ClassifiedFile] = []
        duplicates: list[ClassifiedFile] = []
        for item in sorted(grouped[key], key=lambda item: (item.sequenceIndex, item.ref.locator)):
            if files and files[-1].sequenceIndex == item.sequenceIndex:
                logger.warning(
                    "Session %s has duplicate sequence index %d: keeping %s, dropping %s",
                    key, item.sequenceIndex, files[-1].ref.filename, item.ref.filename,
                )
                duplicates.append(item)
                continue
            files.append(item)
        groups.append(SessionGroup(sessionKey=key, files=files, duplicates=duplicates))
    return groups
