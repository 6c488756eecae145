"""Display ordering for log levels.

Levels are an open set of strings. Their ordering is display configuration:
a mapping of level name to priority, optionally loaded from a YAML file of
the form::

    levels:
      ERROR: 0
      WARNING: 1
      INFO: 2

Unknown levels sort after every configured one, alphabetically.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional

import yaml

from logterminator import config

logger = logging.getLogger("logterminator")

DEFAULT_LEVEL_PRIORITY: dict[str, int] = {
    "ERROR": 0,
    "FAIL": 1,
    "WARNING": 2,
    "MARKER": 3,
    "INFO": 4,
    "DEBUG": 5,
    "TRACE": 6,
}


def normalize_level(level: str) -> str:
    return level.strip().strip("[]").strip().upper()


def load_level_priority(path: Optional[str | Path] = None) -> dict[str, int]:
    """Load the priority mapping from YAML, falling back to the defaults.

    A missing or malformed file is logged and ignored.
    """
    location = path if path is not None else config.LEVELS_PATH
    if not location:
        return dict(DEFAULT_LEVEL_PRIORITY)

    file_path = Path(location)
    try:
        raw = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not load level priorities from %s: %s", file_path, exc)
        return dict(DEFAULT_LEVEL_PRIORITY)

    mapping = raw.get("levels", raw) if isinstance(raw, dict) else raw
    if isinstance(mapping, list):
        mapping = {name: index for index, name in enumerate(mapping)}
    if not isinstance(mapping, dict):
        logger.warning("Ignoring level priorities in %s: expected a mapping or list", file_path)
        return dict(DEFAULT_LEVEL_PRIORITY)

    priorities: dict[str, int] = {}
    for name, value in mapping.items():
        try:
            priorities[normalize_level(str(name))] = int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer priority for level %r in %s", name, file_path)
    return priorities or dict(DEFAULT_LEVEL_PRIORITY)


def sort_levels(levels: Iterable[str], priority: Optional[Mapping[str, int]] = None) -> list[str]:
    mapping = priority if priority is not None else DEFAULT_LEVEL_PRIORITY
    unknown_rank = max(mapping.values(), default=0) + 1

    def _key(level: str) -> tuple[int, str]:
        return (mapping.get(normalize_level(level), unknown_rank), level)

    return sorted(set(levels), key=_key)
