"""Recently opened sources (directories or URLs), most recent first."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from logterminator import config

logger = logging.getLogger("logterminator")


class RecentSources:
    """Bounded, de-duplicated list persisted as a JSON array.

    Instances are created by the application and handed to whoever needs
    them; nothing in the ingestion core reads or writes history.
    """

    def __init__(self, path: Optional[Path] = None, max_items: Optional[int] = None):
        self.path = Path(path) if path is not None else config.HISTORY_PATH
        self.max_items = max_items if max_items is not None else config.HISTORY_SIZE

    def load(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable history file %s: %s", self.path, exc)
            return []
        if not isinstance(payload, list):
            return []
        return [str(item).strip() for item in payload if str(item).strip()][: self.max_items]

    def add(self, source: str) -> list[str]:
        source = source.strip()
        if not source:
            return self.load()
        items = [item for item in self.load() if item != source]
        items.insert(0, source)
        items = items[: self.max_items]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        return items

    def recent(self, count: Optional[int] = None) -> list[str]:
        items = self.load()
        return items if count is None else items[: max(count, 0)]

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
