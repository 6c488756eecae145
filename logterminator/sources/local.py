"""Filesystem backend: one directory, no recursion."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from logterminator.errors import EnumerationError, FetchError
from logterminator.models import FileRef

logger = logging.getLogger("logterminator.sources")


class LocalDirectorySource:
    kind = "local"

    def __init__(self, directory: str | Path):
        self.locator = str(directory)
        self.directory = Path(directory)

    async def list_directory(self, locator: Optional[str] = None) -> list[FileRef]:
        target = Path(locator) if locator else self.directory
        return await asyncio.to_thread(self._list_sync, target)

    def _list_sync(self, target: Path) -> list[FileRef]:
        if not target.exists():
            raise EnumerationError(str(target), "directory does not exist")
        if not target.is_dir():
            raise EnumerationError(str(target), "not a directory")
        try:
            children = sorted(target.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise EnumerationError(str(target), f"cannot list directory: {exc}") from exc

        refs = [FileRef(locator=str(child), filename=child.name) for child in children if child.is_file()]
        logger.debug("Listed %d file(s) in %s", len(refs), target)
        return refs

    async def fetch_bytes(self, locator: str) -> bytes:
        try:
            return await asyncio.to_thread(Path(locator).read_bytes)
        except OSError as exc:
            raise FetchError(locator, f"cannot read file: {exc}") from exc

    async def aclose(self) -> None:
        return None
