"""Pick a backend for a directory path or URL."""
from __future__ import annotations

from typing import Optional

import httpx

from logterminator.sources.base import LogSource
from logterminator.sources.http import HttpDirectorySource
from logterminator.sources.local import LocalDirectorySource


def is_http_locator(locator: str) -> bool:
    lowered = locator.strip().lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def get_log_source(locator: str, client: Optional[httpx.AsyncClient] = None) -> LogSource:
    if is_http_locator(locator):
        return HttpDirectorySource(locator, client=client)
    return LocalDirectorySource(locator.strip())
