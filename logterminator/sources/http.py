"""HTTP backend: an auto-index directory listing page plus per-file GETs."""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup

from logterminator import config
from logterminator.errors import EnumerationError, FetchError
from logterminator.models import FileRef
from logterminator.parsers.filenames import filename_from_locator

logger = logging.getLogger("logterminator.sources")


def normalize_base_url(base_url: str) -> str:
    """Validate an http(s) URL and make sure its path ends with ``/``."""
    parts = urlsplit(base_url.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise EnumerationError(base_url, "not an http(s) URL")
    path = parts.path if parts.path.endswith("/") else f"{parts.path}/"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def parse_directory_listing(html: str, base_url: str) -> list[str]:
    """Absolute URLs of the files linked from a directory listing page.

    Parent links (``../``), query links (``?C=M;O=A``) and sub-directories
    (trailing ``/``) are skipped, as is anything resolving outside the base
    directory or onto another host.

    Raises EnumerationError when the page has no links at all.
    """
    base = normalize_base_url(base_url)
    base_parts = urlsplit(base)
    base_path_prefix = base_parts.path.rstrip("/") + "/"
    soup = BeautifulSoup(html, "html.parser")
    anchors = soup.find_all("a")
    if not anchors:
        raise EnumerationError(base, "directory listing has no links")

    urls: list[str] = []
    for anchor in anchors:
        href = anchor.get("href")
        if not isinstance(href, str) or not href:
            continue
        if href.startswith("../") or href.startswith("?"):
            continue
        if href.endswith("/"):
            continue

        resolved = urljoin(base, href)
        parts = urlsplit(resolved)
        if parts.netloc != base_parts.netloc or not parts.path.startswith(base_path_prefix):
            logger.debug("Skipping link outside %s: %s", base_path_prefix, resolved)
            continue
        urls.append(resolved)
    return urls


class HttpDirectorySource:
    kind = "http"

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.locator = normalize_base_url(base_url)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
        )

    async def list_directory(self, locator: Optional[str] = None) -> list[FileRef]:
        target = normalize_base_url(locator) if locator else self.locator
        try:
            response = await self.client.get(target)
        except httpx.TimeoutException as exc:
            raise EnumerationError(target, "timed out fetching directory listing") from exc
        except httpx.HTTPError as exc:
            raise EnumerationError(target, f"cannot reach directory listing: {exc}") from exc
        if response.status_code >= 400:
            raise EnumerationError(target, f"HTTP status {response.status_code}")

        urls = parse_directory_listing(response.text, target)
        logger.info("Directory listing %s has %d file link(s)", target, len(urls))
        return [FileRef(locator=url, filename=filename_from_locator(url)) for url in urls]

    async def fetch_bytes(self, locator: str) -> bytes:
        try:
            response = await self.client.get(locator)
        except httpx.HTTPError as exc:
            raise FetchError(locator, f"request failed: {exc.__class__.__name__}: {exc}") from exc
        if response.status_code >= 400:
            raise FetchError(locator, f"HTTP status {response.status_code}")
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
