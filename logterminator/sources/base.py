"""Fetch capability shared by the filesystem and HTTP backends."""
from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from logterminator import config
from logterminator.errors import FetchError
from logterminator.models import FileRef, SourceKind

logger = logging.getLogger("logterminator.sources")


@runtime_checkable
class LogSource(Protocol):
    """A directory of log files, local or remote.

    ``list_directory`` raises EnumerationError; ``fetch_bytes`` raises
    FetchError. Neither retries on its own.
    """

    kind: SourceKind
    locator: str

    async def list_directory(self, locator: Optional[str] = None) -> list[FileRef]:
        ...

    async def fetch_bytes(self, locator: str) -> bytes:
        ...

    async def aclose(self) -> None:
        ...


async def fetch_with_retry(
    source: LogSource,
    locator: str,
    *,
    max_retries: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
    backoff_max_seconds: Optional[float] = None,
) -> bytes:
    """Fetch one file, retrying FetchError with exponential backoff.

    The final FetchError is re-raised with ``attempts`` set to the number of
    tries made. Other exceptions are not retried.
    """
    retries = config.FETCH_MAX_RETRIES if max_retries is None else max(0, max_retries)
    backoff = config.FETCH_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
    ceiling = config.FETCH_BACKOFF_MAX_SECONDS if backoff_max_seconds is None else backoff_max_seconds

    attempts = 0
    data = b""
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=backoff, max=ceiling),
            retry=retry_if_exception_type(FetchError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                data = await source.fetch_bytes(locator)
    except FetchError as exc:
        exc.attempts = attempts
        logger.warning("Giving up on %s after %d attempt(s): %s", locator, attempts, exc.reason)
        raise
    if attempts > 1:
        logger.info("Fetched %s after %d attempts", locator, attempts)
    return data
