"""Log sources: local directories and HTTP directory listings."""
from logterminator.sources.base import LogSource, fetch_with_retry
from logterminator.sources.factory import get_log_source, is_http_locator

__all__ = ["LogSource", "fetch_with_retry", "get_log_source", "is_http_locator"]
