"""logTerminator Backend Configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


# Project root (one level up from logterminator/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# Database
DB_PATH = os.getenv("LOGTERM_DB_PATH", str(DATA_DIR / "logterminator.db"))

# Fetch policy
FETCH_MAX_RETRIES = _env_int("LOGTERM_FETCH_MAX_RETRIES", 3)
FETCH_BACKOFF_SECONDS = _env_float("LOGTERM_FETCH_BACKOFF_SECONDS", 0.1)
FETCH_BACKOFF_MAX_SECONDS = _env_float("LOGTERM_FETCH_BACKOFF_MAX_SECONDS", 2.0)
HTTP_TIMEOUT_SECONDS = _env_float("LOGTERM_HTTP_TIMEOUT_SECONDS", 30.0)

# Fan-out limits
MAX_CONCURRENT_FILES = _env_int("LOGTERM_MAX_CONCURRENT_FILES", 4)
MAX_CONCURRENT_SESSIONS = _env_int("LOGTERM_MAX_CONCURRENT_SESSIONS", 2)

# Parser
FAILURE_ANCHOR_IDS = _env_list("LOGTERM_FAILURE_ANCHOR_IDS", ("failure", "fail-anchor", "FAIL"))

# Recent sources
HISTORY_PATH = Path(os.getenv("LOGTERM_HISTORY_PATH", str(DATA_DIR / "history.json")))
HISTORY_SIZE = _env_int("LOGTERM_HISTORY_SIZE", 10)

# Display configuration
LEVELS_PATH = os.getenv("LOGTERM_LEVELS_PATH", "")

# Operation tracking
MAX_OPERATION_HISTORY = _env_int("LOGTERM_MAX_OPERATION_HISTORY", 40)
AUTO_BOOKMARKS_ENABLED = _env_bool("LOGTERM_AUTO_BOOKMARKS_ENABLED", True)

# Logging
LOG_LEVEL = os.getenv("LOGTERM_LOG_LEVEL", "INFO").upper()

# Server settings
HOST = os.getenv("LOGTERM_HOST", "127.0.0.1")
PORT = _env_int("LOGTERM_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("LOGTERM_FRONTEND_ORIGIN", "http://localhost:1420")
