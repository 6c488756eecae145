"""Error taxonomy for ingestion.

Enumeration errors abort an ingestion attempt. Fetch and parse errors are
scoped to one file, persistence errors to one session.
"""
from __future__ import annotations


class LogTerminatorError(Exception):
    stage = "unknown"

    def __init__(self, locator: str, reason: str):
        self.locator = locator
        self.reason = reason
        super().__init__(f"[{self.stage}] {locator}: {reason}")

    def to_dict(self) -> dict:
        return {"stage": self.stage, "locator": self.locator, "reason": self.reason}


class EnumerationError(LogTerminatorError):
    """Directory missing or unreadable, listing unreachable or unparsable."""
    stage = "enumerate"


class FetchError(LogTerminatorError):
    """A single file could not be read or downloaded."""
    stage = "fetch"

    def __init__(self, locator: str, reason: str, attempts: int = 1):
        super().__init__(locator, reason)
        self.attempts = attempts

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["attempts"] = self.attempts
        return payload


class LogParseError(LogTerminatorError):
    """File content holds no recognizable log table."""
    stage = "parse"


class PersistenceError(LogTerminatorError):
    """Writing a session failed; the locator is the session name."""
    stage = "persist"
