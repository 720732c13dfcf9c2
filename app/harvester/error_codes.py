from __future__ import annotations

"""Centralised error code taxonomy for harvest failures.

These codes are persisted in the runs.error_code column and included in
structured logs so that operators can tell a site that ran out of data apart
from a site whose loading mechanism changed.
"""


class ErrorCode:
    STRUCTURE_MISSING = "structure_missing"
    TRIGGER_FAILED = "trigger_failed"
    GROWTH_TIMEOUT = "growth_timeout"
    EXTRACTION_FAILED = "extraction_failed"
    PAGINATION_FAILED = "pagination_failed"
    NAVIGATION_FAILED = "navigation_failed"
    PERSIST_FAILED = "persist_failed"
    DB_LOCKED = "db_locked"
    INTERNAL = "internal_error"


class HarvestError(Exception):
    """Base error carrying an :class:`ErrorCode` value."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class NavigationError(HarvestError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NAVIGATION_FAILED, message)


__all__ = ["ErrorCode", "HarvestError", "NavigationError"]
