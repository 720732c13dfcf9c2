from __future__ import annotations

import sqlite3
import time
from typing import Callable, Optional, Protocol, Sequence

from . import config, db
from .error_codes import ErrorCode
from .logging_utils import _harvest_event
from .models import Review
from .retry_policy import compute_backoff_seconds, decide_retry


class ReviewSink(Protocol):
    def store(self, owner_id: str, reviews: Sequence[Review]) -> bool: ...


def _error_code_for(exc: Exception) -> str:
    if isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower():
        return ErrorCode.DB_LOCKED
    return ErrorCode.PERSIST_FAILED


class SqliteReviewSink:
    """Upsert reviews into the harvester database.

    Re-submitting the same reviews updates rows in place, keyed by
    ``(owner_id, identity_key)``. Locked-database errors are retried with
    backoff; any other failure is logged and reported as ``False``.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_attempts = max_attempts or config.PERSIST_MAX_ATTEMPTS
        self._sleep = sleep
        db.initialize_schema()

    def store(self, owner_id: str, reviews: Sequence[Review]) -> bool:
        attempt = 0
        while True:
            attempt += 1
            try:
                inserted, updated = db.upsert_reviews(owner_id, reviews)
            except sqlite3.Error as exc:
                code = _error_code_for(exc)
                _harvest_event(
                    "error",
                    phase="persist",
                    owner=owner_id,
                    attempt=attempt,
                    error_code=code,
                    error=str(exc),
                )
                if not decide_retry(code, attempt, self.max_attempts):
                    return False
                self._sleep(compute_backoff_seconds(attempt))
                continue

            _harvest_event(
                "persist",
                owner=owner_id,
                records=len(reviews),
                inserted=inserted,
                updated=updated,
                attempt=attempt,
            )
            return True


__all__ = ["ReviewSink", "SqliteReviewSink"]
