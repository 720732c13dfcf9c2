from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _harvest_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.DB_LOCKED,
}

NON_RETRYABLE_ERROR_CODES = {
    ErrorCode.PERSIST_FAILED,
    ErrorCode.INTERNAL,
}


def compute_backoff_seconds(attempt_index: int) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    return float(min(0.25 * 2 ** max(0, attempt_index - 1), 5))


def decide_retry(
    error_code: Optional[str],
    attempt_index: int,
    max_attempts: int = 3,
) -> bool:
    """Decide whether a failed storage attempt should be retried."""

    code = (error_code or "").strip()

    if attempt_index >= max_attempts:
        kind, will_retry = "capped", False
    elif not code:
        kind, will_retry = "missing_error_code", False
    elif code in NON_RETRYABLE_ERROR_CODES:
        kind, will_retry = "non_retryable", False
    elif code in RETRYABLE_ERROR_CODES:
        kind, will_retry = "retryable", True
    else:
        kind, will_retry = "no_retry_policy", False

    _harvest_event(
        "state",
        phase="retry_decision",
        kind=kind,
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        will_retry=will_retry,
    )
    return will_retry


__all__ = [
    "NON_RETRYABLE_ERROR_CODES",
    "RETRYABLE_ERROR_CODES",
    "compute_backoff_seconds",
    "decide_retry",
]
