"""Plain data types shared by the harvest loop, sinks and reporting."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple

ANONYMOUS_AUTHOR = "Anonymous"
MIN_RATING = 1
MAX_RATING = 5


def identity_key(author_name: Any, rating: Any, timestamp: Any) -> str:
    """Return the composite dedup key ``author|rating|YYYY-MM-DD``.

    Total for any input; only used to detect duplicates across iterations.
    """

    try:
        day = timestamp.date().isoformat()
    except Exception:  # noqa: BLE001
        day = str(timestamp)[:10]
    name = str(author_name or "").strip()
    return f"{name}|{rating}|{day}"


@dataclass(frozen=True)
class Review:
    owner_id: str
    author_name: str
    rating: int
    body_text: str
    timestamp: datetime
    verified: bool = False
    attachments: Tuple[str, ...] = ()

    @property
    def identity_key(self) -> str:
        return identity_key(self.author_name, self.rating, self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "author_name": self.author_name,
            "rating": self.rating,
            "body_text": self.body_text,
            "timestamp": self.timestamp.isoformat(),
            "verified": self.verified,
            "attachments": list(self.attachments),
            "identity_key": self.identity_key,
        }


class CompletionReason(str, Enum):
    EXHAUSTED = "exhausted"
    STALLED = "stalled"
    TRUNCATED = "truncated"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class MergeStats:
    seen: int
    inserted: int


@dataclass
class IterationStat:
    index: int
    container_present: bool
    seen: int = 0
    inserted: int = 0
    total: int = 0
    pagination: Optional[str] = None


@dataclass
class HarvestResult:
    """Outcome of one harvest run.

    ``error``/``error_code`` are only set for unexpected failures; every other
    outcome is a success annotated with ``reason``.
    """

    owner_id: str
    reason: CompletionReason
    reviews: list[Review] = field(default_factory=list)
    iterations: int = 0
    triggers: int = 0
    truncated: bool = False
    persisted: Optional[bool] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    history: list[IterationStat] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "reason": self.reason.value,
            "records": len(self.reviews),
            "iterations": self.iterations,
            "triggers": self.triggers,
            "truncated": self.truncated,
            "persisted": self.persisted,
            "error": self.error,
            "error_code": self.error_code,
        }


__all__ = [
    "ANONYMOUS_AUTHOR",
    "CompletionReason",
    "HarvestResult",
    "IterationStat",
    "MAX_RATING",
    "MIN_RATING",
    "MergeStats",
    "Review",
    "identity_key",
]
