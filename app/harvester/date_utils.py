from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

_DATE_FORMATS: Iterable[str] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%d/%m/%Y",
    "%d-%b-%Y",
    "%d-%m-%Y",
)


def parse_review_date(value: Optional[str], *, now: datetime) -> datetime:
    """Return the datetime for a review date label.

    Accepts ISO-8601 timestamps and a handful of human formats. Falls back to
    ``now`` when the value is empty or cannot be parsed.
    """

    candidate = " ".join((value or "").split())
    if not candidate:
        return now

    try:
        parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
    except ValueError:
        pass
    else:
        # Offsets are folded into naive UTC so every timestamp compares.
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue

    return now


__all__ = ["parse_review_date"]
