"""Map a rendered review document into validated :class:`Review` records.

The browser side only ever hands over plain data: a :class:`DocumentSnapshot`
whose ``items`` are dictionaries with the keys below. Nothing in this module
touches a live page.

``author``       text of the author element, ``None`` when the element is absent
``stars``        number of filled star images
``body``         review text
``date_text``    raw date label
``verified``     whether the verified-buyer marker was present
``attachments``  image ``src``/``data-src`` values in document order
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Mapping, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from . import config
from .date_utils import parse_review_date
from .models import ANONYMOUS_AUTHOR, MAX_RATING, MIN_RATING, Review
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors


@dataclass(frozen=True)
class DocumentSnapshot:
    container_present: bool
    items: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def missing(cls) -> "DocumentSnapshot":
        return cls(container_present=False, items=())


def resolve_attachment_url(src: str, asset_host: str) -> str:
    """Return an absolute URL for ``src``; relative paths use ``asset_host``."""

    src = src.strip()
    if src.startswith(("http://", "https://")):
        return src
    if src.startswith("//"):
        return f"https:{src}"
    return urljoin(f"{asset_host.rstrip('/')}/", src)


def _coerce_rating(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def candidate_to_review(
    raw: Mapping[str, Any],
    owner_id: str,
    *,
    asset_host: str,
    now: datetime,
) -> Optional[Review]:
    """Validate one raw candidate; return ``None`` when it must be dropped."""

    author = raw.get("author")
    if author is None:
        author_name = ANONYMOUS_AUTHOR
    else:
        author_name = " ".join(str(author).split())
        if not author_name:
            return None

    rating = _coerce_rating(raw.get("stars"))
    if rating is None or rating < MIN_RATING or rating > MAX_RATING:
        return None

    attachments = tuple(
        resolve_attachment_url(str(src), asset_host)
        for src in (raw.get("attachments") or ())
        if src and str(src).strip()
    )

    return Review(
        owner_id=owner_id,
        author_name=author_name,
        rating=rating,
        body_text=str(raw.get("body") or "").strip(),
        timestamp=parse_review_date(raw.get("date_text"), now=now),
        verified=bool(raw.get("verified")),
        attachments=attachments,
    )


def extract_reviews(
    snapshot: DocumentSnapshot,
    owner_id: str,
    *,
    asset_host: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Iterator[Review]:
    """Yield valid reviews from ``snapshot`` in document order."""

    host = asset_host or config.ASSET_HOST
    extracted_at = now or datetime.utcnow()
    for raw in snapshot.items:
        review = candidate_to_review(raw, owner_id, asset_host=host, now=extracted_at)
        if review is not None:
            yield review


def snapshot_from_html(
    html: str, selectors: ReviewPageSelectors = PRICEOYE_SELECTORS
) -> DocumentSnapshot:
    """Build a :class:`DocumentSnapshot` from saved HTML.

    Mirrors the in-page extraction script used against a live browser so
    fixtures and live pages produce identical candidates.
    """

    soup = BeautifulSoup(html or "", "html5lib")
    container_present = soup.select_one(selectors.container) is not None

    items = []
    for box in soup.select(selectors.item):
        author_el = box.select_one(selectors.author)
        stars = [
            img
            for img in box.select(selectors.stars)
            if selectors.filled_star_marker in (img.get("src") or "")
        ]
        body_el = box.select_one(selectors.body)
        date_el = box.select_one(selectors.date)
        attachments = []
        for img in box.select(selectors.attachments):
            src = img.get("src") or img.get("data-src")
            if src:
                attachments.append(src)
        items.append(
            {
                "author": author_el.get_text(strip=True) if author_el is not None else None,
                "stars": len(stars),
                "body": body_el.get_text(strip=True) if body_el is not None else "",
                "date_text": date_el.get_text(strip=True) if date_el is not None else "",
                "verified": box.select_one(selectors.verified) is not None,
                "attachments": attachments,
            }
        )

    return DocumentSnapshot(container_present=container_present, items=tuple(items))


__all__ = [
    "DocumentSnapshot",
    "candidate_to_review",
    "extract_reviews",
    "resolve_attachment_url",
    "snapshot_from_html",
]
