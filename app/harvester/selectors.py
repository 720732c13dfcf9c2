from __future__ import annotations

"""Selectors for review pages revealed through a "show more" control."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReviewPageSelectors:
    """CSS hints for one review page layout.

    ``item`` is the repeated review box and doubles as the growth counter;
    ``container`` only signals that the review section rendered at all. Star
    ratings are counted as the images inside ``stars`` whose ``src`` contains
    ``filled_star_marker``.
    """

    container: str = ".user-reviews, .section-body, .review-box"
    item: str = ".review-box"
    author: str = ".user-reivew-name h5"
    stars: str = ".rating-star img"
    filled_star_marker: str = "stars.svg"
    body: str = ".user-reivew-description"
    date: str = ".review-date"
    verified: str = ".verified-user"
    attachments: str = ".review-images img"
    load_more: str = ".show-more-btn button"


PRICEOYE_SELECTORS = ReviewPageSelectors()

__all__ = ["ReviewPageSelectors", "PRICEOYE_SELECTORS"]
