from __future__ import annotations

from typing import Iterable, Iterator

from .models import MergeStats, Review


class ReviewAccumulator:
    """Run-scoped, deduplicated review set keyed by ``Review.identity_key``.

    Insertion order is discovery order. The first record seen for a key wins;
    later candidates with the same key are ignored, so merging the same batch
    twice is a no-op the second time.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, Review] = {}

    def merge(self, batch: Iterable[Review]) -> MergeStats:
        seen = 0
        inserted = 0
        for review in batch:
            seen += 1
            key = review.identity_key
            if key in self._by_key:
                continue
            self._by_key[key] = review
            inserted += 1
        return MergeStats(seen=seen, inserted=inserted)

    def values(self) -> list[Review]:
        return list(self._by_key.values())

    def keys(self) -> list[str]:
        return list(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[Review]:
        return iter(self._by_key.values())


__all__ = ["ReviewAccumulator"]
