from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from .error_codes import ErrorCode
from .logging_utils import RunEventLog
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors

if TYPE_CHECKING:  # pragma: no cover
    from .session import BrowserSession


class PaginationOutcome(str, Enum):
    GREW = "grew"
    EXHAUSTED = "exhausted"
    STALLED = "stalled"


class PaginationDriver:
    """Drive one "show more" cycle: check, trigger, settle, await growth.

    The control's enabled state is only a fast-path hint. Growth of the item
    count within ``growth_timeout_ms`` is what proves more content exists, so a
    control that stays enabled without producing items ends as ``STALLED``.
    """

    def __init__(
        self,
        session: "BrowserSession",
        *,
        selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
        post_trigger_delay_ms: int = 2000,
        growth_timeout_ms: int = 5000,
        events: Optional[RunEventLog] = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.post_trigger_delay_ms = post_trigger_delay_ms
        self.growth_timeout_ms = growth_timeout_ms
        self.events = events or RunEventLog("pagination")
        self.triggers = 0

    def advance(self) -> PaginationOutcome:
        load_more = self.selectors.load_more
        item = self.selectors.item

        if not self.session.has_control(load_more):
            self.events.event("pagination", state="exhausted", triggers=self.triggers)
            return PaginationOutcome.EXHAUSTED

        before = self.session.current_item_count(item)
        if not self.session.trigger(load_more):
            self.events.event(
                "pagination",
                state="stalled",
                error_code=ErrorCode.TRIGGER_FAILED,
                items_before=before,
                triggers=self.triggers,
            )
            return PaginationOutcome.STALLED
        self.triggers += 1

        self.session.wait(self.post_trigger_delay_ms)

        if self.session.await_growth(item, before, self.growth_timeout_ms):
            self.events.event(
                "pagination",
                state="grew",
                items_before=before,
                triggers=self.triggers,
            )
            return PaginationOutcome.GREW

        self.events.event(
            "pagination",
            state="stalled",
            error_code=ErrorCode.GROWTH_TIMEOUT,
            items_before=before,
            timeout_ms=self.growth_timeout_ms,
            triggers=self.triggers,
        )
        return PaginationOutcome.STALLED


__all__ = ["PaginationDriver", "PaginationOutcome"]
