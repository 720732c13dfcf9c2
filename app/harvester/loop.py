"""Loop controller for incremental "show more" extraction.

One run alternates extract -> merge -> paginate on a single session until the
pagination driver reports exhaustion or a stall, the iteration budget runs
out, the caller cancels, or something unexpected breaks. Every path returns
a :class:`HarvestResult`; only the last one carries an error, and even then
the reviews gathered so far are kept.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Protocol

from . import config
from .accumulator import ReviewAccumulator
from .error_codes import ErrorCode
from .extraction import extract_reviews
from .logging_utils import RunEventLog
from .models import CompletionReason, HarvestResult, IterationStat
from .pagination import PaginationDriver, PaginationOutcome
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors

if TYPE_CHECKING:  # pragma: no cover
    from .session import BrowserSession
    from .sinks import ReviewSink


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class LoopConfig:
    max_iterations: int = 20
    post_trigger_delay_ms: int = 2000
    growth_timeout_ms: int = 5000
    cancel_signal: Optional[CancelSignal] = None

    @classmethod
    def from_config(cls, **overrides) -> "LoopConfig":
        values = {
            "max_iterations": config.MAX_ITERATIONS,
            "post_trigger_delay_ms": config.POST_TRIGGER_DELAY_MS,
            "growth_timeout_ms": config.GROWTH_TIMEOUT_MS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def cancelled(self) -> bool:
        return self.cancel_signal is not None and bool(self.cancel_signal.is_set())


def _short_error_message(exc: Exception, max_length: int = 200) -> str:
    message = f"{type(exc).__name__}: {exc}"
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


def run_harvest_loop(
    session: "BrowserSession",
    owner_id: str,
    *,
    loop_config: Optional[LoopConfig] = None,
    sink: Optional["ReviewSink"] = None,
    selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
    events: Optional[RunEventLog] = None,
    asset_host: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HarvestResult:
    """Harvest every review reachable through the "show more" control."""

    cfg = loop_config or LoopConfig.from_config()
    events = events or RunEventLog(f"harvest-{owner_id}", owner_id)
    driver = PaginationDriver(
        session,
        selectors=selectors,
        post_trigger_delay_ms=cfg.post_trigger_delay_ms,
        growth_timeout_ms=cfg.growth_timeout_ms,
        events=events,
    )
    accumulator = ReviewAccumulator()
    history: list[IterationStat] = []
    container_seen = False
    missing_reported = False
    reason: Optional[CompletionReason] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    events.event(
        "state",
        phase="start",
        max_iterations=cfg.max_iterations,
        post_trigger_delay_ms=cfg.post_trigger_delay_ms,
        growth_timeout_ms=cfg.growth_timeout_ms,
    )

    iteration = 0
    while reason is None:
        if iteration >= cfg.max_iterations:
            reason = CompletionReason.TRUNCATED
            events.warn(
                "iteration budget reached; result may be incomplete",
                max_iterations=cfg.max_iterations,
                records=len(accumulator),
            )
            break
        iteration += 1

        try:
            snapshot = session.extract_current_document()
            batch = list(extract_reviews(snapshot, owner_id, asset_host=asset_host, now=now))
        except Exception as exc:  # noqa: BLE001
            reason = CompletionReason.FAILED
            error = _short_error_message(exc)
            error_code = ErrorCode.EXTRACTION_FAILED
            events.error("extraction failed", iteration=iteration, error=error)
            break

        stat = IterationStat(index=iteration, container_present=snapshot.container_present)
        if snapshot.container_present:
            container_seen = True
            merged = accumulator.merge(batch)
            stat.seen = merged.seen
            stat.inserted = merged.inserted
        elif container_seen:
            events.warn(
                "review container disappeared; skipping merge",
                iteration=iteration,
                error_code=ErrorCode.STRUCTURE_MISSING,
            )
        elif not missing_reported:
            missing_reported = True
            events.warn(
                "review container not present",
                iteration=iteration,
                error_code=ErrorCode.STRUCTURE_MISSING,
            )
        stat.total = len(accumulator)
        history.append(stat)

        events.event(
            "iteration",
            index=iteration,
            container_present=stat.container_present,
            seen=stat.seen,
            inserted=stat.inserted,
            total=stat.total,
        )

        if cfg.cancelled():
            reason = CompletionReason.CANCELLED
            events.event("state", phase="cancelled", iteration=iteration)
            break

        try:
            outcome = driver.advance()
        except Exception as exc:  # noqa: BLE001
            reason = CompletionReason.FAILED
            error = _short_error_message(exc)
            error_code = ErrorCode.PAGINATION_FAILED
            events.error("pagination failed", iteration=iteration, error=error)
            break

        stat.pagination = outcome.value
        if outcome is PaginationOutcome.EXHAUSTED:
            reason = CompletionReason.EXHAUSTED
        elif outcome is PaginationOutcome.STALLED:
            reason = CompletionReason.STALLED

    result = HarvestResult(
        owner_id=owner_id,
        reason=reason,
        reviews=accumulator.values(),
        iterations=iteration,
        triggers=driver.triggers,
        truncated=reason is CompletionReason.TRUNCATED,
        error=error,
        error_code=error_code,
        history=history,
    )

    if sink is not None and result.ok:
        _hand_off(sink, result, events)

    events.event("state", phase="end", **result.summary())
    return result


def _hand_off(sink: "ReviewSink", result: HarvestResult, events: RunEventLog) -> None:
    """Single best-effort store; retries are the sink's own business."""

    try:
        result.persisted = bool(sink.store(result.owner_id, list(result.reviews)))
    except Exception as exc:  # noqa: BLE001
        result.persisted = False
        events.error("persist raised", error=_short_error_message(exc))
    if not result.persisted:
        result.error_code = ErrorCode.PERSIST_FAILED
    events.event(
        "persist",
        records=len(result.reviews),
        persisted=result.persisted,
    )


__all__ = ["CancelSignal", "LoopConfig", "run_harvest_loop"]
