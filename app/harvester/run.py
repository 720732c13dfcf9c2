"""Harvest entrypoint: open the reviews page, run the loop, record the run."""
from __future__ import annotations

import argparse
from contextlib import AbstractContextManager
from dataclasses import replace
from typing import Any, Callable, List, Optional

from . import config, db
from .config_validation import Entrypoint, validate_runtime_config
from .error_codes import ErrorCode, HarvestError
from .logging_utils import RunEventLog, _harvest_event
from .loop import CancelSignal, LoopConfig, run_harvest_loop
from .models import CompletionReason, HarvestResult
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors
from .session import open_playwright_session, reviews_url_for
from .sinks import ReviewSink, SqliteReviewSink
from .utils import ensure_dirs, log_line, save_json_file, setup_run_logger

SessionFactory = Callable[..., AbstractContextManager]


def _create_run_row(
    *, trigger: str, owner_id: str, url: str, loop_config: LoopConfig
) -> Optional[int]:
    try:
        return db.create_run(
            trigger=trigger,
            owner_id=owner_id,
            source_url=url,
            params={
                "max_iterations": loop_config.max_iterations,
                "post_trigger_delay_ms": loop_config.post_trigger_delay_ms,
                "growth_timeout_ms": loop_config.growth_timeout_ms,
            },
        )
    except Exception as exc:  # noqa: BLE001
        log_line(f"[DB][WARN] Unable to create run record: {exc}")
        return None


def _finish_run_row(run_id: Optional[int], result: HarvestResult) -> None:
    if run_id is None:
        return
    try:
        db.finish_run(
            run_id,
            status="completed" if result.ok else "failed",
            reason=result.reason.value,
            iterations=result.iterations,
            records=len(result.reviews),
            truncated=result.truncated,
            persisted=result.persisted,
            error_code=result.error_code,
            error_message=result.error,
        )
    except Exception as exc:  # noqa: BLE001
        log_line(f"[DB][WARN] Unable to finish run {run_id}: {exc}")


def harvest_reviews(
    owner_id: str,
    product_url: str,
    *,
    sink: Optional[ReviewSink] = None,
    loop_config: Optional[LoopConfig] = None,
    selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
    headless: Optional[bool] = None,
    trigger: str = "cli",
    entrypoint: Entrypoint = "cli",
    session_factory: SessionFactory = open_playwright_session,
    cancel_signal: Optional[CancelSignal] = None,
) -> HarvestResult:
    """Harvest all reviews for ``owner_id`` from the product's reviews page.

    Never raises for data outcomes, navigation failures or browser crashes;
    those come back as a :class:`HarvestResult` and the run row is always
    finished. Configuration errors raise ``ValueError``.
    """

    ensure_dirs()
    db.initialize_schema()
    setup_run_logger()

    loop_config = loop_config or LoopConfig.from_config()
    if cancel_signal is not None:
        loop_config = replace(loop_config, cancel_signal=cancel_signal)
    validate_runtime_config(entrypoint, loop_config=loop_config)

    url = reviews_url_for(product_url)
    run_id = _create_run_row(trigger=trigger, owner_id=owner_id, url=url, loop_config=loop_config)
    events = RunEventLog(f"run-{run_id}" if run_id is not None else f"harvest-{owner_id}", owner_id)
    events.event("state", phase="harvest_start", url=url, trigger=trigger)

    if sink is None:
        sink = SqliteReviewSink()

    result: Optional[HarvestResult] = None
    try:
        with session_factory(url, selectors=selectors, headless=headless) as session:
            result = run_harvest_loop(
                session,
                owner_id,
                loop_config=loop_config,
                sink=sink,
                selectors=selectors,
                events=events,
            )
            if not result.reviews and config.SNAPSHOT_ON_EMPTY:
                events.event("state", phase="empty_result_snapshot", reason=result.reason.value)
                session.snapshot(f"no-reviews-{owner_id}")
    except HarvestError as exc:
        events.error("harvest aborted", error_code=exc.code, error=exc.message)
        result = HarvestResult(
            owner_id=owner_id,
            reason=CompletionReason.FAILED,
            error=exc.message,
            error_code=exc.code,
        )
    except Exception as exc:  # noqa: BLE001
        message = f"{type(exc).__name__}: {exc}"
        events.error("harvest crashed", error_code=ErrorCode.INTERNAL, error=message)
        result = HarvestResult(
            owner_id=owner_id,
            reason=CompletionReason.FAILED,
            reviews=list(result.reviews) if result is not None else [],
            error=message,
            error_code=ErrorCode.INTERNAL,
        )

    _finish_run_row(run_id, result)

    summary: dict[str, Any] = {"run_id": run_id, "url": url, **result.summary()}
    try:
        save_json_file(config.SUMMARY_FILE, summary)
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN][WARN] Unable to write summary: {exc}")

    if result.ok:
        log_line(f"Harvested {len(result.reviews)} reviews for {owner_id} ({result.reason.value})")
    else:
        _harvest_event("warn", owner=owner_id, reason=result.reason.value, error=result.error)
    return result


def _cli_entrypoint(argv: Optional[List[str]] = None) -> int:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Harvest reviews behind a 'show more' control")
    parser.add_argument("--owner-id", required=True, help="Owning product identifier")
    parser.add_argument("--product-url", required=True)
    parser.add_argument("--max-iterations", type=int, default=config.MAX_ITERATIONS)
    parser.add_argument("--growth-timeout-ms", type=int, default=config.GROWTH_TIMEOUT_MS)
    parser.add_argument(
        "--post-trigger-delay-ms", type=int, default=config.POST_TRIGGER_DELAY_MS
    )
    parser.add_argument("--headful", action="store_true", default=False)
    args = parser.parse_args(argv)

    result = harvest_reviews(
        args.owner_id,
        args.product_url,
        loop_config=LoopConfig(
            max_iterations=args.max_iterations,
            post_trigger_delay_ms=args.post_trigger_delay_ms,
            growth_timeout_ms=args.growth_timeout_ms,
        ),
        headless=False if args.headful else None,
    )
    return 0 if result.ok else 1


__all__ = ["harvest_reviews", "_cli_entrypoint"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(_cli_entrypoint())
