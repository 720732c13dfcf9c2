from __future__ import annotations

import json
import threading
from contextlib import contextmanager

import pytest
from playwright.sync_api import Error as PWError

from app.harvester import config, db, run
from app.harvester.error_codes import ErrorCode, NavigationError
from app.harvester.loop import LoopConfig
from app.harvester.models import CompletionReason
from conftest import FakeSession, MemorySink, unique_reviews


def _factory_for(session: FakeSession, opened: list[str]):
    @contextmanager
    def _factory(url, *, selectors, headless):
        opened.append(url)
        yield session

    return _factory


def _fast_loop(max_iterations: int = 20) -> LoopConfig:
    return LoopConfig(max_iterations=max_iterations, post_trigger_delay_ms=0, growth_timeout_ms=100)


def test_harvest_records_run_and_persists() -> None:
    opened: list[str] = []
    session = FakeSession([unique_reviews(0, 5), unique_reviews(0, 9)])

    result = run.harvest_reviews(
        "prod-1",
        "https://priceoye.pk/mobiles/x/phone-1",
        loop_config=_fast_loop(),
        session_factory=_factory_for(session, opened),
    )

    assert opened == ["https://priceoye.pk/mobiles/x/phone-1/reviews"]
    assert result.reason is CompletionReason.EXHAUSTED
    assert result.persisted is True
    assert db.get_owner_review_count("prod-1") == 9

    stored = db.get_run(db.latest_run_id())
    assert stored["status"] == "completed"
    assert stored["reason"] == "exhausted"
    assert stored["records"] == 9
    assert stored["trigger"] == "cli"
    assert stored["params"]["max_iterations"] == 20

    summary = json.loads(config.SUMMARY_FILE.read_text(encoding="utf-8"))
    assert summary["records"] == 9
    assert summary["run_id"] == stored["id"]


def test_harvest_uses_given_sink() -> None:
    sink = MemorySink()

    result = run.harvest_reviews(
        "prod-2",
        "https://priceoye.pk/p/2/",
        sink=sink,
        loop_config=_fast_loop(),
        session_factory=_factory_for(FakeSession([unique_reviews(0, 3)]), []),
    )

    assert result.persisted is True
    assert len(sink.calls) == 1
    assert db.get_owner_review_count("prod-2") is None


def test_empty_result_takes_snapshot() -> None:
    session = FakeSession([[]])

    result = run.harvest_reviews(
        "prod-3",
        "https://priceoye.pk/p/3",
        sink=MemorySink(),
        loop_config=_fast_loop(),
        session_factory=_factory_for(session, []),
    )

    assert result.reviews == []
    assert session.snapshots == ["no-reviews-prod-3"]


def test_navigation_failure_becomes_failed_run() -> None:
    @contextmanager
    def _unreachable(url, *, selectors, headless):
        raise NavigationError(f"goto failed for {url}")
        yield  # pragma: no cover

    result = run.harvest_reviews(
        "prod-4",
        "https://priceoye.pk/p/4",
        sink=MemorySink(),
        loop_config=_fast_loop(),
        session_factory=_unreachable,
    )

    assert result.reason is CompletionReason.FAILED
    assert result.error_code == ErrorCode.NAVIGATION_FAILED
    assert not result.ok
    stored = db.get_run(db.latest_run_id())
    assert stored["status"] == "failed"
    assert stored["error_code"] == ErrorCode.NAVIGATION_FAILED


def test_browser_launch_failure_finishes_the_run() -> None:
    @contextmanager
    def _no_browser(url, *, selectors, headless):
        raise PWError("Executable doesn't exist at /ms-playwright/chromium/chrome")
        yield  # pragma: no cover

    result = run.harvest_reviews(
        "prod-7",
        "https://priceoye.pk/p/7",
        sink=MemorySink(),
        loop_config=_fast_loop(),
        session_factory=_no_browser,
    )

    assert result.reason is CompletionReason.FAILED
    assert result.error_code == ErrorCode.INTERNAL
    assert "Executable doesn't exist" in result.error
    stored = db.get_run(db.latest_run_id())
    assert stored["status"] == "failed"
    assert stored["ended_at"]
    assert stored["error_code"] == ErrorCode.INTERNAL


def test_session_close_failure_keeps_partial_reviews() -> None:
    @contextmanager
    def _crashes_on_close(url, *, selectors, headless):
        yield FakeSession([unique_reviews(0, 4)])
        raise PWError("Browser has been closed")

    result = run.harvest_reviews(
        "prod-8",
        "https://priceoye.pk/p/8",
        sink=MemorySink(),
        loop_config=_fast_loop(),
        session_factory=_crashes_on_close,
    )

    assert result.reason is CompletionReason.FAILED
    assert len(result.reviews) == 4
    assert db.get_run(db.latest_run_id())["records"] == 4


def test_cancel_signal_does_not_mutate_callers_config() -> None:
    shared = _fast_loop()
    cancel = threading.Event()

    run.harvest_reviews(
        "prod-9",
        "https://priceoye.pk/p/9",
        sink=MemorySink(),
        loop_config=shared,
        session_factory=_factory_for(FakeSession([unique_reviews(0, 2)]), []),
        cancel_signal=cancel,
    )

    assert shared.cancel_signal is None


def test_truncated_run_is_recorded() -> None:
    pages = [unique_reviews(0, 5 * (n + 1)) for n in range(10)]

    result = run.harvest_reviews(
        "prod-5",
        "https://priceoye.pk/p/5",
        sink=MemorySink(),
        loop_config=_fast_loop(max_iterations=3),
        session_factory=_factory_for(FakeSession(pages), []),
        trigger="ui",
        entrypoint="ui",
    )

    assert result.truncated is True
    assert len(result.reviews) == 15
    stored = db.get_run(db.latest_run_id())
    assert stored["truncated"] is True
    assert stored["trigger"] == "ui"


def test_invalid_loop_config_raises() -> None:
    with pytest.raises(ValueError):
        run.harvest_reviews(
            "prod-6",
            "https://priceoye.pk/p/6",
            sink=MemorySink(),
            loop_config=LoopConfig(max_iterations=0),
            session_factory=_factory_for(FakeSession([[]]), []),
        )
