from __future__ import annotations

from app.harvester.error_codes import ErrorCode
from app.harvester.logging_utils import RunEventLog
from app.harvester.pagination import PaginationDriver, PaginationOutcome
from conftest import FakeSession, unique_reviews


def _driver(session: FakeSession, events: RunEventLog | None = None) -> PaginationDriver:
    return PaginationDriver(
        session,
        post_trigger_delay_ms=1500,
        growth_timeout_ms=4000,
        events=events,
    )


def test_absent_control_is_exhausted_without_trigger() -> None:
    session = FakeSession([unique_reviews(0, 5)])
    driver = _driver(session)

    assert driver.advance() is PaginationOutcome.EXHAUSTED
    assert session.triggers == 0
    assert driver.triggers == 0
    assert session.waits == []


def test_growth_after_trigger() -> None:
    session = FakeSession([unique_reviews(0, 5), unique_reviews(0, 10)])
    driver = _driver(session)

    assert driver.advance() is PaginationOutcome.GREW
    assert driver.triggers == 1
    assert session.waits == [1500]


def test_enabled_control_without_growth_stalls() -> None:
    events = RunEventLog("t", "p1")
    session = FakeSession([unique_reviews(0, 5)], control_always=True)
    driver = _driver(session, events)

    assert driver.advance() is PaginationOutcome.STALLED
    assert driver.triggers == 1
    _, fields = events.events[-1]
    assert fields["state"] == "stalled"
    assert fields["error_code"] == ErrorCode.GROWTH_TIMEOUT
    assert fields["timeout_ms"] == 4000


def test_failed_trigger_stalls_without_counting() -> None:
    events = RunEventLog("t", "p1")
    session = FakeSession([unique_reviews(0, 5), unique_reviews(0, 10)], trigger_ok=False)
    driver = _driver(session, events)

    assert driver.advance() is PaginationOutcome.STALLED
    assert driver.triggers == 0
    assert session.waits == []
    _, fields = events.events[-1]
    assert fields["error_code"] == ErrorCode.TRIGGER_FAILED


def test_pagination_events_are_stamped_with_run() -> None:
    events = RunEventLog("run-7", "p1")
    driver = _driver(FakeSession([unique_reviews(0, 1)]), events)

    driver.advance()

    label, fields = events.events[-1]
    assert label == "pagination"
    assert fields["run"] == "run-7"
    assert fields["owner"] == "p1"
