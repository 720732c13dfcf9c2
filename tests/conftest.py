from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import pytest

from app.harvester import config, db
from app.harvester.extraction import DocumentSnapshot


def raw_review(
    author: Optional[str] = "Ali",
    stars: Any = 5,
    *,
    body: str = "Good phone",
    date_text: str = "2024-01-15",
    verified: bool = False,
    attachments: Sequence[str] = (),
) -> dict[str, Any]:
    return {
        "author": author,
        "stars": stars,
        "body": body,
        "date_text": date_text,
        "verified": verified,
        "attachments": list(attachments),
    }


def unique_reviews(start: int, count: int) -> list[dict[str, Any]]:
    return [raw_review(f"Reviewer {i}", date_text="2024-02-01") for i in range(start, start + count)]


class FakeSession:
    """Scriptable in-memory browser session.

    ``pages[i]`` is the full list of raw review items visible after ``i``
    successful loads. The control is available while a further page exists,
    unless ``control_always`` forces it on (stall modelling) or off.
    """

    def __init__(
        self,
        pages: Sequence[Sequence[dict[str, Any]]],
        *,
        control_always: Optional[bool] = None,
        container_present: Optional[Callable[[int], bool]] = None,
        extract_error_on_call: Optional[int] = None,
        trigger_ok: bool = True,
    ) -> None:
        self.pages = [list(page) for page in pages]
        self.index = 0
        self.control_always = control_always
        self.container_present = container_present
        self.extract_error_on_call = extract_error_on_call
        self.trigger_ok = trigger_ok
        self.extract_calls = 0
        self.triggers = 0
        self.waits: list[int] = []
        self.snapshots: list[str] = []

    def has_control(self, selector: str) -> bool:
        if self.control_always is not None:
            return self.control_always
        return self.index < len(self.pages) - 1

    def trigger(self, selector: str) -> bool:
        if not self.trigger_ok:
            return False
        self.triggers += 1
        if self.index < len(self.pages) - 1:
            self.index += 1
        return True

    def current_item_count(self, selector: str) -> int:
        return len(self.pages[self.index])

    def await_growth(self, selector: str, previous_count: int, timeout_ms: int) -> bool:
        return self.current_item_count(selector) > previous_count

    def wait(self, ms: int) -> None:
        self.waits.append(ms)

    def extract_current_document(self) -> DocumentSnapshot:
        self.extract_calls += 1
        if self.extract_error_on_call == self.extract_calls:
            raise RuntimeError("Execution context was destroyed")
        present = True
        if self.container_present is not None:
            present = self.container_present(self.extract_calls)
        items = tuple(self.pages[self.index]) if present else ()
        return DocumentSnapshot(container_present=present, items=items)

    def snapshot(self, label: str) -> Optional[Path]:
        self.snapshots.append(label)
        return None


class MemorySink:
    def __init__(self, ok: bool = True, error: Optional[Exception] = None) -> None:
        self.ok = ok
        self.error = error
        self.calls: list[tuple[str, list]] = []

    def store(self, owner_id: str, reviews: Sequence) -> bool:
        self.calls.append((owner_id, list(reviews)))
        if self.error is not None:
            raise self.error
        return self.ok


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture(autouse=True)
def temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "harvester.db"

    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "SNAPSHOT_DIR", data_dir / "snapshots")
    monkeypatch.setattr(config, "SUMMARY_FILE", data_dir / "last_summary.json")
    monkeypatch.setattr(config, "DB_PATH", db_path)
    monkeypatch.setattr(db, "DB_PATH", db_path)
    return data_dir
