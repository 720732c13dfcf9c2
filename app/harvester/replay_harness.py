"""Offline replay harness for saved review pages.

Replays a sequence of captured HTML documents through the harvest loop
without Playwright: each successful "show more" click advances to the next
document. Useful for checking selectors and dedup against pages saved with
``PlaywrightSession.snapshot``.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from . import config
from .config_validation import validate_runtime_config
from .extraction import DocumentSnapshot, snapshot_from_html
from .logging_utils import RunEventLog, _harvest_event
from .loop import LoopConfig, run_harvest_loop
from .models import HarvestResult
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors
from .sinks import SqliteReviewSink
from .utils import log_line, sanitize_filename


class ReplaySession:
    """:class:`~app.harvester.session.BrowserSession` over saved HTML pages."""

    def __init__(
        self,
        documents: Sequence[str],
        selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
        snapshot_dir: Optional[Path] = None,
    ) -> None:
        if not documents:
            raise ValueError("ReplaySession needs at least one document")
        self.documents = list(documents)
        self.selectors = selectors
        self.snapshot_dir = snapshot_dir
        self.index = 0
        self.waited_ms: List[int] = []
        self._soups: dict[int, BeautifulSoup] = {}

    def _soup(self) -> BeautifulSoup:
        if self.index not in self._soups:
            self._soups[self.index] = BeautifulSoup(self.documents[self.index], "html5lib")
        return self._soups[self.index]

    def has_control(self, selector: str) -> bool:
        control = self._soup().select_one(selector)
        if control is None:
            return False
        if control.has_attr("disabled") or control.has_attr("hidden"):
            return False
        style = (control.get("style") or "").replace(" ", "").lower()
        return "display:none" not in style and "visibility:hidden" not in style

    def trigger(self, selector: str) -> bool:
        if not self.has_control(selector):
            return False
        if self.index < len(self.documents) - 1:
            self.index += 1
        return True

    def current_item_count(self, selector: str) -> int:
        return len(self._soup().select(selector))

    def await_growth(self, selector: str, previous_count: int, timeout_ms: int) -> bool:
        return self.current_item_count(selector) > previous_count

    def wait(self, ms: int) -> None:
        self.waited_ms.append(ms)

    def extract_current_document(self) -> DocumentSnapshot:
        return snapshot_from_html(self.documents[self.index], self.selectors)

    def snapshot(self, label: str) -> Optional[Path]:
        if self.snapshot_dir is None:
            return None
        path = self.snapshot_dir / f"{sanitize_filename(label)}-replay-{self.index}.html"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.documents[self.index], encoding="utf-8")
        return path


def load_replay_documents(fixtures_path: Path) -> List[str]:
    """Return HTML documents from a file or a directory of ``*.html`` files."""

    fixtures_path = Path(fixtures_path)
    if fixtures_path.is_dir():
        files = sorted(fixtures_path.glob("*.html"))
    else:
        files = [fixtures_path]
    return [path.read_text(encoding="utf-8") for path in files]


@dataclass
class ReplayConfig:
    fixtures_path: Path
    owner_id: str = "replay"
    persist: bool = False
    max_iterations: Optional[int] = None


def run_replay(config_obj: ReplayConfig) -> HarvestResult:
    loop_config = LoopConfig.from_config(
        max_iterations=config_obj.max_iterations, post_trigger_delay_ms=0
    )
    validate_runtime_config("replay", loop_config=loop_config)
    documents = load_replay_documents(config_obj.fixtures_path)

    _harvest_event(
        "replay",
        phase="start",
        fixtures=str(config_obj.fixtures_path),
        documents=len(documents),
        persist=config_obj.persist,
    )

    session = ReplaySession(documents, snapshot_dir=config.SNAPSHOT_DIR)
    sink = SqliteReviewSink() if config_obj.persist else None
    result = run_harvest_loop(
        session,
        config_obj.owner_id,
        loop_config=loop_config,
        sink=sink,
        events=RunEventLog(f"replay-{config_obj.owner_id}", config_obj.owner_id),
    )

    _harvest_event("replay", phase="end", **result.summary())
    return result


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Replay saved review pages offline.")
    parser.add_argument("fixtures", help="HTML file or directory of ordered *.html pages")
    parser.add_argument("--owner-id", default="replay")
    parser.add_argument("--persist", action="store_true", default=False)
    parser.add_argument("--max-iterations", type=int, default=None)
    args = parser.parse_args()

    outcome = run_replay(
        ReplayConfig(
            fixtures_path=Path(args.fixtures),
            owner_id=args.owner_id,
            persist=args.persist,
            max_iterations=args.max_iterations,
        )
    )
    log_line(f"[REPLAY] {outcome.summary()}")
