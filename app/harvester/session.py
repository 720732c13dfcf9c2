"""Browser session collaborator for the harvest loop.

The loop only sees the :class:`BrowserSession` protocol. ``PlaywrightSession``
is the live implementation; Playwright errors are caught here and mapped to
booleans so nothing browser-specific leaks into the loop.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Protocol

from playwright.sync_api import Error as PWError
from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import TimeoutError as PWTimeout

from . import config
from .error_codes import NavigationError
from .extraction import DocumentSnapshot
from .logging_utils import _harvest_event
from .selectors import PRICEOYE_SELECTORS, ReviewPageSelectors
from .utils import log_line, sanitize_filename


class BrowserSession(Protocol):
    def has_control(self, selector: str) -> bool: ...

    def trigger(self, selector: str) -> bool: ...

    def current_item_count(self, selector: str) -> int: ...

    def await_growth(self, selector: str, previous_count: int, timeout_ms: int) -> bool: ...

    def wait(self, ms: int) -> None: ...

    def extract_current_document(self) -> DocumentSnapshot: ...

    def snapshot(self, label: str) -> Optional[Path]: ...


_EXTRACT_SCRIPT = """
(sel) => {
    const container = document.querySelector(sel.container);
    const boxes = Array.from(document.querySelectorAll(sel.item));
    const items = boxes.map((box) => {
        const nameEl = box.querySelector(sel.author);
        const stars = Array.from(box.querySelectorAll(sel.stars))
            .filter((img) => (img.getAttribute('src') || '').includes(sel.filledStarMarker));
        const bodyEl = box.querySelector(sel.body);
        const dateEl = box.querySelector(sel.date);
        const attachments = Array.from(box.querySelectorAll(sel.attachments))
            .map((img) => img.getAttribute('src') || img.getAttribute('data-src'))
            .filter((src) => !!src);
        return {
            author: nameEl ? nameEl.textContent.trim() : null,
            stars: stars.length,
            body: bodyEl ? bodyEl.textContent.trim() : '',
            date_text: dateEl ? dateEl.textContent.trim() : '',
            verified: box.querySelector(sel.verified) !== null,
            attachments: attachments,
        };
    });
    return { container_present: container !== null, items: items };
}
"""

_CONTROL_SCRIPT = """
(selector) => {
    const btn = document.querySelector(selector);
    return !!btn && !btn.disabled && btn.offsetParent !== null;
}
"""

_GROWTH_SCRIPT = """
([selector, previous]) => document.querySelectorAll(selector).length > previous
"""


def reviews_url_for(product_url: str) -> str:
    """Return the dedicated reviews page URL for ``product_url``."""

    base = (product_url or "").strip()
    return f"{base}reviews" if base.endswith("/") else f"{base}/reviews"


def _is_target_closed_error(exc: Exception) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc)
    return any(
        marker in message
        for marker in (
            "Target closed",
            "Target crashed",
            "has been closed",
            "Execution context was destroyed",
        )
    )


class PlaywrightSession:
    """:class:`BrowserSession` backed by a Playwright sync ``Page``."""

    def __init__(
        self,
        page: Page,
        selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
        snapshot_dir: Optional[Path] = None,
    ) -> None:
        self.page = page
        self.selectors = selectors
        self.snapshot_dir = snapshot_dir or config.SNAPSHOT_DIR

    def has_control(self, selector: str) -> bool:
        try:
            return bool(self.page.evaluate(_CONTROL_SCRIPT, selector))
        except PWError as exc:
            # The script already answers False for an absent or hidden control.
            _harvest_event(
                "error",
                phase="pagination",
                step="has_control_error",
                selector=selector,
                target_closed=_is_target_closed_error(exc),
                error=str(exc),
            )
            raise

    def trigger(self, selector: str) -> bool:
        try:
            self.page.click(selector, timeout=config.CLICK_TIMEOUT_MS)
            return True
        except PWTimeout as exc:
            _harvest_event("pagination", step="click_timeout", selector=selector, error=str(exc))
            return False
        except PWError as exc:
            _harvest_event("pagination", step="click_error", selector=selector, error=str(exc))
            return False

    def current_item_count(self, selector: str) -> int:
        return int(self.page.locator(selector).count())

    def await_growth(self, selector: str, previous_count: int, timeout_ms: int) -> bool:
        try:
            self.page.wait_for_function(
                _GROWTH_SCRIPT, arg=[selector, previous_count], timeout=timeout_ms
            )
            return True
        except PWTimeout:
            return False

    def wait(self, ms: int) -> None:
        if ms and ms > 0 and not self.page.is_closed():
            self.page.wait_for_timeout(ms)

    def extract_current_document(self) -> DocumentSnapshot:
        sel = self.selectors
        data = self.page.evaluate(
            _EXTRACT_SCRIPT,
            {
                "container": sel.container,
                "item": sel.item,
                "author": sel.author,
                "stars": sel.stars,
                "filledStarMarker": sel.filled_star_marker,
                "body": sel.body,
                "date": sel.date,
                "verified": sel.verified,
                "attachments": sel.attachments,
            },
        )
        if not isinstance(data, dict):
            return DocumentSnapshot.missing()
        return DocumentSnapshot(
            container_present=bool(data.get("container_present")),
            items=tuple(item for item in data.get("items") or () if isinstance(item, dict)),
        )

    def snapshot(self, label: str) -> Optional[Path]:
        """Save a full-page screenshot and the current HTML for debugging."""

        stamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        stem = f"{sanitize_filename(label)}-{stamp}"
        png_path = self.snapshot_dir / f"{stem}.png"
        try:
            png_path.parent.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(png_path), full_page=True)
            (self.snapshot_dir / f"{stem}.html").write_text(self.page.content(), encoding="utf-8")
            log_line(f"Saved debug snapshot -> {png_path}")
            return png_path
        except Exception as exc:  # noqa: BLE001
            log_line(f"Failed to save debug snapshot: {exc}")
            return None


def _wait_for_container(page: Page, selectors: ReviewPageSelectors) -> None:
    try:
        page.wait_for_selector(selectors.container, timeout=config.CONTAINER_WAIT_MS)
    except PWTimeout:
        log_line("Review container not found in time; extracting anyway.")
        _harvest_event("warn", step="container_wait_timeout", selector=selectors.container)
    if config.CONTAINER_SETTLE_MS:
        page.wait_for_timeout(config.CONTAINER_SETTLE_MS)


@contextmanager
def open_playwright_session(
    url: str,
    *,
    selectors: ReviewPageSelectors = PRICEOYE_SELECTORS,
    headless: Optional[bool] = None,
) -> Iterator[PlaywrightSession]:
    """Launch Chromium, open ``url`` and yield a ready :class:`PlaywrightSession`.

    Raises :class:`NavigationError` when the page cannot be opened.
    """

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=config.HEADLESS if headless is None else headless)
        context = browser.new_context(user_agent=config.USER_AGENT, locale="en-US")
        try:
            page = context.new_page()
            _harvest_event("nav", step="goto", url=url)
            try:
                page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=config.NAV_TIMEOUT_SECONDS * 1000,
                )
            except (PWTimeout, PWError) as exc:
                _harvest_event("error", phase="nav", step="goto_failed", url=url, error=str(exc))
                raise NavigationError(f"goto({url!r}) failed: {exc}") from exc
            _wait_for_container(page, selectors)
            yield PlaywrightSession(page, selectors)
        finally:
            context.close()
            browser.close()


__all__ = [
    "BrowserSession",
    "PlaywrightSession",
    "open_playwright_session",
    "reviews_url_for",
]
