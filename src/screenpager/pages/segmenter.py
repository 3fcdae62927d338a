"""Groups accepted screenshots into pages.

A page is opened when recording starts and at every new-screen boundary.
At most one page is active at any time; closing a page marks it complete
and stamps its end time. Page indices are 1-based and never reused
within a session, even when a page ends up empty.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime

from screenpager.domain.models import Page, PageStatus, Screenshot

logger = logging.getLogger(__name__)

TEXT_SEPARATOR = "\n\n"


class SegmenterState(str, enum.Enum):
    NO_ACTIVE_PAGE = "no_active_page"
    PAGE_ACTIVE = "page_active"


def combine_text(screenshots: list[Screenshot]) -> str:
    """Join the non-blank extracted texts in arrival order."""
    return TEXT_SEPARATOR.join(
        s.extracted_text.strip()
        for s in screenshots
        if s.extracted_text and s.extracted_text.strip()
    )


class PageSegmenter:
    """State machine that owns the pages of one recording session."""

    def __init__(self) -> None:
        self._pages: list[Page] = []
        self._active: Page | None = None

    @property
    def state(self) -> SegmenterState:
        if self._active is None:
            return SegmenterState.NO_ACTIVE_PAGE
        return SegmenterState.PAGE_ACTIVE

    @property
    def pages(self) -> list[Page]:
        return list(self._pages)

    @property
    def active_page(self) -> Page | None:
        return self._active

    def start_recording(self) -> Page:
        """Open the first page of a session."""
        if self._active is not None:
            logger.warning("start_recording with page %d still active", self._active.index)
            self._close_active()
        return self._open_page()

    def new_screen_boundary(self) -> tuple[Page | None, Page]:
        """Close the active page and open the next one.

        Returns:
            (closed page or None, newly opened page)
        """
        closed = self._close_active()
        opened = self._open_page()
        return closed, opened

    def append_screenshot(self, screenshot: Screenshot, page_id: str | None = None) -> Page | None:
        """Append a screenshot to the active page.

        A page is opened first if none is active. When ``page_id`` is
        given and no longer names the active page, the screenshot is
        dropped and None is returned.
        """
        if self._active is None:
            if page_id is not None:
                logger.debug("Dropping screenshot %s for closed page %s", screenshot.id, page_id)
                return None
            self._open_page()

        page = self._active
        if page_id is not None and page.id != page_id:
            logger.debug("Dropping screenshot %s for closed page %s", screenshot.id, page_id)
            return None

        page.screenshots.append(screenshot)
        page.combined_text = combine_text(page.screenshots)
        return page

    def stop_recording(self) -> Page | None:
        """Close the active page, if any."""
        return self._close_active()

    def _open_page(self) -> Page:
        page = Page(
            id=uuid.uuid4().hex,
            index=len(self._pages) + 1,
            start_time=datetime.now(),
        )
        self._pages.append(page)
        self._active = page
        logger.info("Opened page %d", page.index)
        return page

    def _close_active(self) -> Page | None:
        page = self._active
        if page is None:
            return None
        page.status = PageStatus.COMPLETE
        page.end_time = datetime.now()
        page.combined_text = combine_text(page.screenshots)
        self._active = None
        logger.info(
            "Closed page %d (%d screenshots)", page.index, len(page.screenshots)
        )
        return page
