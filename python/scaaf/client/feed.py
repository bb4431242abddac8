"""Incremental feed loading.

FeedPager walks a cursor-paged endpoint one page at a time and merges
pages into a single list. Items already seen (by id) are skipped, so a
row that moves between pages while the feed is open shows up once.
"""

from collections.abc import Callable
from typing import Any

import httpx

from scaaf.client.api import Page, ScaafApiError
from scaaf.logging import get_logger

logger = get_logger(__name__)

FetchPage = Callable[[str | None, int], Page]


class FeedPager:
    """Client-side state for one paged feed.

    Attributes:
        items: Merged items in arrival order.
        cursor: Cursor for the next page (None before the first load and
            after the last page).
        loading: True while a request is in flight.
        error: The last failure, cleared by the next successful load.
        exhausted: True once the server returned a null next_cursor.
    """

    def __init__(self, fetch_page: FetchPage, limit: int = 20):
        self.fetch_page = fetch_page
        self.limit = limit
        self.items: list[dict[str, Any]] = []
        self.cursor: str | None = None
        self.loading = False
        self.error: Exception | None = None
        self.exhausted = False
        self._seen: set[str] = set()

    def load_more(self) -> list[dict[str, Any]]:
        """Fetch the next page and return the newly merged items.

        A failed request leaves items and cursor untouched and records the
        failure in error; retry() then re-requests the same cursor.
        """
        if self.loading or self.exhausted:
            return []

        self.loading = True
        try:
            page = self.fetch_page(self.cursor, self.limit)
        except (ScaafApiError, httpx.HTTPError) as exc:
            self.error = exc
            logger.warning("feed_page_failed", cursor=self.cursor, error=str(exc))
            return []
        finally:
            self.loading = False

        self.error = None
        added = []
        for item in page.items:
            item_id = str(item["id"])
            if item_id in self._seen:
                continue
            self._seen.add(item_id)
            added.append(item)

        self.items.extend(added)
        self.cursor = page.next_cursor
        self.exhausted = page.next_cursor is None
        return added

    def retry(self) -> list[dict[str, Any]]:
        """Repeat the failed request; no-op when the last load succeeded."""
        if self.error is None:
            return []
        return self.load_more()

    def load_all(self) -> list[dict[str, Any]]:
        """Load until exhausted or a request fails."""
        while not self.exhausted:
            self.load_more()
            if self.error is not None:
                break
        return self.items

    def reset(self) -> None:
        self.items = []
        self.cursor = None
        self.error = None
        self.exhausted = False
        self._seen.clear()
