"""
Headless state for the explore screen: an infinite posts feed paged by
cursor, plus a debounced caption search.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from snapgram import api
from snapgram.config import get_settings
from snapgram.errors import SnapgramError

logger = logging.getLogger(__name__)

_UNSET = object()


def get_next_page_param(last_page: Optional[dict]) -> Optional[str]:
    """Cursor for the page after ``last_page``: its last document id."""
    if not last_page or not last_page.get("documents"):
        return None
    return last_page["documents"][-1]["$id"]


class InfinitePostsFeed:
    """Pages of posts fetched one cursor at a time."""

    def __init__(self, fetch_page: Callable[[Optional[str]], dict] | None = None):
        self._fetch_page = fetch_page or api.get_infinite_posts
        self.pages: list[dict] = []
        self._lock = threading.Lock()

    @property
    def next_page_param(self) -> Optional[str]:
        if not self.pages:
            return None
        return get_next_page_param(self.pages[-1])

    @property
    def has_next_page(self) -> bool:
        return not self.pages or self.next_page_param is not None

    @property
    def documents(self) -> list[dict]:
        return [doc for page in self.pages for doc in page.get("documents", [])]

    def fetch_next_page(self) -> Optional[dict]:
        """Fetch and append the next page; returns None when the feed is exhausted."""
        with self._lock:
            if not self.has_next_page:
                return None
            page = self._fetch_page(self.next_page_param)
            self.pages.append(page)
            return page

    def reset(self) -> None:
        with self._lock:
            self.pages.clear()


class Debouncer:
    """
    Delays ``callback`` until ``delay`` seconds pass without a new value.

    Only the most recent submitted value is delivered. Callbacks run on a
    ``threading.Timer`` thread.
    """

    def __init__(self, delay: float, callback: Callable[[Any], None]):
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Any = _UNSET
        self._generation = 0

    def submit(self, value: Any) -> None:
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._pending = value
            if self.delay <= 0:
                generation = self._generation
            else:
                self._timer = threading.Timer(
                    self.delay, self._fire, args=(self._generation,)
                )
                self._timer.daemon = True
                self._timer.start()
                return
        self._fire(generation)

    def flush(self) -> None:
        """Deliver the pending value now, if any."""
        with self._lock:
            self._cancel_timer()
            generation = self._generation
        self._fire(generation)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._pending = _UNSET

    @property
    def pending(self) -> bool:
        return self._pending is not _UNSET

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending is _UNSET:
                return
            value = self._pending
            self._pending = _UNSET
            self._timer = None
        self._callback(value)


class ExploreView(str, Enum):
    LOADING = "LOADING"
    SEARCHING = "SEARCHING"
    SEARCH_RESULTS = "SEARCH_RESULTS"
    NO_RESULTS = "NO_RESULTS"
    END_OF_POSTS = "END_OF_POSTS"
    POSTS = "POSTS"


@dataclass
class ExploreSnapshot:
    view: ExploreView
    posts: list[dict] = field(default_factory=list)
    show_loader: bool = False


class ExploreScreen:
    """Explore screen state driven by scroll and search input events."""

    def __init__(
        self,
        feed: InfinitePostsFeed | None = None,
        search: Callable[[str], dict] | None = None,
        debounce_seconds: float | None = None,
    ):
        if debounce_seconds is None:
            debounce_seconds = get_settings().search_debounce_seconds
        self.feed = feed or InfinitePostsFeed()
        self._search = search or api.search_posts
        self._debouncer = Debouncer(debounce_seconds, self._on_debounced_keyword)
        self._lock = threading.Lock()

        self.search_keyword = ""
        self.debounced_keyword = ""
        self.searched_posts: Optional[dict] = None
        self.is_search_fetching = False
        self.search_error: Optional[SnapgramError] = None

    def load(self) -> None:
        if not self.feed.pages:
            self.feed.fetch_next_page()

    def set_search_keyword(self, keyword: str) -> None:
        with self._lock:
            self.search_keyword = keyword
        self._debouncer.submit(keyword)

    def flush_search(self) -> None:
        self._debouncer.flush()

    def on_scroll_end(self) -> Optional[dict]:
        """The bottom of the feed came into view."""
        if self.search_keyword or not self.feed.has_next_page:
            return None
        return self.feed.fetch_next_page()

    def close(self) -> None:
        self._debouncer.cancel()

    def _on_debounced_keyword(self, keyword: str) -> None:
        with self._lock:
            self.debounced_keyword = keyword
            if not keyword:
                self.searched_posts = None
                self.is_search_fetching = False
                self.search_error = None
                return
            self.is_search_fetching = True
            self.search_error = None

        results: Optional[dict] = None
        error: Optional[SnapgramError] = None
        try:
            results = self._search(keyword)
        except SnapgramError as exc:
            logger.warning("Search for %r failed: %s", keyword, exc)
            error = exc

        with self._lock:
            # A newer keyword may have landed while this search ran.
            if keyword != self.debounced_keyword:
                return
            self.is_search_fetching = False
            self.searched_posts = results
            self.search_error = error

    def view(self) -> ExploreSnapshot:
        with self._lock:
            show_loader = self.feed.has_next_page and not self.search_keyword
            if not self.feed.pages:
                return ExploreSnapshot(ExploreView.LOADING)

            if self.search_keyword:
                if self.is_search_fetching:
                    return ExploreSnapshot(ExploreView.SEARCHING, show_loader=show_loader)
                documents = (self.searched_posts or {}).get("documents") or []
                if documents:
                    return ExploreSnapshot(
                        ExploreView.SEARCH_RESULTS, list(documents), show_loader
                    )
                return ExploreSnapshot(ExploreView.NO_RESULTS, show_loader=show_loader)

            documents = self.feed.documents
            if not documents:
                return ExploreSnapshot(ExploreView.END_OF_POSTS, show_loader=show_loader)
            return ExploreSnapshot(ExploreView.POSTS, documents, show_loader)
