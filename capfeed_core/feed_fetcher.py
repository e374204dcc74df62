"""
EAS Station - Emergency Alert System
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of EAS Station.

EAS Station is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

You should have received a copy of both licenses with this software.
For more information, see LICENSE and LICENSE-COMMERCIAL files.

IMPORTANT: This software cannot be rebranded or have attribution removed.
See NOTICE file for complete terms.

Repository: https://github.com/KR8MER/eas-station
"""

from __future__ import annotations

"""Per-feed polling worker.

A :class:`FeedFetcher` owns one feed URL. Each cycle downloads the feed,
decodes it with the configured character encoding, parses it with
``feedparser`` and replaces its item list in one step. Outcomes are reported
as :class:`FeedEvent` records on the event queue supplied by the owner; the
next cycle is always scheduled after the current reload interval, whether
the fetch succeeded or not.
"""

import codecs
import logging
import math
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

import feedparser
import requests

from capfeed_utils.feed_settings import (
    DEFAULT_ENCODING,
    MAX_TTL_INTERVAL_MS,
    MIN_RELOAD_INTERVAL_MS,
)
from capfeed_utils.text import clean_description
from capfeed_utils.time import parse_feed_datetime
from .errors import FeedError, FeedErrorKind, FeedParseError, FetchStatusError
from .models import AlertStub
from .transport import FetchedDocument, Fetcher, check_fetch_status

REQUEST_HEADERS = {
    'Cache-Control': 'max-age=0, no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
}

DATE_FIELDS = ('published', 'updated')


class FetcherState(Enum):
    """Lifecycle of a single fetch cycle."""
    IDLE = 'idle'
    FETCHING = 'fetching'
    PARSING = 'parsing'
    ERROR = 'error'


class FeedEventKind(Enum):
    ITEMS_RECEIVED = 'items_received'
    FETCH_FAILED = 'fetch_failed'


@dataclass(frozen=True)
class FeedEvent:
    """Notification sent from a fetcher to its coordinator."""
    kind: FeedEventKind
    feed_url: str
    error: Optional[FeedError] = None


class FeedFetcher:
    """Poll one CAP feed on its own reload timer."""

    def __init__(
        self,
        url: str,
        reload_interval_ms: int,
        fetcher: Fetcher,
        events: 'queue.Queue[FeedEvent]',
        encoding: str = DEFAULT_ENCODING,
        log_feed_warnings: bool = False,
        use_cors_proxy: bool = True,
        logger: Optional[logging.Logger] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.url = url
        self.fetcher = fetcher
        self.events = events
        self.encoding = encoding or DEFAULT_ENCODING
        self.log_feed_warnings = log_feed_warnings
        self.use_cors_proxy = use_cors_proxy
        self.logger = logger or logging.getLogger(__name__)
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._items: List[AlertStub] = []
        self._reload_interval_ms = max(MIN_RELOAD_INTERVAL_MS, int(reload_interval_ms))
        self._timer = None
        self._stopped = False
        self.state = FetcherState.IDLE

    # ------------------------------------------------------------------ public

    @property
    def reload_interval_ms(self) -> int:
        return self._reload_interval_ms

    def items(self) -> List[AlertStub]:
        """Items from the most recently completed parse."""
        with self._lock:
            return list(self._items)

    def set_reload_interval(self, interval_ms: int) -> None:
        """Lower the reload interval; requests for a slower rate are ignored."""
        with self._lock:
            if MIN_RELOAD_INTERVAL_MS <= interval_ms < self._reload_interval_ms:
                self._reload_interval_ms = int(interval_ms)
                self.logger.info("Reload interval for %s lowered to %d ms", self.url, interval_ms)

    def start_fetch(self) -> None:
        """Cancel any pending refetch and fetch in the background now."""
        self._cancel_timer()
        thread = threading.Thread(
            target=self.fetch_now,
            daemon=True,
            name=f"FeedFetch[{self.url}]",
        )
        thread.start()

    def fetch_now(self, schedule: bool = True) -> bool:
        """Run one fetch cycle on the calling thread.

        Returns True when the feed was fetched and parsed.
        """
        self._cancel_timer()
        self.state = FetcherState.FETCHING
        try:
            try:
                document = check_fetch_status(self.fetcher.fetch(self.url, headers=REQUEST_HEADERS))
            except (FetchStatusError, requests.exceptions.RequestException) as exc:
                self._fail(FeedError.from_exception(FeedErrorKind.FEED_TRANSPORT_FAILURE, self.url, exc))
                return False
            except Exception as exc:
                self.logger.error("Unexpected error fetching %s: %s", self.url, exc, exc_info=True)
                self._fail(FeedError.from_exception(FeedErrorKind.FEED_TRANSPORT_FAILURE, self.url, exc))
                return False

            self.state = FetcherState.PARSING
            try:
                items = self._parse_document(document)
            except FeedParseError as exc:
                self._fail(FeedError.from_exception(FeedErrorKind.FEED_PARSE_FAILURE, self.url, exc))
                return False
            except Exception as exc:
                self.logger.error("Unexpected error parsing %s: %s", self.url, exc, exc_info=True)
                self._fail(FeedError.from_exception(FeedErrorKind.FEED_PARSE_FAILURE, self.url, exc))
                return False

            with self._lock:
                self._items = items
            self.state = FetcherState.IDLE
            self.logger.info("Received %d item(s) from %s", len(items), self.url)
            self.events.put(FeedEvent(FeedEventKind.ITEMS_RECEIVED, self.url))
            return True
        finally:
            if schedule:
                self.schedule_timer()

    def broadcast_items(self) -> None:
        """Re-announce the current items without refetching."""
        with self._lock:
            count = len(self._items)
        if count <= 0:
            self.logger.info("No items to broadcast yet for %s", self.url)
            return
        self.logger.info("Broadcasting %d item(s) for %s", count, self.url)
        self.events.put(FeedEvent(FeedEventKind.ITEMS_RECEIVED, self.url))

    def filter_items(self, keep: Callable[[AlertStub], bool]) -> int:
        """Drop items for which ``keep`` is false; returns the number removed."""
        with self._lock:
            retained = [item for item in self._items if keep(item)]
            removed = len(self._items) - len(retained)
            self._items = retained
        return removed

    def schedule_timer(self) -> None:
        """Schedule the next fetch after the current reload interval."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._stopped:
                return
            timer = self._timer_factory(self._reload_interval_ms / 1000.0, self.fetch_now)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
        self._cancel_timer()

    # ----------------------------------------------------------------- private

    def _cancel_timer(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fail(self, error: FeedError) -> None:
        self.state = FetcherState.ERROR
        self.logger.error("CAP feed error. Could not fetch feed %s: %s", self.url, error.message or error)
        self.events.put(FeedEvent(FeedEventKind.FETCH_FAILED, self.url, error))
        self.state = FetcherState.IDLE

    def _decode(self, document: FetchedDocument) -> str:
        try:
            decoder = codecs.getincrementaldecoder(self.encoding)(errors='replace')
        except LookupError as exc:
            raise FeedParseError(f"Unknown feed encoding {self.encoding!r}") from exc
        parts = [decoder.decode(chunk) for chunk in document.iter_chunks()]
        parts.append(decoder.decode(b'', final=True))
        return ''.join(parts)

    def _parse_document(self, document: FetchedDocument) -> List[AlertStub]:
        text = self._decode(document)
        # The body is already decoded; tell feedparser it is now UTF-8 so a
        # stale encoding declaration in the XML prolog is overridden.
        parsed = feedparser.parse(
            text.encode('utf-8'),
            response_headers={'content-type': 'application/rss+xml; charset=utf-8'},
        )
        if parsed.get('bozo') and not parsed.entries and not parsed.feed:
            raise FeedParseError(f"Unable to parse feed: {parsed.get('bozo_exception')}")

        ttl = parsed.feed.get('ttl')
        if ttl is not None:
            self._apply_ttl(ttl)

        items: List[AlertStub] = []
        for entry in parsed.entries:
            item = self._build_item(entry)
            if item is not None:
                items.append(item)
        return items

    def _apply_ttl(self, minutes: Any) -> None:
        try:
            ttl_ms = float(minutes) * 60 * 1000
        except (TypeError, ValueError):
            ttl_ms = math.nan
        if math.isnan(ttl_ms):
            self.logger.warning("Feed ttl is not a valid integer=%s for url %s", minutes, self.url)
            return
        ttl_ms = int(max(0.0, min(ttl_ms, MAX_TTL_INTERVAL_MS)))
        with self._lock:
            if ttl_ms > self._reload_interval_ms:
                self._reload_interval_ms = ttl_ms
                self.logger.info("Reload interval set to ttl=%d ms for url %s", ttl_ms, self.url)

    def _build_item(self, entry: Any) -> Optional[AlertStub]:
        title = (entry.get('title') or '').strip()
        description = entry.get('description') or entry.get('summary') or _content_value(entry) or ''

        published_raw = ''
        published_at = None
        for name in DATE_FIELDS:
            if entry.get(name):
                published_raw = str(entry.get(name))
                published_at = parse_feed_datetime(entry.get(f'{name}_parsed')) or parse_feed_datetime(published_raw)
                break

        if not title and not published_raw:
            if self.log_feed_warnings:
                self.logger.warning(
                    "Can't parse feed item from %s: title=%r description=%r pubdate=%r",
                    self.url,
                    title,
                    description,
                    published_raw,
                )
            return None

        return AlertStub(
            title=title,
            description=clean_description(description),
            published_at=published_at,
            published_raw=published_raw,
            detail_url=_detail_url(entry),
            guid=(entry.get('id') or entry.get('guid') or '').strip(),
            category=_category_value(entry),
            requires_proxy=self.use_cors_proxy,
        )


def _detail_url(entry: Any) -> str:
    # feedparser copies a permalink <guid> into link when the item has none
    link = '' if entry.get('guidislink') else entry.get('link')
    return (entry.get('url') or link or '').strip()

def _content_value(entry: Any) -> str:
    for content in entry.get('content') or []:
        value = content.get('value') if hasattr(content, 'get') else None
        if value:
            return value
    return ''


def _category_value(entry: Any) -> str:
    category = entry.get('category')
    if category:
        return str(category).strip()
    for tag in entry.get('tags') or []:
        term = tag.get('term') if hasattr(tag, 'get') else None
        if term:
            return str(term).strip()
    return ''
