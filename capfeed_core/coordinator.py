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

"""Feed coordinator: owns the fetchers and assembles the broadcast set.

Every completed feed cycle triggers one coordinator cycle:

1. sweep all feeds for items whose CAP detail is still missing,
2. resolve those details concurrently and wait for every one to settle,
3. drop items outside the configured reference point (when set),
4. hand ``{feed_url: [items]}`` to the consumer.

Fetch and detail failures are reported to the consumer as classified
:class:`FeedError` values and never stop the cycle.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from capfeed_utils.feed_settings import FeedRegistration, PollerOptions
from .cap_detail import CAPDetailResolver
from .errors import FeedError, FeedErrorKind
from .feed_fetcher import FeedEvent, FeedEventKind, FeedFetcher
from .geo_filter import is_alert_in_area
from .models import AlertStub
from .transport import CachedFetcher, Fetcher, RequestsFetcher

FEED_ITEMS = 'FEED_ITEMS'
FEED_ERROR = 'FEED_ERROR'

DEFAULT_DETAIL_WORKERS = 8

FeedItems = Dict[str, List[AlertStub]]


def is_valid_feed_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


class FeedCoordinator:
    """Own a set of :class:`FeedFetcher` objects and merge their output."""

    def __init__(
        self,
        options: PollerOptions,
        on_items: Optional[Callable[[FeedItems], None]] = None,
        on_error: Optional[Callable[[FeedError], None]] = None,
        fetcher: Optional[Fetcher] = None,
        logger: Optional[logging.Logger] = None,
        max_detail_workers: int = DEFAULT_DETAIL_WORKERS,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.options = options
        self.logger = logger or logging.getLogger(__name__)
        self.on_items = on_items
        self.on_error = on_error
        self._timer_factory = timer_factory

        http = fetcher if fetcher is not None else RequestsFetcher(timeout=options.request_timeout)
        if options.cache_feed:
            self.logger.info("Serving CAP requests through on-disk cache at %s", options.cache_dir)
            http = CachedFetcher(http, cache_dir=options.cache_dir, ttl_ms=options.cache_ttl_ms)
        self.http = http
        self.detail_resolver = CAPDetailResolver(self.http)

        self.events: 'queue.Queue[Optional[FeedEvent]]' = queue.Queue()
        self._fetchers: Dict[str, FeedFetcher] = {}
        self._fetchers_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_detail_workers, thread_name_prefix='CAPDetail')

        self._running = False
        self._worker_thread: Optional[threading.Thread] = None

        self.stats = {
            'cycles': 0,
            'details_resolved': 0,
            'detail_failures': 0,
            'fetch_failures': 0,
            'items_filtered': 0,
        }

    # -------------------------------------------------------------- lifecycle

    def start(self) -> None:
        """Start the event worker and register every configured feed."""
        if self._running:
            self.logger.warning("Feed coordinator is already running")
            return

        self._running = True
        self._worker_thread = threading.Thread(target=self._run_loop, daemon=True, name='FeedCoordinator')
        self._worker_thread.start()
        self.logger.info("Feed coordinator started")

        for registration in self.options.feeds:
            self.add_feed(registration)

    def stop(self) -> None:
        """Stop every fetcher timer and the event worker."""
        for fetcher in self.fetchers().values():
            fetcher.stop()

        if self._running:
            self._running = False
            self.events.put(None)
            if self._worker_thread:
                self._worker_thread.join(timeout=5)
            self._worker_thread = None

        self._executor.shutdown(wait=False)
        close = getattr(self.http, 'close', None)
        if close is not None:
            close()
        self.logger.info("Feed coordinator stopped")

    def _run_loop(self) -> None:
        while self._running:
            event = self.events.get()
            if event is None:
                break
            self.handle_event(event)

    # ------------------------------------------------------------ registration

    def add_feed(self, registration: FeedRegistration, start: bool = True) -> Optional[FeedFetcher]:
        """Register a feed, or reuse the fetcher already polling its URL."""
        url = (registration.url or '').strip()
        if not is_valid_feed_url(url):
            self.logger.error("CAP feed error. Malformed feed url: %r", url)
            self._emit_error(FeedError(FeedErrorKind.MALFORMED_URL, url=url, message='Malformed feed url'))
            return None

        reload_interval = registration.resolved_reload_interval(self.options.reload_interval_ms)

        with self._fetchers_lock:
            fetcher = self._fetchers.get(url)
            created = fetcher is None
            if created:
                fetcher = FeedFetcher(
                    url,
                    reload_interval,
                    fetcher=self.http,
                    events=self.events,
                    encoding=registration.resolved_encoding(),
                    log_feed_warnings=self.options.log_feed_warnings,
                    use_cors_proxy=registration.resolved_use_cors_proxy(),
                    timer_factory=self._timer_factory,
                )
                self._fetchers[url] = fetcher

        if created:
            self.logger.info("Create new feed fetcher for url: %s - Interval: %d ms", url, reload_interval)
            if start:
                fetcher.start_fetch()
        else:
            self.logger.info("Use existing feed fetcher for url: %s", url)
            fetcher.set_reload_interval(reload_interval)
            fetcher.broadcast_items()

        return fetcher

    def fetchers(self) -> Dict[str, FeedFetcher]:
        """Snapshot of the URL to fetcher map."""
        with self._fetchers_lock:
            return dict(self._fetchers)

    # ------------------------------------------------------------------ events

    def process_pending_events(self) -> int:
        """Handle queued events on the calling thread; returns how many ran."""
        handled = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return handled
            if event is None:
                continue
            self.handle_event(event)
            handled += 1

    def handle_event(self, event: FeedEvent) -> None:
        try:
            if event.kind is FeedEventKind.ITEMS_RECEIVED:
                self.on_items_received(event.feed_url)
            elif event.kind is FeedEventKind.FETCH_FAILED:
                self.on_fetch_failed(event.feed_url, event.error)
        except Exception as exc:
            self.logger.error("Error handling %s for %s: %s", event.kind.name, event.feed_url, exc, exc_info=True)

    def run_once(self) -> FeedItems:
        """Fetch every registered feed once, without scheduling, and process the results."""
        for fetcher in self.fetchers().values():
            fetcher.fetch_now(schedule=False)
        self.process_pending_events()
        return self.current_items()

    def on_items_received(self, feed_url: str) -> FeedItems:
        self.logger.debug("Items received from %s; starting coordinator cycle", feed_url)
        self.resolve_pending_details()
        self.apply_geo_filter()
        self.stats['cycles'] += 1
        return self.broadcast_feeds()

    def on_fetch_failed(self, feed_url: str, error: Optional[FeedError]) -> None:
        self.stats['fetch_failures'] += 1
        if error is None:
            error = FeedError(FeedErrorKind.FEED_TRANSPORT_FAILURE, url=feed_url)
        self._emit_error(error)

    # ------------------------------------------------------------------- cycle

    def resolve_pending_details(self) -> List[FeedError]:
        """Resolve CAP detail for every item across all feeds that lacks it.

        Blocks until every request issued here has settled.
        """
        pending: List[AlertStub] = []
        for fetcher in self.fetchers().values():
            for stub in fetcher.items():
                if stub.detail is not None:
                    continue
                if not stub.detail_url:
                    stub.detail = []
                    continue
                pending.append(stub)

        if not pending:
            return []

        self.logger.info("Retrieving alert detail for %d item(s)", len(pending))
        futures = [self._executor.submit(self._resolve_stub, stub) for stub in pending]
        wait(futures)

        errors: List[FeedError] = []
        for future in futures:
            error = future.result()
            if error is None:
                self.stats['details_resolved'] += 1
            else:
                self.stats['detail_failures'] += 1
                errors.append(error)

        for error in errors:
            self._emit_error(error)
        return errors

    def _resolve_stub(self, stub: AlertStub) -> Optional[FeedError]:
        # A failed lookup still marks the stub as attempted; it is not retried.
        try:
            details = self.detail_resolver.resolve(stub.detail_url)
        except FeedError as exc:
            self.logger.error("CAP feed error. Could not fetch detail %s: %s", stub.detail_url, exc.message or exc)
            stub.detail = []
            return exc
        except Exception as exc:
            self.logger.error("Unexpected error resolving detail %s: %s", stub.detail_url, exc, exc_info=True)
            stub.detail = []
            return FeedError.from_exception(FeedErrorKind.DETAIL_TRANSPORT_FAILURE, stub.detail_url, exc)
        stub.detail = details
        return None

    def apply_geo_filter(self) -> int:
        """Remove items outside the reference point from every fetcher."""
        point = self.options.reference_point
        if point is None:
            return 0

        removed = 0
        for url, fetcher in self.fetchers().items():
            dropped = fetcher.filter_items(lambda stub: is_alert_in_area(stub, point))
            if dropped:
                self.logger.info("Geo-filter removed %d item(s) from %s", dropped, url)
            removed += dropped
        self.stats['items_filtered'] += removed
        return removed

    def current_items(self) -> FeedItems:
        return {url: fetcher.items() for url, fetcher in self.fetchers().items()}

    def broadcast_feeds(self) -> FeedItems:
        feeds = self.current_items()
        self.logger.debug("Sending %s for %d feed(s)", FEED_ITEMS, len(feeds))
        if self.on_items is not None:
            try:
                self.on_items(feeds)
            except Exception as exc:
                self.logger.error("%s consumer failed: %s", FEED_ITEMS, exc, exc_info=True)
        return feeds

    def _emit_error(self, error: FeedError) -> None:
        self.logger.debug("Sending %s: %s", FEED_ERROR, error.to_dict())
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as exc:
                self.logger.error("%s consumer failed: %s", FEED_ERROR, exc, exc_info=True)
