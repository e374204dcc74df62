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

"""Display-ready digest of the merged alert set.

:class:`AlertDigest` consumes each ``FEED_ITEMS`` mapping from the
coordinator and turns it into an ordered list of :class:`DigestEntry`
records: subscribed feeds only, newest first, optionally age-limited,
truncated and word-filtered. Entries that were not in the previous digest
are reported through ``on_update`` as a ``CAP_ALERT_UPDATE``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from capfeed_utils.feed_settings import DEFAULT_COMMON_CONFIG, PollerOptions
from capfeed_utils.time import UTC_TZ, is_older_than, utc_now
from .models import AlertStub

ALERT_UPDATE = 'CAP_ALERT_UPDATE'

DEFAULT_IGNORE_OLDER_THAN_MS = 24 * 60 * 60 * 1000

_OLDEST = datetime.min.replace(tzinfo=UTC_TZ)


@dataclass
class DigestOptions:
    """Presentation options applied on top of the merged feed items."""

    common_config: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_COMMON_CONFIG))
    max_display_items: int = 0
    ignore_old_items: bool = False
    ignore_older_than_ms: int = DEFAULT_IGNORE_OLDER_THAN_MS
    prohibited_words: List[str] = field(default_factory=list)
    remove_start_tags: str = ''
    start_tags: List[str] = field(default_factory=list)
    remove_end_tags: str = ''
    end_tags: List[str] = field(default_factory=list)
    broadcast_alert_updates: bool = True


@dataclass
class DigestEntry:
    """One alert as presented to a display or notification consumer."""

    feed_url: str
    source_title: str
    config: Dict[str, Any]
    stub: AlertStub
    title: str
    description: str

    @property
    def identity_key(self) -> str:
        return self.stub.identity_key

    @property
    def published_at(self) -> Optional[datetime]:
        return self.stub.published_at

    @property
    def severity(self) -> str:
        details = self.stub.detail or []
        return details[0].severity if details else ''

    @property
    def event(self) -> str:
        details = self.stub.detail or []
        return details[0].event if details else ''

    @property
    def onset(self) -> Optional[datetime]:
        details = self.stub.detail or []
        return details[0].onset if details else None

    @property
    def areas(self) -> str:
        return ', '.join(self.stub.area_descriptions())

    def to_dict(self) -> Dict[str, Any]:
        data = self.stub.to_dict()
        data.update({
            'title': self.title,
            'description': self.description,
            'feedUrl': self.feed_url,
            'sourceTitle': self.source_title,
            'config': dict(self.config),
            'severity': self.severity,
            'event': self.event,
            'areas': self.areas,
            'onset': self.onset.isoformat() if self.onset else None,
        })
        return data


def _strip_start_tags(text: str, tags: List[str]) -> str:
    for tag in tags:
        if tag and text.startswith(tag):
            text = text[len(tag):]
    return text


def _strip_end_tags(text: str, tags: List[str]) -> str:
    for tag in tags:
        if tag and text.endswith(tag):
            text = text[:-len(tag)]
    return text


class AlertDigest:
    """Build ordered digests from coordinator broadcasts."""

    def __init__(
        self,
        options: PollerOptions,
        digest_options: Optional[DigestOptions] = None,
        on_update: Optional[Callable[[str, List[DigestEntry]], None]] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.options = options
        self.digest_options = digest_options or DigestOptions()
        self.on_update = on_update
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._entries: List[DigestEntry] = []

    @property
    def entries(self) -> List[DigestEntry]:
        return list(self._entries)

    def is_subscribed(self, feed_url: str) -> bool:
        return self.options.feed_by_url(feed_url) is not None

    def title_for_feed(self, feed_url: str) -> str:
        registration = self.options.feed_by_url(feed_url)
        return registration.title if registration and registration.title else ''

    def config_for_feed(self, feed_url: str) -> Dict[str, Any]:
        """Common config overridden by the feed's own config."""
        merged = dict(DEFAULT_COMMON_CONFIG)
        merged.update(self.digest_options.common_config)
        registration = self.options.feed_by_url(feed_url)
        if registration is None:
            self.logger.warning("Missing feed config for %s", feed_url)
        else:
            merged.update(registration.config)
        return merged

    def update(self, feeds: Dict[str, List[AlertStub]]) -> List[DigestEntry]:
        """Rebuild the digest from a ``FEED_ITEMS`` mapping."""
        opts = self.digest_options
        now = self._clock()

        entries: List[DigestEntry] = []
        for feed_url, stubs in feeds.items():
            if not self.is_subscribed(feed_url):
                self.logger.debug("Ignoring items from unsubscribed feed %s", feed_url)
                continue
            source_title = self.title_for_feed(feed_url)
            config = self.config_for_feed(feed_url)
            for stub in stubs:
                if opts.ignore_old_items and is_older_than(stub.published_at, opts.ignore_older_than_ms, now=now):
                    continue
                entries.append(DigestEntry(
                    feed_url=feed_url,
                    source_title=source_title,
                    config=config,
                    stub=stub,
                    title=stub.title,
                    description=stub.description,
                ))

        entries.sort(key=lambda entry: entry.published_at or _OLDEST, reverse=True)

        if opts.max_display_items > 0:
            entries = entries[:opts.max_display_items]

        if opts.prohibited_words:
            words = [word.lower() for word in opts.prohibited_words if word]
            entries = [
                entry for entry in entries
                if not any(word in entry.title.lower() for word in words)
            ]

        for entry in entries:
            self._apply_tag_removal(entry)

        previous = {entry.identity_key for entry in self._entries}
        updated = [entry for entry in entries if entry.identity_key not in previous]
        self._entries = entries

        if updated:
            self.logger.info("%d new alert(s) in digest of %d", len(updated), len(entries))
            if opts.broadcast_alert_updates and self.on_update is not None:
                self.on_update(ALERT_UPDATE, updated)

        return self.entries

    def _apply_tag_removal(self, entry: DigestEntry) -> None:
        opts = self.digest_options
        if opts.remove_start_tags in ('title', 'both'):
            entry.title = _strip_start_tags(entry.title, opts.start_tags)
        if opts.remove_start_tags in ('description', 'both'):
            entry.description = _strip_start_tags(entry.description, opts.start_tags)
        if opts.remove_end_tags in ('title', 'both'):
            entry.title = _strip_end_tags(entry.title, opts.end_tags)
        if opts.remove_end_tags in ('description', 'both'):
            entry.description = _strip_end_tags(entry.description, opts.end_tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [entry.to_dict() for entry in self._entries],
            'count': len(self._entries),
        }
