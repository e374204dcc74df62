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

"""HTTP fetch capability shared by feed fetchers and the CAP detail resolver.

``Fetcher`` is the one-method interface the pipeline depends on. The live
implementation wraps a ``requests`` session; ``CachedFetcher`` decorates any
fetcher with an on-disk response cache keyed by URL, which is meant for
development and testing.

Responses are read in chunks but held in memory as one ``bytes`` body; feed
and CAP documents are small enough that nothing downstream streams.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional, Protocol

import certifi
import requests
from cachelib import FileSystemCache

from capfeed_utils.feed_settings import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_REQUEST_TIMEOUT,
)
from .errors import FetchStatusError

DEFAULT_USER_AGENT = 'EAS Station CAP Feed Monitor/1.0 (+https://github.com/KR8MER/eas-station)'
CHUNK_SIZE = 8192


@dataclass
class FetchedDocument:
    """Response body and status for one HTTP GET."""
    url: str
    status_code: int
    content: bytes = b''
    reason: str = ''
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def text(self, encoding: str = 'utf-8') -> str:
        return self.content.decode(encoding, errors='replace')


class Fetcher(Protocol):
    """Fetch a document by URL."""

    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchedDocument:
        ...


def check_fetch_status(document: FetchedDocument) -> FetchedDocument:
    """Raise :class:`FetchStatusError` unless the response status is 2xx."""

    if not document.ok:
        raise FetchStatusError(document.url, document.status_code, document.reason)
    return document


class RequestsFetcher:
    """Live HTTP fetcher backed by a shared ``requests`` session."""

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent or os.getenv('CAP_USER_AGENT', DEFAULT_USER_AGENT),
        })
        ca_bundle_override = os.getenv('REQUESTS_CA_BUNDLE') or os.getenv('CAP_POLLER_CA_BUNDLE')
        if ca_bundle_override:
            self.logger.debug('Using custom CA bundle for CAP feeds: %s', ca_bundle_override)
            self.session.verify = ca_bundle_override
        else:
            self.session.verify = certifi.where()

    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchedDocument:
        """GET ``url`` and buffer the whole body."""
        self.logger.debug('GET %s', url)
        with self.session.get(url, headers=dict(headers or {}), timeout=self.timeout, stream=True) as response:
            content = b''.join(response.iter_content(chunk_size=CHUNK_SIZE))
            return FetchedDocument(
                url=url,
                status_code=response.status_code,
                content=content,
                reason=response.reason or '',
                headers=dict(response.headers),
            )

    def close(self) -> None:
        self.session.close()


class CachedFetcher:
    """Serve successful responses from a file-system cache for a fixed TTL."""

    def __init__(
        self,
        inner: Fetcher,
        cache_dir: str = DEFAULT_CACHE_DIR,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        cache: Optional[FileSystemCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.inner = inner
        self.ttl_seconds = max(1, int(ttl_ms // 1000))
        self.logger = logger or logging.getLogger(__name__)
        if cache is None:
            os.makedirs(cache_dir, exist_ok=True)
            cache = FileSystemCache(cache_dir, default_timeout=self.ttl_seconds)
        self.cache = cache

    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchedDocument:
        cached = self.cache.get(url)
        if cached is not None:
            self.logger.debug('Cache hit for %s', url)
            return FetchedDocument(**cached)

        document = self.inner.fetch(url, headers=headers)
        if document.ok:
            self.cache.set(
                url,
                {
                    'url': document.url,
                    'status_code': document.status_code,
                    'content': document.content,
                    'reason': document.reason,
                    'headers': dict(document.headers),
                },
                timeout=self.ttl_seconds,
            )
            self.logger.debug('Cached %d bytes for %s', len(document.content), url)
        return document

    def close(self) -> None:
        close = getattr(self.inner, 'close', None)
        if close is not None:
            close()
