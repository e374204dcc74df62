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

"""Pytest configuration and shared fixtures for CAP feed monitor tests.

This module provides fake fetchers and timers plus builders for RSS and
CAP documents so no test touches the network or sleeps on a real timer.
"""
import os
import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, List, Mapping, Optional, Union
from xml.sax.saxutils import escape

import pytest

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from capfeed_core.transport import FetchedDocument


# ============================================================================
# Fakes
# ============================================================================

class FakeFetcher:
    """In-memory ``Fetcher``: maps URLs to documents or exceptions to raise."""

    def __init__(self, responses: Optional[Mapping[str, object]] = None):
        self.responses: Dict[str, object] = dict(responses or {})
        self.calls: List[str] = []
        self.headers: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def add(self, url: str, body: Union[bytes, str, Exception], status_code: int = 200, reason: str = 'OK') -> None:
        if isinstance(body, Exception):
            self.responses[url] = body
            return
        if isinstance(body, str):
            body = body.encode('utf-8')
        self.responses[url] = FetchedDocument(url=url, status_code=status_code, content=body, reason=reason)

    def fetch(self, url, headers=None):
        with self._lock:
            self.calls.append(url)
            self.headers.append(dict(headers or {}))
        response = self.responses.get(url)
        if response is None:
            return FetchedDocument(url=url, status_code=404, reason='Not Found')
        if isinstance(response, Exception):
            raise response
        return response

    def call_count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)


class FakeTimer:
    """Stand-in for ``threading.Timer`` that never fires on its own."""

    def __init__(self, interval: float, function: Callable, *args, **kwargs):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self):
        return self.function()


class TimerRecorder:
    """Timer factory that keeps every timer it creates."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, function, *args, **kwargs) -> FakeTimer:
        timer = FakeTimer(interval, function, *args, **kwargs)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> Optional[FakeTimer]:
        return self.timers[-1] if self.timers else None


# ============================================================================
# Document builders
# ============================================================================

def build_rss(items: Iterable[Mapping[str, str]], ttl: Optional[object] = None, encoding: str = 'utf-8') -> bytes:
    """Render a minimal RSS 2.0 document."""
    parts = [f'<?xml version="1.0" encoding="{encoding}"?>', '<rss version="2.0"><channel>',
             '<title>Test Feed</title>', '<link>https://example.test/</link>',
             '<description>Test alerts</description>']
    if ttl is not None:
        parts.append(f'<ttl>{escape(str(ttl))}</ttl>')
    for item in items:
        parts.append('<item>')
        for tag in ('title', 'description', 'link', 'guid', 'pubDate', 'category'):
            if item.get(tag) is not None:
                parts.append(f'<{tag}>{escape(item[tag])}</{tag}>')
        parts.append('</item>')
    parts.append('</channel></rss>')
    return ''.join(parts).encode(encoding)


def build_cap(infos: Iterable[Mapping[str, object]], namespace: str = 'urn:oasis:names:tc:emergency:cap:1.2') -> bytes:
    """Render a CAP alert with one ``<info>`` per mapping.

    Each mapping may carry ``event``, ``severity``, ``onset`` and ``areas``,
    the latter a list of ``(areaDesc, [polygon, ...])`` tuples.
    """
    parts = [f'<?xml version="1.0" encoding="UTF-8"?><alert xmlns="{namespace}">',
             '<identifier>TEST-1</identifier><sender>test@example.test</sender>',
             '<status>Actual</status><msgType>Alert</msgType>']
    for info in infos:
        parts.append('<info>')
        for tag in ('language', 'event', 'urgency', 'severity', 'certainty', 'onset', 'expires', 'headline'):
            if info.get(tag):
                parts.append(f'<{tag}>{escape(str(info[tag]))}</{tag}>')
        for description, polygons in info.get('areas', []):
            parts.append(f'<area><areaDesc>{escape(description)}</areaDesc>')
            for polygon in polygons:
                parts.append(f'<polygon>{escape(polygon)}</polygon>')
            parts.append('</area>')
        parts.append('</info>')
    parts.append('</alert>')
    return ''.join(parts).encode('utf-8')


# Square around Wellington and one around Auckland, as CAP "lat,lon" rings.
WELLINGTON_POLYGON = '-41.40,174.60 -41.40,175.00 -41.10,175.00 -41.10,174.60 -41.40,174.60'
AUCKLAND_POLYGON = '-37.00,174.60 -37.00,175.00 -36.70,175.00 -36.70,174.60 -37.00,174.60'
WELLINGTON_POINT = (-41.2865, 174.7762)


# ============================================================================
# Function-level fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test use.
    
    The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch) -> None:
    """Remove every CAP_* variable so defaults apply."""
    for key in list(os.environ):
        if key.startswith('CAP_'):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def timer_factory() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture
def rss_document() -> Callable[..., bytes]:
    return build_rss


@pytest.fixture
def cap_document() -> Callable[..., bytes]:
    return build_cap


# ============================================================================
# Test markers and utilities
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Register custom markers
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use mocks)"
    )
    config.addinivalue_line(
        "markers", "network: Tests that exercise the live HTTP fetcher"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests without any marker
        if not any(item.iter_markers()):
            item.add_marker(pytest.mark.unit)

        # Mark tests in integration modules
        if "integration" in item.nodeid or "coordinator" in item.nodeid:
            item.add_marker(pytest.mark.integration)
