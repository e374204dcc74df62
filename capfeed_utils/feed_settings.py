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

"""Feed registration and poller option defaults for the CAP feed monitor.

Options are read from the environment (after ``python-dotenv`` has loaded
``.env`` or ``CONFIG_PATH``):

  CAP_FEED_URLS          - Comma-separated feed URLs (default: MetService CAP RSS)
  CAP_FEED_TITLES        - Comma-separated titles, matched to URLs by position
  CAP_RELOAD_INTERVAL_MS - Default reload interval for every feed
  CAP_RETRY_DELAY_MS     - Retry delay hint passed through to consumers
  CAP_LOG_FEED_WARNINGS  - Log items that cannot be parsed (true/false)
  CAP_CACHE_FEED         - Serve HTTP responses from an on-disk cache (development)
  CAP_CACHE_DIR          - Cache directory (default: .cache)
  CAP_CACHE_TTL_MS       - Cache entry lifetime (default: 24 hours)
  CAP_LAT / CAP_LON      - Reference point for geographic filtering
  CAP_REQUEST_TIMEOUT    - HTTP timeout in seconds
  CAP_FEED_ENCODING      - Character encoding applied to every feed
  CAP_USE_CORS_PROXY     - Flag carried on each alert for the display layer
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://alerts.metservice.com/cap/rss"
DEFAULT_FEED_TITLE = "MetService"
DEFAULT_RELOAD_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_RETRY_DELAY_MS = 5000
DEFAULT_ENCODING = "UTF-8"
DEFAULT_CACHE_DIR = ".cache"
DEFAULT_CACHE_TTL_MS = 24 * 60 * 60 * 1000
DEFAULT_REQUEST_TIMEOUT = 30.0

MIN_RELOAD_INTERVAL_MS = 1000
MAX_TTL_INTERVAL_MS = 24 * 60 * 60 * 1000

DEFAULT_COMMON_CONFIG: Dict[str, Any] = {
    "show_source_title": True,
    "show_publish_date": True,
    "show_area_description": True,
    "show_icon": True,
    "show_alert_title": True,
    "show_onset": True,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def ensure_list(value: Iterable[str] | Sequence[str] | str | None) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return _split_csv(value)
    return [str(item).strip() for item in value if str(item).strip()]


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; defaulting to %s", name, raw, default)
        return default


def _env_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; defaulting to %s", name, raw, default)
        return default


@dataclass
class FeedRegistration:
    """One configured CAP feed."""

    url: str
    title: str = ""
    reload_interval_ms: Optional[int] = None
    encoding: Optional[str] = None
    use_cors_proxy: Optional[bool] = None
    config: Dict[str, Any] = field(default_factory=dict)

    def resolved_reload_interval(self, default_ms: int = DEFAULT_RELOAD_INTERVAL_MS) -> int:
        return self.reload_interval_ms or default_ms or DEFAULT_RELOAD_INTERVAL_MS

    def resolved_encoding(self) -> str:
        return self.encoding or DEFAULT_ENCODING

    def resolved_use_cors_proxy(self) -> bool:
        return True if self.use_cors_proxy is None else bool(self.use_cors_proxy)


@dataclass
class PollerOptions:
    """Global options consumed by the fetch/merge/geo-filter pipeline."""

    feeds: List[FeedRegistration] = field(default_factory=list)
    reload_interval_ms: int = DEFAULT_RELOAD_INTERVAL_MS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    log_feed_warnings: bool = False
    cache_feed: bool = False
    cache_dir: str = DEFAULT_CACHE_DIR
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def reference_point(self) -> Optional[Tuple[float, float]]:
        """The geo-filter point, only when both coordinates are configured."""
        if self.lat is None or self.lon is None:
            return None
        return float(self.lat), float(self.lon)

    def feed_by_url(self, url: str) -> Optional[FeedRegistration]:
        for feed in self.feeds:
            if feed.url == url:
                return feed
        return None


def load_options_from_env(env: Optional[Mapping[str, str]] = None) -> PollerOptions:
    """Build :class:`PollerOptions` from environment variables."""

    env = os.environ if env is None else env

    urls = ensure_list(env.get("CAP_FEED_URLS")) or [DEFAULT_FEED_URL]
    titles = ensure_list(env.get("CAP_FEED_TITLES"))
    if not env.get("CAP_FEED_URLS") and not titles:
        titles = [DEFAULT_FEED_TITLE]

    encoding = (env.get("CAP_FEED_ENCODING") or "").strip() or None
    use_cors_proxy = _env_bool(env, "CAP_USE_CORS_PROXY", True)

    feeds = [
        FeedRegistration(
            url=url,
            title=titles[index] if index < len(titles) else "",
            encoding=encoding,
            use_cors_proxy=use_cors_proxy,
        )
        for index, url in enumerate(urls)
    ]

    return PollerOptions(
        feeds=feeds,
        reload_interval_ms=_env_int(env, "CAP_RELOAD_INTERVAL_MS", DEFAULT_RELOAD_INTERVAL_MS),
        retry_delay_ms=_env_int(env, "CAP_RETRY_DELAY_MS", DEFAULT_RETRY_DELAY_MS),
        log_feed_warnings=_env_bool(env, "CAP_LOG_FEED_WARNINGS", False),
        cache_feed=_env_bool(env, "CAP_CACHE_FEED", False),
        cache_dir=(env.get("CAP_CACHE_DIR") or DEFAULT_CACHE_DIR).strip() or DEFAULT_CACHE_DIR,
        cache_ttl_ms=_env_int(env, "CAP_CACHE_TTL_MS", DEFAULT_CACHE_TTL_MS),
        request_timeout=_env_float(env, "CAP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT) or DEFAULT_REQUEST_TIMEOUT,
        lat=_env_float(env, "CAP_LAT", None),
        lon=_env_float(env, "CAP_LON", None),
    )
