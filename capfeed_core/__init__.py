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

"""CAP feed fetch, merge and geo-filter pipeline."""

from .errors import FeedError, FeedErrorKind
from .models import AlertDetail, AlertStub, Area
from .transport import CachedFetcher, FetchedDocument, Fetcher, RequestsFetcher
from .cap_detail import CAPDetailResolver, parse_cap_document
from .feed_fetcher import FeedEvent, FeedEventKind, FeedFetcher
from .geo_filter import filter_alerts, is_alert_in_area
from .coordinator import FEED_ERROR, FEED_ITEMS, FeedCoordinator
from .digest import AlertDigest, DigestEntry, DigestOptions

__all__ = [
    "FeedError",
    "FeedErrorKind",
    "AlertDetail",
    "AlertStub",
    "Area",
    "CachedFetcher",
    "FetchedDocument",
    "Fetcher",
    "RequestsFetcher",
    "CAPDetailResolver",
    "parse_cap_document",
    "FeedEvent",
    "FeedEventKind",
    "FeedFetcher",
    "filter_alerts",
    "is_alert_in_area",
    "FEED_ERROR",
    "FEED_ITEMS",
    "FeedCoordinator",
    "AlertDigest",
    "DigestEntry",
    "DigestOptions",
]
