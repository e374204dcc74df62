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

"""Utility helpers shared by the CAP feed monitor."""

from .time import (
    UTC_TZ,
    ensure_utc,
    is_older_than,
    parse_feed_datetime,
    utc_now,
)
from .polygons import (
    Point,
    Polygon,
    contains_point,
    parse_polygon_set,
    parse_polygon_string,
)
from .text import clean_description, html_to_text, strip_tags
from .feed_settings import (
    FeedRegistration,
    PollerOptions,
    load_options_from_env,
)

__all__ = [
    "UTC_TZ",
    "utc_now",
    "ensure_utc",
    "is_older_than",
    "parse_feed_datetime",
    "Point",
    "Polygon",
    "contains_point",
    "parse_polygon_set",
    "parse_polygon_string",
    "clean_description",
    "html_to_text",
    "strip_tags",
    "FeedRegistration",
    "PollerOptions",
    "load_options_from_env",
]
