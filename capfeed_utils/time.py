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

"""Timezone and datetime helpers for CAP feed items and detail documents."""

import calendar
import logging
import time
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import pytz

logger = logging.getLogger(__name__)

UTC_TZ = pytz.UTC


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""

    return datetime.now(UTC_TZ)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""

    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC_TZ)
    return dt.astimezone(UTC_TZ)


def parse_feed_datetime(value: Any, logger=None) -> Optional[datetime]:
    """Parse the variety of timestamp shapes found in RSS, Atom and CAP documents.

    Accepts ``datetime`` objects, ``time.struct_time`` values (as produced by
    feedparser's ``*_parsed`` fields), ISO 8601 strings and RFC 822 strings.
    Returns a timezone-aware UTC datetime or ``None``.
    """

    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, time.struct_time):
        return datetime.fromtimestamp(calendar.timegm(value), UTC_TZ)

    dt_string = str(value).strip()
    if not dt_string:
        return None

    if dt_string.endswith("Z"):
        try:
            dt = datetime.fromisoformat(dt_string[:-1] + "+00:00")
            return dt.astimezone(UTC_TZ)
        except ValueError:
            pass

    try:
        return ensure_utc(datetime.fromisoformat(dt_string))
    except ValueError:
        pass

    try:
        return ensure_utc(parsedate_to_datetime(dt_string))
    except (TypeError, ValueError, IndexError):
        pass

    for suffix, is_dst in ((" EDT", True), (" EST", False)):
        if dt_string.endswith(suffix):
            try:
                dt = datetime.fromisoformat(dt_string[: -len(suffix)])
                eastern_tz = pytz.timezone("US/Eastern")
                return eastern_tz.localize(dt, is_dst=is_dst).astimezone(UTC_TZ)
            except ValueError:
                pass

    if logger is not None:
        logger.warning("Could not parse datetime: %s", dt_string)
    return None


def is_older_than(dt: Optional[datetime], max_age_ms: int, now: Optional[datetime] = None) -> bool:
    """Return True when ``dt`` lies more than ``max_age_ms`` in the past."""

    checked = ensure_utc(dt)
    if checked is None:
        return False
    reference = ensure_utc(now) if now is not None else utc_now()
    return (reference - checked).total_seconds() * 1000 > max_age_ms
