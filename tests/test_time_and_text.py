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

"""Tests for feed timestamp parsing and description cleanup."""

import time
from datetime import datetime, timedelta, timezone

import pytz

from capfeed_utils.text import clean_description, html_to_text, strip_tags
from capfeed_utils.time import UTC_TZ, ensure_utc, is_older_than, parse_feed_datetime


def test_parse_feed_datetime_iso_with_offset():
    parsed = parse_feed_datetime("2025-06-01T09:00:00+12:00")
    assert parsed == datetime(2025, 5, 31, 21, 0, tzinfo=UTC_TZ)


def test_parse_feed_datetime_iso_with_z_suffix():
    parsed = parse_feed_datetime("2025-06-01T09:00:00Z")
    assert parsed == datetime(2025, 6, 1, 9, 0, tzinfo=UTC_TZ)


def test_parse_feed_datetime_rfc822():
    parsed = parse_feed_datetime("Sun, 01 Jun 2025 09:00:00 +1200")
    assert parsed == datetime(2025, 5, 31, 21, 0, tzinfo=UTC_TZ)


def test_parse_feed_datetime_struct_time():
    parsed = parse_feed_datetime(time.strptime("2025-06-01 09:00:00", "%Y-%m-%d %H:%M:%S"))
    assert parsed == datetime(2025, 6, 1, 9, 0, tzinfo=UTC_TZ)


def test_parse_feed_datetime_naive_is_utc():
    parsed = parse_feed_datetime(datetime(2025, 6, 1, 9, 0))
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == timedelta(0)


def test_parse_feed_datetime_invalid_returns_none():
    assert parse_feed_datetime("not a date") is None
    assert parse_feed_datetime("") is None
    assert parse_feed_datetime(None) is None


def test_ensure_utc_converts_aware_values():
    eastern = pytz.timezone("US/Eastern").localize(datetime(2025, 1, 1, 7, 0))
    assert ensure_utc(eastern) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC_TZ)


def test_is_older_than():
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert is_older_than(now - timedelta(hours=2), 60 * 60 * 1000, now=now)
    assert not is_older_than(now - timedelta(minutes=30), 60 * 60 * 1000, now=now)
    assert not is_older_than(None, 1, now=now)


def test_strip_tags_removes_markup():
    assert strip_tags("<p>Heavy <b>rain</b></p>") == "Heavy rain"
    assert strip_tags(None) == ""


def test_html_to_text_decodes_entities_and_collapses_whitespace():
    assert html_to_text("Rain &amp; wind\n\n  expected") == "Rain & wind expected"


def test_clean_description():
    assert clean_description("<div>Orange <i>Heavy Rain</i> Warning</div>\n") == "Orange Heavy Rain Warning"
    assert clean_description("") == ""
