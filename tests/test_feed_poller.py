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

"""Tests for the feed poller command line."""

import json

from capfeed_core.coordinator import FeedCoordinator
from capfeed_utils.feed_settings import PollerOptions
from conftest import FakeFetcher, WELLINGTON_POLYGON, build_cap, build_rss
from poller import feed_poller

FEED_URL = "https://feeds.example.test/rss"


def test_apply_arguments_overrides_environment_options():
    args = feed_poller.build_parser().parse_args(
        ["--feed", FEED_URL, "--feed", "https://other.example.test/rss", "--lat", "-41.3", "--lon", "174.8", "--cache"]
    )

    options = feed_poller.apply_arguments(PollerOptions(), args)

    assert [feed.url for feed in options.feeds] == [FEED_URL, "https://other.example.test/rss"]
    assert options.reference_point == (-41.3, 174.8)
    assert options.cache_feed is True


def test_once_prints_digest(monkeypatch, capsys, clean_env):
    http = FakeFetcher()
    http.add(FEED_URL, build_rss([{
        "title": "Orange Heavy Rain Warning",
        "guid": "urn:alert:1",
        "link": "https://alerts.example.test/cap/1.xml",
        "pubDate": "Sun, 01 Jun 2025 09:00:00 +1200",
    }]))
    http.add("https://alerts.example.test/cap/1.xml", build_cap([{
        "event": "Heavy Rain",
        "severity": "Moderate",
        "areas": [("Wellington", [WELLINGTON_POLYGON])],
    }]))

    def coordinator_factory(options, **kwargs):
        return FeedCoordinator(options, fetcher=http, **kwargs)

    monkeypatch.setattr(feed_poller, "FeedCoordinator", coordinator_factory)
    monkeypatch.setattr(feed_poller, "load_environment", lambda: None)

    exit_code = feed_poller.main(["--once", "--feed", FEED_URL, "--log-level", "ERROR"])

    assert exit_code == 0
    output = capsys.readouterr().out
    digest = json.loads(output[output.index("{"):])
    assert digest["count"] == 1
    item = digest["items"][0]
    assert item["title"] == "Orange Heavy Rain Warning"
    assert item["severity"] == "Moderate"
    assert item["areas"] == "Wellington"
