#!/usr/bin/env python3
"""
CAP Feed Monitor poller

Polls one or more CAP RSS/Atom feeds, resolves the CAP detail behind every
item, optionally keeps only alerts whose polygons contain a reference point,
and prints the merged digest as JSON on every feed update.

Configuration (via environment variables, .env or CONFIG_PATH, overridden by flags):
  CAP_FEED_URLS          - Comma-separated feed URLs
  CAP_FEED_TITLES        - Comma-separated feed titles
  CAP_RELOAD_INTERVAL_MS - Reload interval (default: 300000)
  CAP_LAT / CAP_LON      - Geo-filter reference point
  CAP_CACHE_FEED         - Serve responses from an on-disk cache (development only)
"""

import os
import sys
import json
import time
import logging
import argparse
from typing import Dict, List, Optional

from dotenv import load_dotenv

CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from capfeed_core.coordinator import FeedCoordinator
from capfeed_core.digest import AlertDigest, DigestEntry, DigestOptions
from capfeed_core.errors import FeedError
from capfeed_core.models import AlertStub
from capfeed_utils.feed_settings import FeedRegistration, PollerOptions, load_options_from_env

logger = logging.getLogger(__name__)


def load_environment() -> None:
    # Load from CONFIG_PATH if set (persistent volume), with override=True
    config_path = os.environ.get('CONFIG_PATH')
    if config_path:
        load_dotenv(config_path, override=True)
    else:
        load_dotenv(override=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='CAP feed monitor (fetch, merge and geo-filter)')
    parser.add_argument('--feed', dest='feeds', action='append', default=[],
                        help='CAP feed URL (repeatable; replaces CAP_FEED_URLS)')
    parser.add_argument('--lat', type=float, help='Geo-filter latitude')
    parser.add_argument('--lon', type=float, help='Geo-filter longitude')
    parser.add_argument('--cache', action='store_true', help='Serve HTTP responses from the on-disk cache')
    parser.add_argument('--once', action='store_true', help='Fetch every feed once, print the digest and exit')
    parser.add_argument('--max-items', type=int, default=0, help='Maximum alerts in the digest (0 = unlimited)')
    parser.add_argument('--log-level', default=os.getenv('LOG_LEVEL', 'INFO'),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level')
    return parser


def apply_arguments(options: PollerOptions, args: argparse.Namespace) -> PollerOptions:
    """Overlay command-line flags on environment-derived options."""
    if args.feeds:
        options.feeds = [FeedRegistration(url=url) for url in args.feeds]
    if args.lat is not None:
        options.lat = args.lat
    if args.lon is not None:
        options.lon = args.lon
    if args.cache:
        options.cache_feed = True
    return options


def print_digest(digest: AlertDigest) -> None:
    print(json.dumps(digest.to_dict(), indent=2, default=str))
    sys.stdout.flush()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_environment()

    # Logging to stdout (container-friendly)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    options = apply_arguments(load_options_from_env(), args)
    if (options.lat is None) != (options.lon is None):
        logger.warning("Only one of lat/lon configured; geo-filter disabled")

    logger.info("Starting CAP feed monitor for %d feed(s)", len(options.feeds))
    for registration in options.feeds:
        logger.info("Feed: %s (%s)", registration.url, registration.title or 'untitled')
    if options.reference_point:
        logger.info("Geo-filter point: %.4f, %.4f", *options.reference_point)

    def report_update(notification: str, entries: List[DigestEntry]) -> None:
        for entry in entries:
            logger.info("%s: %s [%s] %s", notification, entry.title, entry.severity or 'n/a', entry.areas)

    digest = AlertDigest(
        options,
        DigestOptions(max_display_items=max(0, args.max_items)),
        on_update=report_update,
    )

    def on_items(feeds: Dict[str, List[AlertStub]]) -> None:
        digest.update(feeds)
        if not args.once:
            print_digest(digest)

    def on_error(error: FeedError) -> None:
        logger.warning("FEED_ERROR %s", json.dumps(error.to_dict()))

    coordinator = FeedCoordinator(options, on_items=on_items, on_error=on_error)

    try:
        if args.once:
            for registration in options.feeds:
                coordinator.add_feed(registration, start=False)
            coordinator.run_once()
            print_digest(digest)
        else:
            coordinator.start()
            logger.info("Running continuously; press Ctrl+C to stop")
            while True:
                try:
                    time.sleep(1)
                except KeyboardInterrupt:
                    logger.info("Received interrupt signal, shutting down")
                    break
    finally:
        coordinator.stop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
