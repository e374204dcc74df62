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

"""
CAP detail document resolver.

Each feed item links to a full CAP document. The parts the pipeline needs
are the ``<info>`` blocks and their ``<area>`` children::

    <alert xmlns="urn:oasis:names:tc:emergency:cap:1.2">
      <identifier>...</identifier>
      <info>
        <event>Heavy Rain</event>
        <severity>Moderate</severity>
        <onset>2025-06-01T09:00:00+12:00</onset>
        <area>
          <areaDesc>Wellington</areaDesc>
          <polygon>-41.2,174.7 -41.3,174.7 -41.3,174.9 -41.2,174.9</polygon>
        </area>
      </info>
    </alert>

Element lookups ignore the namespace so CAP 1.0, 1.1 and 1.2 documents all
parse the same way.
"""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Union

import requests

from capfeed_utils.polygons import parse_polygon_set
from capfeed_utils.time import parse_feed_datetime
from .errors import CAPParseError, FeedError, FeedErrorKind, FetchStatusError
from .models import AlertDetail, Area
from .transport import Fetcher, check_fetch_status

logger = logging.getLogger(__name__)

CAP_REQUEST_HEADERS = {
    'Accept': 'application/cap+xml, application/xml, text/xml',
}


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local_name(child.tag) == name and child.text:
            return child.text.strip()
    return ''


def _parse_area(area_elem: ET.Element) -> Area:
    raw_polygons = [
        (polygon.text or '').strip()
        for polygon in _children(area_elem, 'polygon')
    ]
    return Area(
        description=_child_text(area_elem, 'areaDesc'),
        polygons=parse_polygon_set(raw_polygons),
        raw_polygons=raw_polygons,
    )


def _parse_info(info_elem: ET.Element) -> AlertDetail:
    return AlertDetail(
        severity=_child_text(info_elem, 'severity'),
        event=_child_text(info_elem, 'event'),
        onset=parse_feed_datetime(_child_text(info_elem, 'onset'), logger=logger),
        areas=[_parse_area(area) for area in _children(info_elem, 'area')],
        headline=_child_text(info_elem, 'headline'),
        urgency=_child_text(info_elem, 'urgency'),
        certainty=_child_text(info_elem, 'certainty'),
        expires=parse_feed_datetime(_child_text(info_elem, 'expires'), logger=logger),
        language=_child_text(info_elem, 'language'),
    )


def parse_cap_document(content: Union[bytes, str]) -> List[AlertDetail]:
    """Parse a CAP XML document into its ``<info>`` blocks.

    A document whose root is not ``<alert>``, or which carries no ``<info>``,
    yields an empty list. Malformed XML raises :class:`CAPParseError`.
    """

    if not content or not content.strip():
        raise CAPParseError("Empty CAP document")

    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise CAPParseError(f"XML parse error in CAP document: {exc}") from exc

    if _local_name(root.tag) != 'alert':
        logger.debug("CAP document root is <%s>, not <alert>", _local_name(root.tag))
        return []

    return [_parse_info(info) for info in _children(root, 'info')]


class CAPDetailResolver:
    """Fetch and parse the CAP document behind a feed item's link."""

    def __init__(self, fetcher: Fetcher, logger: Optional[logging.Logger] = None):
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, url: str) -> List[AlertDetail]:
        """Return the ``<info>`` blocks for ``url``.

        Raises:
            FeedError: ``DETAIL_TRANSPORT_FAILURE`` for network errors and
                non-2xx responses, ``DETAIL_PARSE_FAILURE`` for bad XML.
        """
        try:
            document = check_fetch_status(self.fetcher.fetch(url, headers=CAP_REQUEST_HEADERS))
        except FetchStatusError as exc:
            raise FeedError.from_exception(FeedErrorKind.DETAIL_TRANSPORT_FAILURE, url, exc) from exc
        except requests.exceptions.RequestException as exc:
            raise FeedError.from_exception(FeedErrorKind.DETAIL_TRANSPORT_FAILURE, url, exc) from exc
        except Exception as exc:
            self.logger.error("Unexpected error fetching CAP detail %s: %s", url, exc, exc_info=True)
            raise FeedError.from_exception(FeedErrorKind.DETAIL_TRANSPORT_FAILURE, url, exc) from exc

        try:
            details = parse_cap_document(document.content)
        except CAPParseError as exc:
            raise FeedError.from_exception(FeedErrorKind.DETAIL_PARSE_FAILURE, url, exc) from exc

        self.logger.debug("Resolved %d info block(s) from %s", len(details), url)
        return details
