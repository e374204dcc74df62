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

"""CAP polygon parsing and point-in-polygon tests.

CAP encodes an area polygon as whitespace separated ``"lat,lon"`` pairs::

    <polygon>-41.20,174.70 -41.35,174.70 -41.35,174.90 -41.20,174.90</polygon>

Vertices are kept in CAP order, ``(latitude, longitude)``. Rings are not
closed or validated here; the ray casting test treats the last vertex as
connected back to the first.
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Vertex = Tuple[float, float]
Polygon = List[Vertex]
Point = Tuple[float, float]


def _parse_coordinate(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_polygon_string(polygon_text: Optional[str]) -> Optional[Polygon]:
    """Parse a CAP polygon literal into a list of ``(lat, lon)`` vertices.

    Returns ``None`` when the text is empty or any coordinate is not numeric.
    Vertex count and ring closure are not checked.
    """

    if polygon_text is None:
        return None

    tokens = str(polygon_text).split()
    if not tokens:
        return None

    vertices: Polygon = []
    for token in tokens:
        parts = token.split(",")
        if len(parts) != 2:
            logger.debug("Rejecting polygon vertex %r: expected lat,lon", token)
            return None
        lat = _parse_coordinate(parts[0])
        lon = _parse_coordinate(parts[1])
        if lat is None or lon is None:
            logger.debug("Rejecting polygon vertex %r: non-numeric coordinate", token)
            return None
        vertices.append((lat, lon))

    return vertices


def parse_polygon_set(raw: Union[None, str, Iterable[Optional[str]]]) -> List[Optional[Polygon]]:
    """Parse a CAP polygon field that may hold one literal or several.

    Each entry is parsed on its own; an entry that fails yields ``None`` in
    the same position so callers can skip it.
    """

    if raw is None:
        return []
    if isinstance(raw, str):
        entries: Sequence[Optional[str]] = [raw]
    else:
        entries = list(raw)
    return [parse_polygon_string(entry) for entry in entries]


def contains_point(point: Point, polygon: Optional[Sequence[Vertex]]) -> bool:
    """Ray casting point-in-polygon test.

    Latitude is the y axis and longitude the x axis. Edges are half-open:
    a point on a minimum-latitude or minimum-longitude edge counts as inside,
    one on a maximum edge as outside.
    """

    if not polygon:
        return False

    lat, lon = point
    min_lat, min_lon, max_lat, max_lon = bounding_box(polygon)
    if lat < min_lat or lat > max_lat or lon < min_lon or lon > max_lon:
        return False

    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        lat_i, lon_i = polygon[i]
        lat_j, lon_j = polygon[j]
        if (lat_i > lat) != (lat_j > lat):
            crossing_lon = (lon_j - lon_i) * (lat - lat_i) / (lat_j - lat_i) + lon_i
            if lon < crossing_lon:
                inside = not inside
        j = i
    return inside


def bounding_box(polygon: Sequence[Vertex]) -> Optional[Tuple[float, float, float, float]]:
    """Return ``(min_lat, min_lon, max_lat, max_lon)`` for a polygon."""

    if not polygon:
        return None
    lats = [vertex[0] for vertex in polygon]
    lons = [vertex[1] for vertex in polygon]
    return min(lats), min(lons), max(lats), max(lons)
