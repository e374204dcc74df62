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

"""Restrict alerts to those whose CAP polygons contain a reference point."""

from typing import Iterable, List, Optional

from capfeed_utils.polygons import Point, contains_point
from .models import AlertStub


def is_alert_in_area(stub: AlertStub, point: Optional[Point]) -> bool:
    """Decide whether ``stub`` survives geographic filtering.

    Alerts without any parseable polygon cannot be placed and are kept.
    Otherwise the point must lie inside at least one polygon.
    """

    if point is None:
        return True
    polygons = stub.polygons()
    if not polygons:
        return True
    return any(contains_point(point, polygon) for polygon in polygons)


def filter_alerts(stubs: Iterable[AlertStub], point: Optional[Point]) -> List[AlertStub]:
    return [stub for stub in stubs if is_alert_in_area(stub, point)]
