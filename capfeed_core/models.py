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

"""Canonical alert records produced by the feed fetchers and CAP resolver."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from capfeed_utils.polygons import Polygon


@dataclass
class Area:
    """One CAP ``<area>`` block."""

    description: str = ""
    polygons: List[Optional[Polygon]] = field(default_factory=list)
    raw_polygons: List[str] = field(default_factory=list)

    def valid_polygons(self) -> List[Polygon]:
        return [polygon for polygon in self.polygons if polygon]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'areaDesc': self.description,
            'polygon': list(self.raw_polygons),
        }


@dataclass
class AlertDetail:
    """One CAP ``<info>`` block for an alert."""

    severity: str = ""
    event: str = ""
    onset: Optional[datetime] = None
    areas: List[Area] = field(default_factory=list)
    headline: str = ""
    urgency: str = ""
    certainty: str = ""
    expires: Optional[datetime] = None
    language: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'severity': self.severity,
            'event': self.event,
            'onset': self.onset.isoformat() if self.onset else None,
            'headline': self.headline,
            'urgency': self.urgency,
            'certainty': self.certainty,
            'expires': self.expires.isoformat() if self.expires else None,
            'language': self.language,
            'area': [area.to_dict() for area in self.areas],
        }


@dataclass(eq=False)
class AlertStub:
    """One raw feed entry, optionally enriched with its CAP detail.

    ``detail`` is ``None`` until the detail document has been resolved and a
    list (possibly empty) afterwards. Instances compare by identity: two feeds
    syndicating the same alert produce two distinct stubs.
    """

    title: str = ""
    description: str = ""
    published_at: Optional[datetime] = None
    detail_url: str = ""
    guid: str = ""
    category: str = ""
    requires_proxy: bool = True
    published_raw: str = ""
    detail: Optional[List[AlertDetail]] = None

    @property
    def has_detail(self) -> bool:
        return self.detail is not None

    @property
    def identity_key(self) -> str:
        """Best-effort identity used to decide whether an alert is new."""
        if self.guid:
            return f"guid:{self.guid}"
        if self.detail_url:
            return f"url:{self.detail_url}"
        return f"item:{self.title}|{self.published_raw}"

    def polygons(self) -> List[Polygon]:
        """Every parseable polygon across all details and areas."""
        polygons: List[Polygon] = []
        for detail in self.detail or []:
            for area in detail.areas:
                polygons.extend(area.valid_polygons())
        return polygons

    def area_descriptions(self) -> List[str]:
        return [
            area.description
            for detail in self.detail or []
            for area in detail.areas
            if area.description
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the stub for consumers and logging."""
        return {
            'title': self.title,
            'description': self.description,
            'pubdate': self.published_at.isoformat() if self.published_at else self.published_raw,
            'url': self.detail_url,
            'guid': self.guid,
            'category': self.category,
            'useCorsProxy': self.requires_proxy,
            'detail': [detail.to_dict() for detail in self.detail] if self.detail is not None else None,
        }
