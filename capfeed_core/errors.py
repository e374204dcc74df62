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

"""Error kinds raised and reported by the CAP feed pipeline."""

import socket
from enum import Enum
from typing import Any, Dict, Optional

import requests


class FeedErrorKind(Enum):
    """Classification attached to every FEED_ERROR notification."""
    MALFORMED_URL = 'MODULE_ERROR_MALFORMED_URL'
    FEED_TRANSPORT_FAILURE = 'FEED_TRANSPORT_FAILURE'
    FEED_PARSE_FAILURE = 'FEED_PARSE_FAILURE'
    DETAIL_TRANSPORT_FAILURE = 'DETAIL_TRANSPORT_FAILURE'
    DETAIL_PARSE_FAILURE = 'DETAIL_PARSE_FAILURE'


REASON_NO_CONNECTION = 'MODULE_ERROR_NO_CONNECTION'
REASON_UNAUTHORIZED = 'MODULE_ERROR_UNAUTHORIZED'
REASON_UNSPECIFIED = 'MODULE_ERROR_UNSPECIFIED'


class FetchStatusError(Exception):
    """Raised when an HTTP response carries a non-2xx status."""

    def __init__(self, url: str, status_code: int, reason: str = ''):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code} {reason}".strip() + f" for {url}")


class FeedParseError(Exception):
    """Raised when a feed document cannot be decoded or parsed."""


class CAPParseError(Exception):
    """Raised when a CAP detail document is not well-formed XML."""


class FeedError(Exception):
    """A classified, non-fatal pipeline failure."""

    def __init__(
        self,
        kind: FeedErrorKind,
        url: str = '',
        message: str = '',
        reason: str = REASON_UNSPECIFIED,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.url = url
        self.message = message
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{kind.name} ({url}): {message}" if message else f"{kind.name} ({url})")

    @classmethod
    def from_exception(cls, kind: FeedErrorKind, url: str, exc: BaseException) -> 'FeedError':
        return cls(
            kind,
            url=url,
            message=str(exc),
            reason=classify_fetch_error(exc),
            status_code=getattr(exc, 'status_code', None),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Payload for a FEED_ERROR notification."""
        return {
            'error_type': self.kind.value,
            'error_kind': self.kind.name,
            'reason': self.reason,
            'url': self.url,
            'status_code': self.status_code,
            'message': self.message,
        }


def classify_fetch_error(exc: BaseException) -> str:
    """Map a transport exception to a coarse reason label."""

    if isinstance(exc, FetchStatusError):
        if exc.status_code in (401, 403):
            return REASON_UNAUTHORIZED
        return REASON_UNSPECIFIED
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout, socket.gaierror)):
        return REASON_NO_CONNECTION
    return REASON_UNSPECIFIED
