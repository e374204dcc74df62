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

"""Plain-text helpers for feed item descriptions."""

import re
import warnings
from typing import Any

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

_TAG_RE = re.compile(r"(<([^>]+)>)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def strip_tags(value: Any) -> str:
    """Remove anything that looks like a markup tag."""

    if value is None:
        return ""
    return _TAG_RE.sub("", str(value))


def html_to_text(value: Any) -> str:
    """Convert an HTML fragment to plain text without wrapping lines.

    Entities are decoded and runs of whitespace collapse to single spaces.
    """

    if not value:
        return ""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        text = BeautifulSoup(str(value), "html.parser").get_text()
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_description(value: Any) -> str:
    """Strip tags from a feed description, then flatten it to plain text."""

    return html_to_text(strip_tags(value))
