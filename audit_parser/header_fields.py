"""
Header Field Extractor
======================
Pulls store and visit metadata out of the flattened report text.

Every field has an ordered list of patterns, most structured layout first.
The first pattern that matches anywhere in the text wins; a field nobody
matches stays empty.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)


def _patterns(*sources: str) -> list[re.Pattern]:
    return [re.compile(source, re.IGNORECASE) for source in sources]


HEADER_FIELD_PATTERNS: dict[str, list[re.Pattern]] = {
    "store_name": _patterns(
        r"Store\s*Name\s+(.+?)(?:\s+Reference|\n)",
        r"Report\s*On\s+(.+?)(?:\n|$)",
    ),
    "reference_id": _patterns(
        r"Reference\s*ID\s*[:\-]?\s*([A-Z0-9\-]+)",
        r"Reference\s+([A-Z0-9\-]+)",
    ),
    "store_manager": _patterns(
        r"Store\s*Manager\s*[:\-]?\s*(.+?)(?:\n|Submitted|Area)",
    ),
    "submitted_by": _patterns(
        r"Submitted\s*By\s*[:\-]?\s*(.+?)(?:\n|Area|Reviewed)",
        r"Filled\s*By\s+(.+?)(?:\s*\(|\n)",
    ),
    "area_manager": _patterns(
        r"Area\s*Manager\s*[:\-]?\s*(.+?)(?:\n|Reviewed|Regional)",
    ),
    "reviewed_by": _patterns(
        r"Reviewed\s*By\s*[:\-]?\s*(.+?)(?:\n|Regional|Current)",
        r"Report\s*By\s+(.+?)(?:\n|$)",
    ),
    "visit_date": _patterns(
        r"Current\s*Visit\s*Date\s*[:\-]?\s*([\d\-\/]+)",
        r"Report\s*Date\s+([\d]+\s+\w+\s+\d{4})",
    ),
    "last_visit_date": _patterns(
        r"Last\s*Visit\s*Date\s*[:\-]?\s*([\d\-\/]+)",
    ),
}


def grab(text: str, patterns: list[re.Pattern]) -> str:
    """First captured group of the first matching pattern, trimmed."""
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return ""


def extract_header_fields(text: str) -> dict[str, str]:
    """Resolve every header field against the full document text."""
    fields = {
        name: grab(text, patterns)
        for name, patterns in HEADER_FIELD_PATTERNS.items()
    }
    found = sum(1 for value in fields.values() if value)
    logger.debug(f"Header fields resolved: {found}/{len(fields)}")
    return fields
