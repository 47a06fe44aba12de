"""
Section Score Correlator
========================
Back-fills each finding with the aggregate score of its section.

The section summary is usually printed near the section title, either as
"Total Score: 14 Obtained: 11" or as a bare "14.0 11.0 78.57" row. The
bare-row heuristic accepts any three numbers A B C with A >= B and A < 200,
so unrelated numeric triples near a section title can be mistaken for its
score.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from .models import Line, NonComplianceFinding
from .patterns import to_float

logger = logging.getLogger(__name__)

EXPLICIT_SECTION_SCORE = re.compile(
    r"Total\s*Score\s*:\s*([\d.]+)\s*Obtained\s*:\s*([\d.]+)", re.IGNORECASE
)
NUMBER_TRIPLE = re.compile(
    r"([\d.]*\d[\d.]*)\s+([\d.]*\d[\d.]*)\s+([\d.]*\d[\d.]*)"
)

# Search window around the line naming the section: [i - BEFORE, i + AFTER)
WINDOW_BEFORE = 3
WINDOW_AFTER = 5

# Section names this short match too much text to be trusted
MIN_SECTION_NAME_LENGTH = 4

# Upper bound for a plausible section total in a bare number row
MAX_SECTION_TOTAL = 200


def find_section_score(
    lines: Sequence[Line], section: str
) -> Optional[tuple[float, float]]:
    """(total, obtained) for the first line naming ``section``, if found."""
    if len(section) < MIN_SECTION_NAME_LENGTH:
        return None

    for idx, line in enumerate(lines):
        if section not in line.text:
            continue

        start = max(0, idx - WINDOW_BEFORE)
        stop = min(len(lines), idx + WINDOW_AFTER)
        for candidate_idx in range(start, stop):
            text = lines[candidate_idx].text

            explicit = EXPLICIT_SECTION_SCORE.search(text)
            if explicit:
                return to_float(explicit.group(1)), to_float(explicit.group(2))

            triple = NUMBER_TRIPLE.search(text)
            if triple and candidate_idx != idx:
                total = to_float(triple.group(1))
                obtained = to_float(triple.group(2))
                if total >= obtained and total < MAX_SECTION_TOTAL:
                    return total, obtained

        # Only the first line naming the section is considered
        return None

    return None


def correlate_section_scores(
    findings: Sequence[NonComplianceFinding],
    lines: Sequence[Line],
) -> list[NonComplianceFinding]:
    """Copies of ``findings`` with section_total/section_obtained filled."""
    cache: dict[str, Optional[tuple[float, float]]] = {}
    correlated: list[NonComplianceFinding] = []

    for finding in findings:
        if finding.section not in cache:
            cache[finding.section] = find_section_score(lines, finding.section)
        score = cache[finding.section]

        if score is None:
            correlated.append(finding)
            continue

        total, obtained = score
        correlated.append(finding.model_copy(update={
            "section_total": total,
            "section_obtained": obtained,
        }))

    matched = sum(1 for section, score in cache.items() if score is not None)
    logger.debug(f"Section scores found for {matched}/{len(cache)} sections")
    return correlated
