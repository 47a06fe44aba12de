"""
Section Mapper
==============
Works out which named section each audit question belongs to.

Numbered templates print "2. Access Control" headers followed by the
section's own score block; every "2.x" question after it belongs to that
section until the next header. Un-numbered checklists have no such headers,
so their sections are anchored on the "Maximum Score" label printed next to
each section title instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from .models import Line
from .patterns import SCORE_BLOCK_LABEL, SECTION_HEADER, is_question_start

logger = logging.getLogger(__name__)

# "2.1 ..." lines are questions, never section headers
SUBQUESTION_PREFIX = re.compile(r"^\d+\.\d+\s")

QUESTION_ID = re.compile(r"^(\d{1,2}\.\d{1,2})\s")

SCORE_LABEL_SUFFIX = re.compile(
    r"\s*(Total\s*Score|Obtained|%\s*ACH).*$", re.IGNORECASE
)

TRAILING_CONJUNCTION = re.compile(r"\s+(and|&|or)\s*$", re.IGNORECASE)

# Lines that are score data rather than the wrapped half of a section title
NOT_A_TITLE_WORD = re.compile(
    r"Total\s*Score|Obtained|%\s*ACH|^\d+[\.\s%]|Maximum|Earned|Deducted",
    re.IGNORECASE,
)
AMOUNT_LINE = re.compile(r"^\d+\s*/\s*\d+")

# A header is only real if its score block sits on it or right below it
SCORE_BLOCK_LOOKAHEAD = 2


def _is_title_continuation(text: str) -> bool:
    return (
        2 < len(text) < 40
        and not NOT_A_TITLE_WORD.search(text)
        and not is_question_start(text)
        and not AMOUNT_LINE.match(text)
    )


def section_header_name(lines: Sequence[Line], idx: int) -> Optional[str]:
    """
    Section name if ``lines[idx]`` is a genuine numbered section header.

    Numbered narrative bullets ("1. Staff were friendly") look identical,
    so a header is accepted only when a score block label appears on the
    header line or within the next few lines.
    """
    text = lines[idx].text
    match = SECTION_HEADER.match(text)
    if not match or SUBQUESTION_PREFIX.match(text):
        return None

    window = lines[idx: idx + SCORE_BLOCK_LOOKAHEAD + 1]
    if not any(SCORE_BLOCK_LABEL.search(line.text) for line in window):
        return None

    name = SCORE_LABEL_SUFFIX.sub("", match.group(2)).strip()

    if idx + 1 < len(lines):
        following = lines[idx + 1].text.strip()
        if _is_title_continuation(following):
            name += " " + following

    return TRAILING_CONJUNCTION.sub("", name).strip()


def build_section_map(lines: Sequence[Line]) -> Mapping[str, str]:
    """
    Map every question id to the section it appears under.

    Questions seen before any accepted header map to "".
    """
    mapping: dict[str, str] = {}
    current_section = ""

    for idx, line in enumerate(lines):
        name = section_header_name(lines, idx)
        if name is not None:
            current_section = name
            logger.debug(f"Section '{name}' starts at line {idx}")

        question = QUESTION_ID.match(line.text)
        if question:
            mapping[question.group(1)] = current_section

    return MappingProxyType(mapping)


# ─── Maximum-Score Anchored Sections ─────────────────────────────────────────

MAXIMUM_SCORE = re.compile(r"Maximum\s*Score", re.IGNORECASE)

ANCHOR_STAT_LINE = re.compile(
    r"Maximum|Total\s*Score|Earned|Deducted|^\d|^Non$|Compliant|^0%|^\d+%",
    re.IGNORECASE,
)
ANCHOR_METADATA_LINE = re.compile(
    r"Process\s*Name|Overall\s*Report|Reference|Author|Filled|Report",
    re.IGNORECASE,
)
QUESTION_PROMPT = re.compile(
    r"^(Is |Are |How |Do |Does |Who |Please |If )", re.IGNORECASE
)
ANY_SCORE = re.compile(r"\d+\s*/\s*\d+")

# Section titles follow their "Maximum Score" label within this many lines
ANCHOR_LOOKAHEAD = 6


@dataclass(frozen=True)
class SectionAnchor:
    """A section title and the index of the label line it hangs off."""
    name: str
    line_index: int


def _is_anchor_title(text: str) -> bool:
    return (
        3 < len(text) < 80
        and not ANCHOR_STAT_LINE.search(text)
        and not ANCHOR_METADATA_LINE.search(text)
        and not QUESTION_PROMPT.match(text)
        and not ANY_SCORE.search(text)
    )


def find_score_anchored_sections(lines: Sequence[Line]) -> list[SectionAnchor]:
    """Sections of an un-numbered checklist, in reading order."""
    anchors: list[SectionAnchor] = []

    for idx, line in enumerate(lines):
        if not MAXIMUM_SCORE.search(line.text):
            continue
        stop = min(len(lines), idx + ANCHOR_LOOKAHEAD + 1)
        for candidate_idx in range(idx + 1, stop):
            candidate = lines[candidate_idx].text.strip()
            if _is_anchor_title(candidate):
                anchors.append(SectionAnchor(name=candidate, line_index=idx))
                break

    logger.debug(f"Found {len(anchors)} score-anchored sections")
    return anchors


def section_for_line(anchors: Sequence[SectionAnchor], index: int) -> str:
    """Name of the last section anchored at or before ``index``."""
    best = ""
    for anchor in anchors:
        if anchor.line_index <= index:
            best = anchor.name
    return best
