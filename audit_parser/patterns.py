"""
Line Patterns
=============
Compiled regexes, numeric helpers and named guard predicates shared by the
section mapper, the non-compliance detector and the score resolvers.

Each guard answers one question about a single reconstructed line so the
stop conditions of the multi-line stitching can be tested in isolation.
"""

from __future__ import annotations

import re
from typing import Optional

# ─── Numeric Tokens ───────────────────────────────────────────────────────────

# A run of digits and dots containing at least one digit: "14.0", "92", "1.2.3"
NUMBER_TOKEN = re.compile(r"[\d.]*\d[\d.]*")

# Leading numeric prefix of a token: "1.2.3" -> "1.2", ".5" -> ".5"
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")

# "92%", "4.5%" (value captured)
PERCENT_VALUE = re.compile(r"([\d.]*\d[\d.]*)%")

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# "2.3 Are fire exits clear..." (id and remainder captured)
QUESTION_LINE = re.compile(r"^(\d{1,2}\.\d{1,2})\s+(.+)")

# Question id at line start, used as a stop condition
QUESTION_START = re.compile(r"^\d{1,2}\.\d{1,2}\s")

# "2. Access Control" (number and name captured)
SECTION_HEADER = re.compile(r"^(\d{1,2})\.\s+([A-Za-z].+)")

# "2. Access" as a block boundary (capitalized section title)
SECTION_HEADER_START = re.compile(r"^\d{1,2}\.\s+[A-Z]")

# "1/3", "0 / 10" (obtained and max captured)
SCORE_PAIR = re.compile(r"(\d+)\s*/\s*(\d+)")

# Line that is only a score or only a percentage
PURE_SCORE = re.compile(r"^\d+\s*/\s*\d+$")
PURE_PERCENT = re.compile(r"^\d+\.?\d*%$")

# Answer word followed later by a score: "Good 3/5", "No 0/2"
ANSWER_SCORE_LINE = re.compile(
    r"\b(Yes|No|Poor|Average|Good|Excellent)\b.*\d+\s*/\s*\d+"
)

# Section-level score block labels
SCORE_BLOCK_LABEL = re.compile(r"Total\s*Score|Obtained|%\s*ACH", re.IGNORECASE)

# Summary labels that end a question block when they open a line
SCORE_LABEL_START = re.compile(
    r"^(?:Total\s*Score|%\s*ACH|Obtained)", re.IGNORECASE
)

COMMENTS_LABEL = re.compile(r"^Comments:\s*", re.IGNORECASE)

# Rating words and scores trailing a question line
RATING_CLEANUP_PATTERNS = [
    re.compile(
        r"(?:^|\s+)(No|Poor|Average|Good|Excellent)\s+\d+\s*/\s*\d+.*$",
        re.IGNORECASE,
    ),
    re.compile(r"(?:^|\s+)(No|Poor|Average|Good|Excellent)\s*$", re.IGNORECASE),
    re.compile(r"(?:^|\s+)\d+\s*/\s*\d+.*$"),
]


# ─── Numeric Helpers ──────────────────────────────────────────────────────────


def to_float(token: Optional[str], default: float = 0.0) -> float:
    """Parse the leading number of a token; default when there is none."""
    if not token:
        return default
    match = _LEADING_NUMBER.match(token)
    if not match:
        return default
    return float(match.group())


def number_tokens(text: str) -> list[str]:
    """All numeric tokens of a line, in order."""
    return NUMBER_TOKEN.findall(text)


def find_score_pair(text: str) -> Optional[tuple[int, int]]:
    """First obtained/max pair in a line, if any."""
    match = SCORE_PAIR.search(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def strip_rating(text: str) -> str:
    """Remove a trailing rating word and score fragment from question text."""
    for pattern in RATING_CLEANUP_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


# ─── Guard Predicates ─────────────────────────────────────────────────────────


def is_question_start(text: str) -> bool:
    return bool(QUESTION_START.match(text))


def is_section_header_start(text: str) -> bool:
    return bool(SECTION_HEADER_START.match(text))


def is_answer_score_line(text: str) -> bool:
    return bool(ANSWER_SCORE_LINE.search(text))


def is_score_label_line(text: str) -> bool:
    return bool(SCORE_LABEL_START.match(text))


def is_comments_label(text: str) -> bool:
    return bool(COMMENTS_LABEL.match(text))


def is_pure_score(text: str) -> bool:
    """Bare "3/5" or "60%" lines carry no question or comment text."""
    return bool(PURE_SCORE.match(text) or PURE_PERCENT.match(text))


def is_block_boundary(text: str) -> bool:
    """Line that starts something other than the current question block."""
    return (
        is_question_start(text)
        or is_section_header_start(text)
        or is_answer_score_line(text)
        or is_score_label_line(text)
    )


def is_text_fragment(text: str) -> bool:
    """Plausible wrapped question text between a question id and its score."""
    return 3 < len(text) < 200 and not PURE_SCORE.match(text)


def is_trailing_continuation(text: str) -> bool:
    """
    A single short line after the score line that finishes the question,
    e.g. "Service for OTC and Non-Pharma Products)".
    """
    if not 3 < len(text) < 80:
        return False
    if re.match(r"^\d{1,2}[.\s]", text):
        return False
    if re.match(r"^Comments", text, re.IGNORECASE):
        return False
    if re.match(r"^Total\s*Score", text, re.IGNORECASE):
        return False
    if SCORE_PAIR.search(text) or PURE_PERCENT.match(text):
        return False
    return not text.startswith("-")
