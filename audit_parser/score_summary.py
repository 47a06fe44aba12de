"""
Score Summary Resolver
======================
Determines the overall current/previous/total score of an audit.

Report templates print the summary in very different layouts, so the
resolver runs an ordered cascade of independent strategies. Each strategy is
a pure function ``(lines, text) -> Optional[ScoreSummary]`` that returns only
the fields it actually found. Results are merged in order and the cascade
stops at the first strategy after which a current score is known.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from .models import Line, percentage_of
from .patterns import PERCENT_VALUE, number_tokens, to_float

logger = logging.getLogger(__name__)


class ScoreSummary(BaseModel):
    """Partial or resolved score facts. Unset fields are not merged."""
    current_score: float = 0
    total_score: float = 0
    previous_score: float = 0
    percentage: float = 0
    difference: str = ""
    source: Optional[str] = None


ScoreStrategy = Callable[[Sequence[Line], str], Optional[ScoreSummary]]


# ─── Shared Helpers ───────────────────────────────────────────────────────────

EXPLICIT_DIFFERENCE = re.compile(r"(-[\d.]*\d[\d.]*%)")
DOWN_ARROW_DIFFERENCE = re.compile(r"([\d.]*\d[\d.]*)%\s*↓")
UP_ARROW_DIFFERENCE = re.compile(r"([\d.]*\d[\d.]*)%\s*↑")


def parse_difference(text: str, percentage: Optional[float] = None) -> str:
    """
    Signed difference from a summary value line.

    An explicit "-2.5%" wins; otherwise an arrowed value is signed by its
    arrow. When ``percentage`` is given, an arrowed value equal to it is the
    percentage itself and is ignored.
    """
    explicit = EXPLICIT_DIFFERENCE.search(text)
    if explicit:
        return explicit.group(1)

    for pattern, sign in ((DOWN_ARROW_DIFFERENCE, "-"), (UP_ARROW_DIFFERENCE, "+")):
        match = pattern.search(text)
        if not match:
            continue
        if percentage is not None and to_float(match.group(1)) == percentage:
            continue
        return f"{sign}{match.group(1)}%"
    return ""


# ─── Strategy 1: Header/Value Table ───────────────────────────────────────────


def header_value_table(lines: Sequence[Line], text: str) -> Optional[ScoreSummary]:
    """
    "Previous Total Score ... Current Score" header row followed by a value
    row: previous-total, previous-score, current-total, current-score.
    """
    for idx in range(len(lines) - 1):
        header = lines[idx].text
        if "Previous Total Score" not in header or "Current Score" not in header:
            continue

        values = lines[idx + 1].text
        tokens = number_tokens(values)
        if len(tokens) < 4:
            return None

        found = {
            "total_score": to_float(tokens[2]) or to_float(tokens[0]),
            "current_score": to_float(tokens[3]),
            "previous_score": to_float(tokens[1]),
        }
        pct = PERCENT_VALUE.search(values)
        if pct:
            found["percentage"] = to_float(pct.group(1))
        difference = parse_difference(values)
        if difference:
            found["difference"] = difference
        return ScoreSummary(**found)

    return None


# ─── Strategy 2: Summary Block ────────────────────────────────────────────────

SUMMARY_HEADING = re.compile(r"^Summary$", re.IGNORECASE)
SECTION_SUMMARY_HEADING = re.compile(r"^Section\s*Summary$", re.IGNORECASE)
SUMMARY_WINDOW = 15


def summary_block(lines: Sequence[Line], text: str) -> Optional[ScoreSummary]:
    """Value row with a percentage between "Summary" and "Section Summary"."""
    summary_idx = -1
    section_idx = -1
    for idx, line in enumerate(lines):
        label = line.text.strip()
        if summary_idx == -1 and SUMMARY_HEADING.match(label):
            summary_idx = idx
        if SECTION_SUMMARY_HEADING.match(label):
            section_idx = idx
            break

    if summary_idx < 0:
        return None

    if section_idx > summary_idx:
        end = section_idx
    else:
        end = min(summary_idx + SUMMARY_WINDOW, len(lines))

    for idx in range(summary_idx + 1, end):
        values = lines[idx].text
        pct = PERCENT_VALUE.search(values)
        if not pct:
            continue
        tokens = number_tokens(values)
        if len(tokens) < 2:
            continue

        percentage = to_float(pct.group(1))
        found = {
            "previous_score": to_float(tokens[0]),
            "current_score": to_float(tokens[1]),
            "percentage": percentage,
        }
        difference = parse_difference(values, percentage=percentage)
        if difference:
            found["difference"] = difference

        for other_idx in range(summary_idx + 1, end):
            if other_idx == idx:
                continue
            other = lines[other_idx].text
            other_tokens = number_tokens(other)
            if len(other_tokens) >= 2 and "%" not in other:
                found["total_score"] = (
                    to_float(other_tokens[1]) or to_float(other_tokens[0])
                )
                break

        return ScoreSummary(**found)

    return None


# ─── Strategy 3: Inline Labels ────────────────────────────────────────────────

INLINE_LABEL_PATTERNS = {
    "current_score": re.compile(r"Current\s+Score\s*[:\-]\s*([\d.]+)", re.IGNORECASE),
    "total_score": re.compile(
        r"Current\s+Total\s+Score\s*[:\-]\s*([\d.]+)", re.IGNORECASE
    ),
    "previous_score": re.compile(r"Previous\s+Score\s*[:\-]\s*([\d.]+)", re.IGNORECASE),
    "percentage": re.compile(r"Current\s*%\s*ACH\s*[:\-]\s*([\d.]+)", re.IGNORECASE),
}
INLINE_DIFFERENCE = re.compile(r"Difference\s*[:\-]\s*(-?[\d.]+%?)", re.IGNORECASE)


def inline_labels(lines: Sequence[Line], text: str) -> Optional[ScoreSummary]:
    """Standalone "Current Score : 189.0" style values anywhere in the text."""
    found: dict = {}
    for name, pattern in INLINE_LABEL_PATTERNS.items():
        match = pattern.search(text)
        if match:
            found[name] = to_float(match.group(1))

    difference = INLINE_DIFFERENCE.search(text)
    if difference:
        found["difference"] = difference.group(1)

    return ScoreSummary(**found) if found else None


# ─── Strategy 4: Points Available / Percentage ───────────────────────────────

POINTS_AVAILABLE = re.compile(r"Points\s*available", re.IGNORECASE)
POINTS_AVAILABLE_VALUE = re.compile(r"Points\s*available\s*([\d.]+)", re.IGNORECASE)
LONE_NUMBER = re.compile(r"^([\d.]+)$")
EARNED_SCORE = re.compile(r"^Earned\s*Score\s+([\d.]+)$", re.IGNORECASE)
PERCENTAGE_LABEL = re.compile(r"Percentage", re.IGNORECASE)
SPACED_PERCENT = re.compile(r"([\d.]*\d[\d.]*)\s*%")


def points_available(lines: Sequence[Line], text: str) -> Optional[ScoreSummary]:
    """Checklist layout: "Points available", "Earned Score", "Percentage"."""
    found: dict = {}
    for idx, line in enumerate(lines):
        current = line.text
        following = lines[idx + 1].text if idx + 1 < len(lines) else None

        if POINTS_AVAILABLE.search(current):
            match = POINTS_AVAILABLE_VALUE.search(current)
            if match:
                found["total_score"] = to_float(match.group(1))
            elif following is not None:
                lone = LONE_NUMBER.match(following)
                if lone:
                    found["total_score"] = to_float(lone.group(1))

        earned = EARNED_SCORE.match(current)
        if earned:
            found["current_score"] = to_float(earned.group(1))

        if PERCENTAGE_LABEL.search(current):
            match = SPACED_PERCENT.search(current)
            if not match and following is not None:
                match = SPACED_PERCENT.search(following)
            if match:
                found["percentage"] = to_float(match.group(1))

    return ScoreSummary(**found) if found else None


DEFAULT_STRATEGIES: tuple[ScoreStrategy, ...] = (
    header_value_table,
    summary_block,
    inline_labels,
    points_available,
)


# ─── Cascade ──────────────────────────────────────────────────────────────────


class ScoreSummaryResolver:
    """
    First-match-wins combinator over score strategies.

    The strategy list is configurable so new template variants can be
    supported by adding a function rather than another parser copy.
    """

    def __init__(self, strategies: Optional[Sequence[ScoreStrategy]] = None):
        if strategies is None:
            strategies = DEFAULT_STRATEGIES
        self.strategies = list(strategies)

    def resolve(self, lines: Sequence[Line], text: str) -> ScoreSummary:
        summary = ScoreSummary()

        for strategy in self.strategies:
            partial = strategy(lines, text)
            if partial is None:
                continue
            summary = summary.model_copy(
                update=partial.model_dump(exclude_unset=True)
            )
            if summary.current_score:
                name = getattr(strategy, "__name__", type(strategy).__name__)
                summary = summary.model_copy(update={"source": name})
                logger.debug(f"Score summary resolved by {name}")
                break

        if (
            not summary.percentage
            and summary.current_score > 0
            and summary.total_score > 0
        ):
            summary = summary.model_copy(update={
                "percentage": percentage_of(
                    summary.current_score, summary.total_score
                ),
            })

        return summary
