"""
Non-Compliance Detector
=======================
Finds audit questions that scored below their maximum.

Two passes:
    - Pass 1 (numbered templates): every "X.Y question" line whose score
      pair obtained/max shows lost points. Each question block is walked by
      a small state machine that stitches wrapped question text and collects
      the auditor comments printed under it.
    - Pass 2 (un-numbered checklists): only when Pass 1 finds nothing. Every
      "0/N" score is a failed item; its question text is stitched from the
      surrounding lines.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from .models import DetectionPass, Line, NonComplianceFinding
from .patterns import (
    COMMENTS_LABEL,
    QUESTION_LINE,
    collapse_whitespace,
    find_score_pair,
    is_block_boundary,
    is_comments_label,
    is_pure_score,
    is_question_start,
    is_text_fragment,
    is_trailing_continuation,
    strip_rating,
)
from .sections import (
    SectionAnchor,
    find_score_anchored_sections,
    section_for_line,
)

logger = logging.getLogger(__name__)

# Lines after the question line that may still hold its score
SCORE_LOOKAHEAD = 4

# Lines after a question block scanned for auditor comments
COMMENT_WINDOW = 20

MAX_COMMENT_LENGTH = 300

COMMENTS_BULLET = re.compile(r"Comments:\s*-", re.IGNORECASE)
UP_TO_COMMENTS_LABEL = re.compile(r".*Comments:\s*", re.IGNORECASE)


def truncate_comment(text: str, limit: int = MAX_COMMENT_LENGTH) -> str:
    """Cut a comment to ``limit`` characters, ending in an ellipsis."""
    text = text.strip()
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


# ═══════════════════════════════════════════════════════════════════════════════
# PASS 1: NUMBERED QUESTIONS
# ═══════════════════════════════════════════════════════════════════════════════


class ScanState(Enum):
    """States of one question block walk."""
    SEEKING_SCORE = "SEEKING_SCORE"
    COLLECTING_CONTINUATION = "COLLECTING_CONTINUATION"
    COLLECTING_COMMENTS = "COLLECTING_COMMENTS"
    DONE = "DONE"


@dataclass
class QuestionBlock:
    """Accumulator for one numbered question while it is being scanned."""
    question_id: str
    start: int
    parts: list[str] = field(default_factory=list)
    score_index: int = -1
    obtained: int = -1
    maximum: int = -1
    cursor: int = 0
    comments: list[str] = field(default_factory=list)

    @property
    def lost_points(self) -> bool:
        return self.maximum > 0 and self.obtained < self.maximum


class NumberedItemScanner:
    """
    Finite state machine that turns the lines following an "X.Y" question
    line into a question block:

        SEEKING_SCORE → COLLECTING_CONTINUATION → COLLECTING_COMMENTS → DONE

    A block whose score is missing or at full marks goes straight to DONE
    and is discarded.
    """

    def __init__(self, lines: Sequence[Line]):
        self.lines = lines

    def scan(self, start: int) -> Optional[QuestionBlock]:
        match = QUESTION_LINE.match(self.lines[start].text)
        if not match:
            return None

        block = QuestionBlock(question_id=match.group(1), start=start)
        block.parts.append(strip_rating(match.group(2)))

        state = ScanState.SEEKING_SCORE
        while state is not ScanState.DONE:
            if state is ScanState.SEEKING_SCORE:
                state = self._seek_score(block)
            elif state is ScanState.COLLECTING_CONTINUATION:
                state = self._collect_continuation(block)
            elif state is ScanState.COLLECTING_COMMENTS:
                state = self._collect_comments(block)

        return block if block.lost_points else None

    def _seek_score(self, block: QuestionBlock) -> ScanState:
        lines = self.lines
        pair = find_score_pair(lines[block.start].text)
        if pair:
            block.score_index = block.start
        else:
            stop = min(block.start + SCORE_LOOKAHEAD, len(lines) - 1)
            for idx in range(block.start + 1, stop + 1):
                text = lines[idx].text
                if is_question_start(text):
                    break
                pair = find_score_pair(text)
                if pair:
                    block.score_index = idx
                    break

        if pair is None:
            return ScanState.DONE

        block.obtained, block.maximum = pair
        if not block.lost_points:
            return ScanState.DONE

        # Wrapped question text printed before the score
        for idx in range(block.start + 1, block.score_index):
            text = lines[idx].text
            if is_block_boundary(text) or is_comments_label(text):
                break
            if is_text_fragment(text):
                block.parts.append(text)

        if block.score_index > block.start:
            remainder = strip_rating(lines[block.score_index].text)
            if remainder:
                block.parts.append(remainder)

        return ScanState.COLLECTING_CONTINUATION

    def _collect_continuation(self, block: QuestionBlock) -> ScanState:
        block.cursor = block.score_index + 1
        if block.cursor < len(self.lines):
            text = self.lines[block.cursor].text
            if is_trailing_continuation(text):
                block.parts.append(text)
                block.cursor += 1
        return ScanState.COLLECTING_COMMENTS

    def _collect_comments(self, block: QuestionBlock) -> ScanState:
        stop = min(block.cursor + COMMENT_WINDOW, len(self.lines))
        for idx in range(block.cursor, stop):
            text = self.lines[idx].text
            if is_block_boundary(text):
                break
            if is_pure_score(text):
                continue

            label = COMMENTS_LABEL.match(text)
            if label:
                remainder = text[label.end():].strip()
                if len(remainder) > 2:
                    block.comments.append(remainder)
                continue

            if COMMENTS_BULLET.search(text):
                remainder = UP_TO_COMMENTS_LABEL.sub("", text, count=1).strip()
                if len(remainder) > 2:
                    block.comments.append(remainder)
                continue

            if len(text) > 3:
                block.comments.append(text)

        return ScanState.DONE


# ═══════════════════════════════════════════════════════════════════════════════
# PASS 2: UN-NUMBERED CHECKLIST ITEMS
# ═══════════════════════════════════════════════════════════════════════════════

ZERO_SCORE = re.compile(r"\b0\s*/\s*(\d+)")
ZERO_SCORE_TAIL = re.compile(r"\b0\s*/\s*\d+.*$")

# Answer tokens printed between a checklist question and its score
ANSWER_TOKEN_TAIL = re.compile(
    r"\s+(Yes|No|NA|Occasionally|Fully\s+\w+|Most\s+of\s+the\s+Time|Daily|"
    r"Bi-weekly|User-Friendly|Meeting\s+Expectations|Highly\s+Effective|"
    r"Store\s+\S+(\s+\S+)?|Fully\s+Aligned)\s*$",
    re.IGNORECASE,
)

SCORE_LABEL = re.compile(
    r"Maximum\s*Score|Total\s*Score|Earned\s*Score|Deducted\s*Score",
    re.IGNORECASE,
)
STAT_LINE = re.compile(r"^\d+%$|^Non$|^Compliant$|^0%$", re.IGNORECASE)
WORD_SCORE = re.compile(r"\b\d+\s*/\s*\d+\b")
SUBPROMPT_OR_COMMENT_START = re.compile(r"^(If |Comments:)", re.IGNORECASE)
COMMENTS_ANYWHERE = re.compile(r"Comments:", re.IGNORECASE)
PERCENT_BLANK = "_%"

FORWARD_STOP = re.compile(
    r"^\d{1,2}\.\d|Maximum\s*Score|Total\s*Score|Earned\s*Score", re.IGNORECASE
)
COMMENTS_START = re.compile(r"^Comments:", re.IGNORECASE)
IF_YES_NO_PROMPT = re.compile(r"^If\s+(no|yes)", re.IGNORECASE)

REPEATED_WORDS = re.compile(r"\b(\w+(?:\s+\w+)?)\s+\1\b", re.IGNORECASE)
IF_SUBPROMPT_TAIL = re.compile(r"\s*If\s+(yes|no),?\s+.*", re.IGNORECASE)
INLINE_ANSWER_TAIL = re.compile(r"\s*::.*$")
LEAKED_COMMENT = re.compile(r"\s*Comments?:\s*(.+)", re.IGNORECASE)

INLINE_COMMENT_MARKER = re.compile(r"::\s*(.+)")
COMMENT_LABEL_VALUE = re.compile(r"^Comments?:\s*(.+)", re.IGNORECASE)
COMMENT_LABEL_PREFIX = re.compile(r"^Comments?:\s*", re.IGNORECASE)
NEW_FIELD_START = re.compile(
    r"^\d|Maximum|Total|Earned|^Comments|^Are |^Is |^Do |^How |^Who ",
    re.IGNORECASE,
)
COMMENT_SCAN_STOP = re.compile(r"Maximum\s*Score|Total\s*Score", re.IGNORECASE)

STITCH_WINDOW = 5
COMMENT_LOOKAHEAD = 8


class UnnumberedItemScanner:
    """Recovers zero-scored checklist items that carry no question number."""

    def __init__(self, lines: Sequence[Line], anchors: Sequence[SectionAnchor]):
        self.lines = lines
        self.anchors = anchors
        self.section_names = {anchor.name for anchor in anchors}

    def question_text(self, idx: int) -> tuple[str, str]:
        """
        Stitched question text for the zero score on ``lines[idx]``, plus
        any comment that leaked into it.
        """
        text = self.lines[idx].text
        before_score = ZERO_SCORE_TAIL.sub("", text).strip()
        cleaned = ANSWER_TOKEN_TAIL.sub("", before_score).strip()

        parts: list[str] = []
        if len(cleaned) > 10:
            parts.append(cleaned)

        if not parts or len(cleaned) < 30:
            parts = self._stitch_backward(idx) + parts
        parts.extend(self._stitch_forward(idx))

        question = collapse_whitespace(" ".join(parts))
        question = REPEATED_WORDS.sub(r"\1", question)
        question = IF_SUBPROMPT_TAIL.sub("", question, count=1).strip()
        question = INLINE_ANSWER_TAIL.sub("", question).strip()

        comment = ""
        leaked = LEAKED_COMMENT.search(question)
        if leaked:
            comment = leaked.group(1).strip()
            question = LEAKED_COMMENT.sub("", question, count=1).strip()

        return question, comment

    def _stitch_backward(self, idx: int) -> list[str]:
        parts: list[str] = []
        for prev_idx in range(idx - 1, max(0, idx - STITCH_WINDOW) - 1, -1):
            prev = self.lines[prev_idx].text.strip()
            if SCORE_LABEL.search(prev) or STAT_LINE.search(prev):
                break
            if WORD_SCORE.search(prev) and prev_idx < idx - 1:
                break
            if prev in self.section_names:
                break
            if SUBPROMPT_OR_COMMENT_START.match(prev) or COMMENTS_ANYWHERE.search(prev):
                break
            if PERCENT_BLANK in prev:
                continue
            if 3 < len(prev) < 200:
                parts.insert(0, prev)
        return parts

    def _stitch_forward(self, idx: int) -> list[str]:
        parts: list[str] = []
        stop = min(idx + STITCH_WINDOW + 1, len(self.lines))
        for next_idx in range(idx + 1, stop):
            following = self.lines[next_idx].text.strip()
            if FORWARD_STOP.search(following) or COMMENTS_START.match(following):
                break
            if IF_YES_NO_PROMPT.match(following):
                continue
            if WORD_SCORE.search(following):
                continue
            if 2 < len(following) < 100 and PERCENT_BLANK not in following:
                if following.endswith("?") or re.match(r"^[a-z]", following):
                    parts.append(following)
        return parts

    def nearby_comment(self, idx: int) -> str:
        """Comment printed after a failed item: "::" answer or "Comments:" label."""
        lines = self.lines
        stop = min(idx + COMMENT_LOOKAHEAD, len(lines))
        for next_idx in range(idx + 1, stop):
            text = lines[next_idx].text.strip()

            comment = None
            inline = INLINE_COMMENT_MARKER.search(text)
            if inline:
                comment = inline.group(1).strip()
            elif COMMENT_LABEL_VALUE.match(text):
                comment = COMMENT_LABEL_PREFIX.sub("", text).strip()

            if comment is not None:
                if next_idx + 1 < len(lines):
                    continuation = lines[next_idx + 1].text
                    if not NEW_FIELD_START.search(continuation):
                        comment += " " + continuation.strip()
                return comment

            if COMMENT_SCAN_STOP.search(text):
                break
        return ""


# ═══════════════════════════════════════════════════════════════════════════════
# DETECTOR
# ═══════════════════════════════════════════════════════════════════════════════


class NonComplianceDetector:
    """Runs Pass 1 and, only when it finds nothing, Pass 2."""

    def __init__(self, max_comment_length: int = MAX_COMMENT_LENGTH):
        self.max_comment_length = max_comment_length

    def detect(
        self,
        lines: Sequence[Line],
        section_map: Mapping[str, str],
    ) -> tuple[list[NonComplianceFinding], DetectionPass]:
        findings = self.detect_numbered(lines, section_map)
        if findings:
            return findings, DetectionPass.NUMBERED

        logger.info("No numbered findings, falling back to checklist scan")
        findings = self.detect_unnumbered(lines)
        if findings:
            return findings, DetectionPass.UNNUMBERED

        return [], DetectionPass.NONE

    def detect_numbered(
        self,
        lines: Sequence[Line],
        section_map: Mapping[str, str],
    ) -> list[NonComplianceFinding]:
        """Pass 1. Sorted by numeric (major, minor) id."""
        scanner = NumberedItemScanner(lines)
        findings: dict[str, NonComplianceFinding] = {}

        for idx, line in enumerate(lines):
            if not QUESTION_LINE.match(line.text):
                continue
            block = scanner.scan(idx)
            if block is None:
                continue
            if block.question_id in findings:
                logger.debug(
                    f"Ignoring repeated question {block.question_id} "
                    f"on page {line.page}"
                )
                continue

            finding = NonComplianceFinding(
                id=block.question_id,
                section=section_map.get(block.question_id, ""),
                question=collapse_whitespace(" ".join(block.parts)),
                obtained_points=block.obtained,
                max_points=block.maximum,
                auditor_comments=truncate_comment(
                    " ".join(block.comments), self.max_comment_length
                ),
                page=line.page,
                y_position=line.y,
            )
            logger.info(
                f"Detected non-compliance {finding.id} on page {finding.page} "
                f"({block.obtained}/{block.maximum})"
            )
            findings[finding.id] = finding

        return sorted(findings.values(), key=lambda f: f.sort_key)

    def detect_unnumbered(self, lines: Sequence[Line]) -> list[NonComplianceFinding]:
        """Pass 2. Sequential ids in detection order."""
        anchors = find_score_anchored_sections(lines)
        scanner = UnnumberedItemScanner(lines, anchors)
        findings: list[NonComplianceFinding] = []

        for idx, line in enumerate(lines):
            score = ZERO_SCORE.search(line.text)
            if not score:
                continue
            max_points = int(score.group(1))
            if max_points == 0:
                continue

            question, comment = scanner.question_text(idx)
            if len(question) < 5:
                continue
            if not comment:
                comment = scanner.nearby_comment(idx)

            finding = NonComplianceFinding(
                id=str(len(findings) + 1),
                section=section_for_line(anchors, idx),
                question=question,
                obtained_points=0,
                max_points=max_points,
                auditor_comments=truncate_comment(comment, self.max_comment_length),
                page=line.page,
                y_position=line.y,
            )
            logger.info(
                f"Detected checklist non-compliance #{finding.id} "
                f"on page {finding.page} (0/{max_points})"
            )
            findings.append(finding)

        return findings
