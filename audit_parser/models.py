"""
Data Models
===========
Pydantic models for audit report extraction.
All models are serializable to JSON via model_dump().
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


HEADER_FIELDS = (
    "store_name",
    "reference_id",
    "visit_date",
    "last_visit_date",
    "store_manager",
    "area_manager",
    "submitted_by",
    "reviewed_by",
)


def percentage_of(obtained: float, total: float) -> float:
    """Percentage rounded half-up to two decimals; 0 when total is not positive."""
    if total <= 0:
        return 0
    return math.floor(obtained / total * 10000 + 0.5) / 100


# ─── Enums ────────────────────────────────────────────────────────────────────


class DetectionPass(str, Enum):
    """Which non-compliance pass produced the findings."""
    NUMBERED = "numbered"
    UNNUMBERED = "unnumbered"
    NONE = "none"


# ─── Layout Models ────────────────────────────────────────────────────────────


class Fragment(BaseModel):
    """
    A positioned run of text from one rendered page.
    Coordinates are top-left origin (Y grows downward).
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


class Line(BaseModel):
    """A reading-order row of fragments sharing one vertical band."""
    text: str
    page: int = Field(ge=1, description="1-indexed page number")
    y: float = Field(description="Quantized Y band of the row")
    fragments: list[Fragment] = Field(default_factory=list)


# ─── Report Models ────────────────────────────────────────────────────────────


class ReportInfo(BaseModel):
    """Header metadata and overall scoring summary of an audit."""
    store_name: str = ""
    reference_id: str = ""
    visit_date: str = ""
    last_visit_date: str = ""
    store_manager: str = ""
    area_manager: str = ""
    submitted_by: str = ""
    reviewed_by: str = ""
    current_score: float = 0
    total_score: float = 0
    previous_score: float = 0
    percentage: float = 0
    difference: str = Field(
        default="",
        description="Signed change versus previous visit, e.g. '-2.5%'",
    )

    @computed_field
    @property
    def previous_percentage(self) -> float:
        return percentage_of(self.previous_score, self.total_score)


class NonComplianceFinding(BaseModel):
    """
    A question scored below its maximum, with the section it belongs to
    and whatever the auditor wrote about it.
    """
    id: str
    section: str = ""
    question: str = ""
    obtained_points: int = Field(default=0, ge=0)
    max_points: int = Field(gt=0)
    section_obtained: float = 0
    section_total: float = 0
    auditor_comments: str = ""
    page: int = Field(default=1, ge=1)
    y_position: float = 0

    @computed_field
    @property
    def points_lost(self) -> int:
        return self.max_points - self.obtained_points

    @computed_field
    @property
    def section_percentage(self) -> float:
        return percentage_of(self.section_obtained, self.section_total)

    @property
    def sort_key(self) -> tuple[int, ...]:
        """Numeric (major, minor) key for dotted ids like '2.10'."""
        parts = []
        for part in self.id.split("."):
            parts.append(int(part) if part.isdigit() else 0)
        return tuple(parts)


class ExtractionDiagnostics(BaseModel):
    """Post-extraction report of which heuristics fired and what is missing."""
    score_strategy: Optional[str] = None
    detection_pass: DetectionPass = DetectionPass.NONE
    page_count: int = 0
    line_count: int = 0
    missing_header_fields: list[str] = Field(default_factory=list)
    findings_without_section: list[str] = Field(default_factory=list)
    findings_without_comments: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def header_completeness(self) -> float:
        filled = len(HEADER_FIELDS) - len(self.missing_header_fields)
        return round(filled / len(HEADER_FIELDS) * 100, 2)


class AuditReport(BaseModel):
    """
    Complete output of one extraction run.
    Deterministic for identical fragment input.
    """
    info: ReportInfo = Field(default_factory=ReportInfo)
    non_compliances: list[NonComplianceFinding] = Field(default_factory=list)
    diagnostics: ExtractionDiagnostics = Field(
        default_factory=ExtractionDiagnostics
    )

    @computed_field
    @property
    def total_points_lost(self) -> int:
        return sum(f.points_lost for f in self.non_compliances)


# ─── Document / Parse Result Models ──────────────────────────────────────────


class DocumentMetadata(BaseModel):
    """Metadata about the source PDF."""
    source_pdf: str = ""
    total_pages: int = 0
    file_hash: str = ""
    file_size_bytes: int = 0


class ParseVersion(BaseModel):
    """Version tracking for a parse run."""
    parser_version: str = "1.0.0"
    parse_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    fragment_count: int = 0
    line_count: int = 0


class ParseResult(BaseModel):
    """
    Output of parsing a PDF file end to end.
    Wraps the AuditReport with source and version information.
    """
    document: DocumentMetadata
    parse_version: ParseVersion
    report: AuditReport
