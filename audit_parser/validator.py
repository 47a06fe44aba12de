"""
Report Validator
================
Post-extraction diagnostics.

After every extraction, records what the heuristics recovered:
    - Which score strategy produced the current score
    - Which non-compliance pass produced the findings
    - Header fields that stayed empty
    - Findings without a section
    - Findings without auditor comments

Never raises: an audit with nothing detected is a valid result, it is only
logged as suspicious.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .models import (
    HEADER_FIELDS,
    DetectionPass,
    ExtractionDiagnostics,
    NonComplianceFinding,
    ReportInfo,
)

logger = logging.getLogger(__name__)


class ReportValidator:
    """Summarizes an extraction run into ExtractionDiagnostics."""

    def validate(
        self,
        info: ReportInfo,
        findings: Sequence[NonComplianceFinding],
        detection_pass: DetectionPass = DetectionPass.NONE,
        score_strategy: Optional[str] = None,
        page_count: int = 0,
        line_count: int = 0,
    ) -> ExtractionDiagnostics:
        """
        Build diagnostics for one extraction.

        Args:
            info: Resolved header and score information.
            findings: Non-compliance findings after section correlation.
            detection_pass: Pass that produced the findings.
            score_strategy: Name of the score strategy that matched, if any.
            page_count: Number of pages in the input.
            line_count: Number of reconstructed lines.

        Returns:
            ExtractionDiagnostics describing gaps in the result.
        """
        diagnostics = ExtractionDiagnostics(
            score_strategy=score_strategy,
            detection_pass=detection_pass,
            page_count=page_count,
            line_count=line_count,
            missing_header_fields=[
                name for name in HEADER_FIELDS if not getattr(info, name)
            ],
            findings_without_section=[
                f.id for f in findings if not f.section
            ],
            findings_without_comments=[
                f.id for f in findings if not f.auditor_comments
            ],
        )

        if not findings and not info.current_score:
            logger.warning(
                "Nothing recovered: no score and no non-compliance findings "
                f"in {line_count} lines"
            )

        logger.info("=" * 60)
        logger.info("EXTRACTION REPORT")
        logger.info("=" * 60)
        logger.info(f"Pages / Lines: {page_count} / {line_count}")
        logger.info(
            f"Score Strategy: {score_strategy or '(none)'} "
            f"(current {info.current_score}, {info.percentage}%)"
        )
        logger.info(
            f"Detection Pass: {detection_pass.value} "
            f"({len(findings)} findings)"
        )
        logger.info(
            f"Header Completeness: {diagnostics.header_completeness}% "
            f"(missing: {', '.join(diagnostics.missing_header_fields) or 'none'})"
        )
        logger.info(
            f"Findings Without Section: "
            f"{len(diagnostics.findings_without_section)}"
        )
        logger.info(
            f"Findings Without Comments: "
            f"{len(diagnostics.findings_without_comments)}"
        )
        logger.info("=" * 60)

        return diagnostics
