"""
Audit Parser Engine
===================
Main orchestrator that combines fragment extraction, line reconstruction,
header/score resolution, non-compliance detection and section correlation
into a complete audit report pipeline.

Usage:
    engine = ParserEngine(config)
    result = engine.parse("path/to/audit.pdf")
    # result.report is an AuditReport with info and non_compliances

    report = engine.extract(pages)
    # pages is a list (one per page) of Fragment lists

Architecture:
    PDF → FragmentExtractor → Fragments → reconstruct_lines → Lines →
    (header fields, score cascade, section map) → NonComplianceDetector →
    correlate_section_scores → ReportValidator → AuditReport (JSON)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .correlator import correlate_section_scores
from .detector import MAX_COMMENT_LENGTH, NonComplianceDetector
from .fragment_extractor import FragmentExtractor
from .header_fields import extract_header_fields
from .lines import BAND_WIDTH, full_text, reconstruct_lines
from .models import (
    AuditReport,
    DocumentMetadata,
    Fragment,
    ParseResult,
    ParseVersion,
    ReportInfo,
)
from .score_summary import ScoreStrategy, ScoreSummaryResolver
from .sections import build_section_map
from .validator import ReportValidator

logger = logging.getLogger(__name__)


@dataclass
class ParserConfig:
    """Configuration for the parser engine."""

    # Line reconstruction
    band_width: float = BAND_WIDTH

    # Detection
    max_comment_length: int = MAX_COMMENT_LENGTH
    score_strategies: Optional[Sequence[ScoreStrategy]] = None

    # Output settings (JSON is only written when set)
    output_dir: Optional[str] = None

    # Processing
    page_range: Optional[tuple[int, int]] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ParserEngine:
    """
    Main audit parsing engine.

    Orchestrates the full pipeline:
        1. Fragment extraction (PDF only)
        2. Line reconstruction
        3. Header fields and score summary
        4. Section mapping and non-compliance detection
        5. Section score correlation
        6. Diagnostics

    extract() keeps no state between calls, so one engine can serve
    independent documents concurrently.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("audit_parser")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            package_logger.addHandler(console)
        else:
            for handler in package_logger.handlers:
                handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).absolute()
            already_attached = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in package_logger.handlers
            )
            if not already_attached:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                package_logger.addHandler(file_handler)

    def extract(self, pages: Sequence[Sequence[Fragment]]) -> AuditReport:
        """
        Turn per-page fragments into a structured audit report.

        Never raises for content-poor input: anything not found is left
        empty or zero.

        Args:
            pages: One list of fragments per page, in document order.

        Returns:
            AuditReport with header info, score summary and findings.
        """
        lines = reconstruct_lines(pages, band_width=self.config.band_width)
        text = full_text(lines)

        # ── Header and score summary ──────────────────────────────────
        header = extract_header_fields(text)
        resolver = ScoreSummaryResolver(self.config.score_strategies)
        summary = resolver.resolve(lines, text)

        info = ReportInfo(
            **header,
            current_score=summary.current_score,
            total_score=summary.total_score,
            previous_score=summary.previous_score,
            percentage=summary.percentage,
            difference=summary.difference,
        )

        # ── Non-compliance detection ──────────────────────────────────
        section_map = build_section_map(lines)
        detector = NonComplianceDetector(
            max_comment_length=self.config.max_comment_length
        )
        findings, detection_pass = detector.detect(lines, section_map)
        findings = correlate_section_scores(findings, lines)

        # ── Diagnostics ───────────────────────────────────────────────
        diagnostics = ReportValidator().validate(
            info,
            findings,
            detection_pass=detection_pass,
            score_strategy=summary.source,
            page_count=len(pages),
            line_count=len(lines),
        )

        return AuditReport(
            info=info,
            non_compliances=findings,
            diagnostics=diagnostics,
        )

    def parse(
        self,
        pdf_path: str,
        progress_callback: Optional[callable] = None,
    ) -> ParseResult:
        """
        Parse an audit PDF into a structured report.

        Args:
            pdf_path: Path to the PDF file to parse.
            progress_callback: Callback(page_num, total_pages) called on each page.

        Returns:
            ParseResult containing the report and source metadata.

        Raises:
            FileNotFoundError: If PDF file doesn't exist.
            DocumentReadError: If PDF cannot be opened or read.
        """
        pdf_path = os.path.abspath(pdf_path)

        if not os.path.exists(pdf_path):
            raise FileNotFoundError(f"PDF not found: {pdf_path}")

        start_time = time.time()
        logger.info(f"Starting parse of: {pdf_path}")

        # ── Step 1: Extract fragments ─────────────────────────────────
        logger.info("Phase 1: Fragment extraction")
        extractor = FragmentExtractor()
        pages = extractor.extract(
            pdf_path,
            page_range=self.config.page_range,
            progress_callback=progress_callback,
        )

        # ── Step 2: Structured extraction ─────────────────────────────
        logger.info("Phase 2: Report extraction")
        report = self.extract(pages)

        # ── Step 3: Build result ──────────────────────────────────────
        document = self._build_document_metadata(pdf_path)
        document.total_pages = extractor.get_page_count(pdf_path)

        result = ParseResult(
            document=document,
            parse_version=ParseVersion(
                parser_version=__version__,
                fragment_count=sum(len(p) for p in pages),
                line_count=report.diagnostics.line_count,
            ),
            report=report,
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Parse complete in {elapsed:.2f}s, "
            f"{len(report.non_compliances)} non-compliances found"
        )

        # ── Step 4: Save output ───────────────────────────────────────
        if self.config.output_dir:
            output_dir = Path(self.config.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            self._save_json(result, output_dir / f"{Path(pdf_path).stem}_report.json")

        return result

    def _build_document_metadata(self, pdf_path: str) -> DocumentMetadata:
        """Build document metadata from file info."""
        return DocumentMetadata(
            source_pdf=os.path.basename(pdf_path),
            file_hash=self._compute_file_hash(pdf_path),
            file_size_bytes=os.path.getsize(pdf_path),
        )

    def _compute_file_hash(self, filepath: str) -> str:
        """Compute SHA-256 hash of a file."""
        sha256 = hashlib.sha256()
        with open(filepath, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()

    def _save_json(self, result: ParseResult, filepath: Path):
        """Save ParseResult to JSON file."""
        try:
            data = result.model_dump(mode="json")
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logger.info(f"Saved JSON output: {filepath}")
        except OSError as e:
            logger.error(f"Failed to save JSON: {e}")
