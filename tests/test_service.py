"""
Test Suite for the PDF, CLI and HTTP Surfaces
=============================================
Builds small audit PDFs with PyMuPDF and drives them through the
fragment extractor, the click CLI and the Flask service.
"""

from __future__ import annotations

import io
import json

import fitz
import pytest
from click.testing import CliRunner

from audit_parser.cli import cli
from audit_parser.engine import ParserConfig, ParserEngine
from audit_parser.fragment_extractor import DocumentReadError, FragmentExtractor
from audit_parser.server import create_app

AUDIT_PAGE = [
    "Store Name Downtown Plaza Reference ID: AUD-77",
    "2. Access Control",
    "Total Score: 20 Obtained: 15",
    "2.1 Door locks checked Poor 1/3",
    "Comments: lock broken",
    "3. Customer Service",
]


def _write_pdf(path, pages):
    doc = fitz.open()
    for texts in pages:
        page = doc.new_page()
        for idx, text in enumerate(texts):
            page.insert_text((72, 72 + idx * 20), text, fontsize=11)
    doc.save(str(path))
    doc.close()
    return str(path)


@pytest.fixture
def audit_pdf(tmp_path):
    return _write_pdf(tmp_path / "audit.pdf", [AUDIT_PAGE, ["Signed off"]])


@pytest.fixture
def broken_pdf(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")
    return str(path)


# ═══════════════════════════════════════════════════════════════════════════════
# FRAGMENT EXTRACTOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestFragmentExtractor:
    """Test span extraction from real PDFs."""

    def test_fragments_per_page(self, audit_pdf):
        pages = FragmentExtractor().extract(audit_pdf)
        assert len(pages) == 2
        texts = [f.text for f in pages[0]]
        assert "2.1 Door locks checked Poor 1/3" in texts
        assert [f.text for f in pages[1]] == ["Signed off"]

    def test_fragment_geometry(self, audit_pdf):
        fragment = FragmentExtractor().extract(audit_pdf)[0][0]
        assert fragment.x == pytest.approx(72, abs=1)
        assert fragment.y == pytest.approx(72, abs=1)
        assert fragment.width > 0
        assert fragment.height > 0

    def test_page_range(self, audit_pdf):
        pages = FragmentExtractor().extract(audit_pdf, page_range=(2, 2))
        assert len(pages) == 1
        assert pages[0][0].text == "Signed off"

    def test_progress_callback(self, audit_pdf):
        calls = []
        FragmentExtractor().extract(
            audit_pdf, progress_callback=lambda cur, tot: calls.append((cur, tot))
        )
        assert calls == [(1, 2), (2, 2)]

    def test_page_count(self, audit_pdf):
        assert FragmentExtractor().get_page_count(audit_pdf) == 2

    def test_unreadable_document(self, broken_pdf):
        with pytest.raises(DocumentReadError):
            FragmentExtractor().extract(broken_pdf)


# ═══════════════════════════════════════════════════════════════════════════════
# END-TO-END PDF TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestPdfParsing:
    """Test ParserEngine.parse on generated PDFs."""

    def test_parse_pdf(self, audit_pdf):
        result = ParserEngine().parse(audit_pdf)
        assert result.document.source_pdf == "audit.pdf"
        assert result.document.total_pages == 2
        assert len(result.document.file_hash) == 64
        assert result.parse_version.line_count == 7

        report = result.report
        assert report.info.store_name == "Downtown Plaza"
        assert len(report.non_compliances) == 1
        finding = report.non_compliances[0]
        assert finding.id == "2.1"
        assert finding.section == "Access Control"
        assert finding.points_lost == 2
        assert finding.auditor_comments == "lock broken"
        assert finding.section_percentage == 75.0

    def test_writes_json_report(self, audit_pdf, tmp_path):
        out_dir = tmp_path / "out"
        ParserEngine(ParserConfig(output_dir=str(out_dir))).parse(audit_pdf)
        data = json.loads((out_dir / "audit_report.json").read_text(encoding="utf-8"))
        assert data["report"]["non_compliances"][0]["id"] == "2.1"
        assert data["report"]["total_points_lost"] == 2

    def test_log_file(self, audit_pdf, tmp_path):
        log_file = tmp_path / "logs" / "parser.log"
        ParserEngine(ParserConfig(log_file=str(log_file))).parse(audit_pdf)
        assert "EXTRACTION REPORT" in log_file.read_text(encoding="utf-8")

    def test_unreadable_pdf(self, broken_pdf):
        with pytest.raises(DocumentReadError):
            ParserEngine().parse(broken_pdf)


# ═══════════════════════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    """Test the click commands."""

    def test_parse_json_output(self, audit_pdf):
        result = CliRunner().invoke(cli, ["parse", audit_pdf, "--json-output"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["report"]["non_compliances"][0]["id"] == "2.1"
        assert data["report"]["diagnostics"]["detection_pass"] == "numbered"

    def test_parse_tables(self, audit_pdf):
        result = CliRunner().invoke(cli, ["parse", audit_pdf])
        assert result.exit_code == 0, result.output
        assert "Non-Compliance Summary" in result.output
        assert "Downtown Plaza" in result.output

    def test_parse_unreadable_pdf(self, broken_pdf):
        result = CliRunner().invoke(cli, ["parse", broken_pdf, "--json-output"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_parse_missing_file(self, tmp_path):
        result = CliRunner().invoke(cli, ["parse", str(tmp_path / "nope.pdf")])
        assert result.exit_code != 0

    def test_lines(self, audit_pdf):
        result = CliRunner().invoke(cli, ["lines", audit_pdf, "--page", "1"])
        assert result.exit_code == 0, result.output
        assert "Door locks checked" in result.output
        assert "Signed off" not in result.output

    def test_lines_rejects_page_zero(self, audit_pdf):
        result = CliRunner().invoke(cli, ["lines", audit_pdf, "--page", "0"])
        assert result.exit_code == 2

    def test_info(self, audit_pdf):
        result = CliRunner().invoke(cli, ["info", audit_pdf])
        assert result.exit_code == 0, result.output
        assert "PDF Information" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert "1.0.0" in result.output


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP SERVICE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def client():
    app = create_app({"TESTING": True})
    return app.test_client()


def _fragment_pages(*texts):
    return [[
        {"text": text, "x": 40, "y": 100 + idx * 20}
        for idx, text in enumerate(texts)
    ]]


class TestHttpService:
    """Test the Flask endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_info(self, client):
        data = client.get("/api/info").get_json()
        assert "non_compliance_detection" in data["capabilities"]

    def test_parse_fragments(self, client):
        response = client.post(
            "/api/parse", json={"pages": _fragment_pages(*AUDIT_PAGE[1:])}
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data["non_compliances"][0]["points_lost"] == 2
        assert data["non_compliances"][0]["section"] == "Access Control"
        assert data["total_points_lost"] == 2

    def test_parse_empty_pages(self, client):
        response = client.post("/api/parse", json={"pages": []})
        assert response.status_code == 200
        assert response.get_json()["non_compliances"] == []

    def test_missing_pages(self, client):
        response = client.post("/api/parse", json={"document": []})
        assert response.status_code == 400

    def test_invalid_fragment(self, client):
        response = client.post("/api/parse", json={"pages": [[{"text": "a"}]]})
        assert response.status_code == 400
        assert "Invalid fragments" in response.get_json()["error"]

    def test_non_finite_coordinate(self, client):
        response = client.post(
            "/api/parse",
            data='{"pages": [[{"text": "a", "x": 0, "y": NaN}]]}',
            content_type="application/json",
        )
        assert response.status_code == 400
        assert "Invalid fragments" in response.get_json()["error"]

    def test_no_input(self, client):
        assert client.post("/api/parse").status_code == 400

    def test_upload_pdf(self, client, audit_pdf):
        with open(audit_pdf, "rb") as f:
            payload = f.read()
        response = client.post(
            "/api/parse",
            data={"file": (io.BytesIO(payload), "store-audit.pdf")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data["document"]["source_pdf"] == "store-audit.pdf"
        assert data["report"]["non_compliances"][0]["id"] == "2.1"

    def test_upload_wrong_type(self, client):
        response = client.post(
            "/api/parse",
            data={"file": (io.BytesIO(b"hello"), "notes.txt")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_upload_unreadable_pdf(self, client):
        response = client.post(
            "/api/parse",
            data={"file": (io.BytesIO(b"not a pdf"), "broken.pdf")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 422


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
