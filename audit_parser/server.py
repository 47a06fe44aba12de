"""
HTTP Service
============
Flask-based HTTP API for the audit parser engine.

Parsing is synchronous and single-document; uploads are written to a
temporary file only for the duration of the request.

Endpoints:
    POST   /api/parse         → Parse an uploaded PDF or posted fragments
    GET    /api/health        → Health check
    GET    /api/info          → Parser version info
"""

from __future__ import annotations

import logging
import os
import tempfile

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from . import __version__
from .engine import ParserConfig, ParserEngine
from .fragment_extractor import DocumentReadError
from .models import Fragment

logger = logging.getLogger(__name__)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    app = Flask(__name__)
    CORS(app)

    app.config.setdefault("LOG_LEVEL", "INFO")
    app.config["MAX_CONTENT_LENGTH"] = 50 * 1024 * 1024  # 50MB
    if config:
        app.config.update(config)

    def make_engine() -> ParserEngine:
        return ParserEngine(ParserConfig(log_level=app.config["LOG_LEVEL"]))

    # ─── Health Check ─────────────────────────────────────────────────────

    @app.route("/api/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "version": __version__})

    @app.route("/api/info", methods=["GET"])
    def info():
        """Parser version and capability info."""
        return jsonify({
            "version": __version__,
            "engine": "PyMuPDF",
            "capabilities": [
                "line_reconstruction",
                "header_fields",
                "score_summary",
                "section_mapping",
                "non_compliance_detection",
                "section_score_correlation",
            ],
            "supported_formats": ["pdf", "fragments"],
        })

    # ─── Parse Endpoint ───────────────────────────────────────────────────

    @app.route("/api/parse", methods=["POST"])
    def parse():
        """
        Parse an audit report and return the result immediately.

        Accepts either:
            - A PDF upload (multipart/form-data, field "file")
            - A JSON body {"pages": [[fragment, ...], ...]}
        """
        if "file" in request.files:
            return _parse_upload(request.files["file"], make_engine())

        if request.is_json:
            data = request.get_json(silent=True)
            pages = data.get("pages") if isinstance(data, dict) else None
            if not isinstance(pages, list):
                return jsonify({"error": "JSON body must contain a 'pages' list"}), 400
            try:
                fragments = [
                    [Fragment.model_validate(item) for item in page]
                    for page in pages
                ]
            except (ValidationError, TypeError) as e:
                return jsonify({"error": f"Invalid fragments: {e}"}), 400

            report = make_engine().extract(fragments)
            return jsonify(report.model_dump(mode="json")), 200

        return jsonify({
            "error": "Provide a PDF upload or JSON with pages of fragments"
        }), 400

    return app


def _parse_upload(file, engine: ParserEngine):
    """Run the engine over an uploaded PDF stored in a temporary file."""
    if not file.filename:
        return jsonify({"error": "No file selected"}), 400
    if not file.filename.lower().endswith(".pdf"):
        return jsonify({"error": "Please upload a PDF file"}), 400

    handle, pdf_path = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(handle, "wb") as f:
            file.save(f)

        result = engine.parse(pdf_path)
        result.document.source_pdf = file.filename
        return jsonify(result.model_dump(mode="json")), 200
    except DocumentReadError as e:
        logger.warning(f"Unreadable upload {file.filename}: {e}")
        return jsonify({"error": str(e)}), 422
    finally:
        os.unlink(pdf_path)


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
    log_level: str = "INFO",
):
    """Start the Flask development server."""
    app = create_app({"LOG_LEVEL": log_level})
    logger.info(f"Starting audit parser service on {host}:{port}")
    app.run(host=host, port=port, debug=debug, threaded=True)
