"""
CLI Interface
=============
Command-line interface for the audit parser engine.

Usage:
    python -m audit_parser parse <pdf_path> [options]
    python -m audit_parser lines <pdf_path> [--page N]
    python -m audit_parser info <pdf_path>
    python -m audit_parser serve [options]
"""

from __future__ import annotations

import json
import os
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .engine import ParserConfig, ParserEngine
from .fragment_extractor import DocumentReadError, FragmentExtractor
from .lines import reconstruct_lines

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="audit-parser")
def cli():
    """Audit Parser: non-compliance extraction from compliance audit PDFs."""
    pass


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
@click.option(
    "--output", "-o",
    default=None,
    help="Directory to write the JSON report into",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def parse(
    pdf_path: str,
    output: str,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Parse an audit PDF into header info, scores and non-compliances."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = ParserConfig(
        output_dir=output,
        log_level=log_level,
        log_file=log_file,
    )

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]Audit Parser v{__version__}[/]\n"
                f"[dim]Parsing: {os.path.basename(pdf_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        engine = ParserEngine(config)

        if json_output:
            result = engine.parse(pdf_path)
            click.echo(json.dumps(
                result.model_dump(mode="json"),
                indent=2,
                ensure_ascii=False,
            ))
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Reading pages...", total=None)

            def on_page(current, total):
                progress.update(
                    task,
                    total=total,
                    completed=current,
                    description=f"Reading page {current}/{total}...",
                )

            result = engine.parse(pdf_path, progress_callback=on_page)

        _display_results(result)

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except DocumentReadError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
@click.option(
    "--page", "-p",
    default=None,
    type=click.IntRange(min=1),
    help="Only this page (1-indexed)",
)
def lines(pdf_path: str, page: int):
    """Dump the reconstructed reading-order lines of a PDF."""
    page_range = (page, page) if page is not None else None

    try:
        pages = FragmentExtractor().extract(pdf_path, page_range=page_range)
    except DocumentReadError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    first_page = page or 1
    table = Table(title="Reconstructed Lines", border_style="cyan")
    table.add_column("Page", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Text")

    for line in reconstruct_lines(pages):
        table.add_row(
            str(line.page + first_page - 1),
            f"{line.y:g}",
            line.text,
        )

    console.print(table)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level for parse requests",
)
def serve(host: str, port: int, debug: bool, log_level: str):
    """Start the HTTP service."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Audit Parser Service[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug, log_level=log_level)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
def info(pdf_path: str):
    """Display PDF file information."""

    import fitz

    try:
        doc = fitz.open(pdf_path)
    except Exception as e:
        console.print(f"[red]Error:[/] Cannot open {pdf_path}: {e}")
        sys.exit(1)

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("Pages", str(doc.page_count))
    table.add_row(
        "File Size",
        f"{os.path.getsize(pdf_path) / 1024 / 1024:.2f} MB",
    )

    metadata = doc.metadata or {}
    for key in ["title", "author", "subject", "creator", "producer"]:
        val = metadata.get(key, "")
        if val:
            table.add_row(key.title(), val)

    doc.close()
    console.print(table)
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_results(result):
    """Display the parsed audit report as rich tables."""
    report = result.report
    info = report.info
    console.print()

    table = Table(title="Audit Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Store", info.store_name or "(not found)")
    table.add_row("Reference", info.reference_id or "-")
    table.add_row("Visit Date", info.visit_date or "-")
    table.add_row("Last Visit", info.last_visit_date or "-")
    table.add_row("Store Manager", info.store_manager or "-")
    table.add_row("Area Manager", info.area_manager or "-")
    table.add_row("Submitted By", info.submitted_by or "-")
    table.add_row("Reviewed By", info.reviewed_by or "-")
    table.add_row("Source PDF", result.document.source_pdf)
    table.add_row("Total Pages", str(result.document.total_pages))
    console.print(table)
    console.print()

    _display_scores(report)
    _display_findings(report)
    _display_diagnostics(report.diagnostics.model_dump(mode="json"))

    pv = result.parse_version
    console.print(
        f"[dim]Parser v{pv.parser_version} | "
        f"Fragments: {pv.fragment_count} | "
        f"Lines: {pv.line_count} | "
        f"Timestamp: {pv.parse_timestamp}[/]"
    )
    console.print()


def _display_scores(report):
    """Current / previous / difference summary."""
    info = report.info
    color = "green" if info.percentage >= 90 else "red"

    table = Table(title="Score Summary", border_style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Current Score", f"{info.current_score:g} / {info.total_score:g}")
    table.add_row("Current %", f"[{color}]{info.percentage:g}%[/]")
    if info.previous_score > 0:
        table.add_row("Previous Score", f"{info.previous_score:g}")
        table.add_row("Previous %", f"{info.previous_percentage:g}%")
        diff_color = "red" if info.difference.startswith("-") else "green"
        table.add_row("Difference", f"[{diff_color}]{info.difference or '-'}[/]")
    console.print(table)
    console.print()


def _display_findings(report):
    """Non-compliance table with a total points lost row."""
    findings = report.non_compliances
    if not findings:
        console.print("[bold green]All clear: no non-compliance items found.[/]")
        console.print()
        return

    table = Table(title="Non-Compliance Summary", border_style="red")
    table.add_column("Ref", style="bold red")
    table.add_column("Section", style="bold")
    table.add_column("Question")
    table.add_column("Comments")
    table.add_column("Lost", justify="right", style="bold red")

    for finding in findings:
        table.add_row(
            finding.id,
            finding.section or "-",
            escape(finding.question),
            escape(finding.auditor_comments) or "[dim italic]No comments[/]",
            f"-{finding.points_lost}",
        )

    table.add_section()
    table.add_row("", "", "", "[bold]Total Points Lost[/]", f"-{report.total_points_lost}")
    console.print(table)
    console.print()


def _display_diagnostics(diagnostics: dict):
    """Display extraction diagnostics as a rich table."""
    table = Table(title="Extraction Diagnostics", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[yellow]⚠[/]"

    strategy = diagnostics.get("score_strategy")
    table.add_row(
        "Score Strategy",
        strategy or "(none)",
        "[green]✓[/]" if strategy else "[red]✗[/]",
    )
    table.add_row("Detection Pass", str(diagnostics.get("detection_pass")), "")

    completeness = diagnostics.get("header_completeness", 0)
    table.add_row(
        "Header Completeness",
        f"{completeness}%",
        "[green]✓[/]" if completeness >= 75 else "[yellow]⚠[/]",
    )

    no_section = diagnostics.get("findings_without_section", [])
    table.add_row(
        "Findings Without Section",
        str(len(no_section)),
        status_icon(len(no_section)),
    )

    no_comments = diagnostics.get("findings_without_comments", [])
    table.add_row(
        "Findings Without Comments",
        str(len(no_comments)),
        status_icon(len(no_comments)),
    )

    console.print(table)
    console.print()


# ─── Entry point (for python -m audit_parser.cli) ─────────────────────────────


if __name__ == "__main__":
    cli()
