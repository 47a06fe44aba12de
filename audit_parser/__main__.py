"""
Module entry point for: python -m audit_parser

Allows running the parser directly as a module:
    python -m audit_parser parse <pdf_path> [options]
    python -m audit_parser lines <pdf_path> [options]
    python -m audit_parser serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
