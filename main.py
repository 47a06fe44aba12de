"""
Audit Parser Service: Main Entry Point
======================================
Runs the HTTP service without going through the click CLI.

Usage:
    python main.py                        # 0.0.0.0:5000
    python main.py --port 8000            # Custom port
    python main.py --log-level DEBUG      # Verbose extraction logs
"""

import argparse
import logging

from audit_parser.server import run_server

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def main():
    parser = argparse.ArgumentParser(description="Audit report parsing service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=5000, help="Bind port")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Level for the audit_parser loggers",
    )
    parser.add_argument("--debug", action="store_true", help="Flask debug mode")
    args = parser.parse_args()

    run_server(
        host=args.host,
        port=args.port,
        debug=args.debug,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
