"""
otelsmoke command line.

Usage:
    otelsmoke verify [--compose-file FILE] [--override FILE ...]
    otelsmoke check --metrics-url URL
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from otelsmoke.cli.verify import (
    handle_check_command,
    handle_verify_command,
    register_check_parser,
    register_verify_parser,
)
from otelsmoke.logging import LOG_FORMATS, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="otelsmoke",
        description="Verify an OpenTelemetry Collector is exporting telemetry",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for structured logs on stderr (default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default="json",
        help="Structured log rendering (default: json)",
    )
    subparsers = parser.add_subparsers(dest="command")
    register_verify_parser(subparsers)
    register_check_parser(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_format)

    if args.command == "verify":
        return handle_verify_command(args)

    if args.command == "check":
        return handle_check_command(args)

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    sys.exit(main())
