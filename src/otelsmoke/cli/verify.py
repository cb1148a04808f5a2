"""
CLI commands for export verification.

``verify`` brings up the Docker Compose topology and waits for the
collector to report successful exports. ``check`` polls an already running
collector.
"""

from __future__ import annotations

import argparse
from typing import Any, Optional, Sequence

from pydantic import ValidationError
from rich.markup import escape

from otelsmoke.cli.ux import console, error, header, print_table, spinner, success, warning
from otelsmoke.config import Settings
from otelsmoke.core.errors import (
    BringUpError,
    ConfigurationError,
    TeardownError,
    format_error_message,
    main_with_error_handling,
)
from otelsmoke.verification.models import VerificationReport
from otelsmoke.verification.runner import check_endpoint, run_verification


def build_settings(**overrides: Any) -> Settings:
    """
    Build settings from the environment with command-line overrides applied.

    Raises:
        ConfigurationError: If a value fails validation
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e.error_count()} error(s)", {"errors": str(e)}) from e


@main_with_error_handling()
def verify_command(
    compose_file: Optional[str] = None,
    override_files: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
    concurrent: bool = False,
) -> int:
    """
    Bring the topology up and verify the collector exported spans, logs and metrics.

    Exit codes:
        0 = Every target observed above its threshold
        2 = At least one target timed out
        10 = Invalid configuration
        11 = Topology failed to start, become ready, or tear down

    Returns:
        Exit code
    """
    settings = build_settings(
        compose_file=compose_file,
        compose_override_file=",".join(override_files) if override_files else None,
        poll_timeout=timeout,
        poll_interval=interval,
        concurrent_targets=concurrent or None,
    )

    header("Export Verification")
    console.print()
    console.print(f"[cyan]Compose files:[/cyan] {', '.join(settings.compose_files)}")
    console.print(f"[cyan]Collector:[/cyan] {settings.collector_service}:{settings.collector_metrics_port}")
    console.print(f"[cyan]Deadline:[/cyan] {settings.poll_timeout:g}s per target")
    console.print()

    try:
        with spinner("Starting topology and waiting for export..."):
            report = run_verification(settings)
    except (BringUpError, TeardownError) as e:
        error(format_error_message(e))
        raise

    _print_report(report)
    return report.exit_code


@main_with_error_handling()
def check_command(
    metrics_url: str,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
    concurrent: bool = False,
) -> int:
    """Verify targets against an already running collector's metrics endpoint."""
    settings = build_settings(
        poll_timeout=timeout,
        poll_interval=interval,
        concurrent_targets=concurrent or None,
    )

    header("Export Check")
    console.print()
    console.print(f"[cyan]Target:[/cyan] {metrics_url}")
    console.print()

    with spinner("Waiting for export..."):
        report = check_endpoint(metrics_url, settings)

    _print_report(report)
    return report.exit_code


def _print_report(report: VerificationReport) -> None:
    """Print verification results with styling."""
    rows = []
    for r in report.results:
        value = r.observed_value
        rows.append(
            [
                r.target.metric_name,
                f"{r.target.label_key}={r.target.label_value}",
                f"> {r.target.threshold:g}",
                "-" if value is None else f"{value:g}",
                str(r.attempts),
                f"{r.elapsed:.1f}s",
                "[success]✓[/success]" if r.succeeded else "[error]✗ timed out[/error]",
            ]
        )
    print_table(
        f"Collector: {report.endpoint}",
        ["Metric", "Label", "Threshold", "Observed", "Attempts", "Elapsed", "Status"],
        rows,
    )
    console.print()

    if report.all_passed:
        success(f"All {len(report.results)} targets exported")
        return

    error(f"{len(report.failed)} of {len(report.results)} targets not observed")
    for r in report.failed:
        console.print(f"  [muted]•[/muted] {escape(r.describe())}")
    if report.teardown_error:
        warning(f"Teardown also failed: {escape(report.teardown_error)}")
    console.print()


def _add_polling_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for each target (default: 120)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between polls (default: 1)",
    )
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Poll all targets at the same time",
    )


def register_verify_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register verify subcommand parser."""
    parser = subparsers.add_parser(
        "verify",
        help="Start the compose topology and verify the collector exports telemetry",
    )
    parser.add_argument(
        "--compose-file",
        "-f",
        help="Base compose file (or set OTELSMOKE_COMPOSE_FILE)",
    )
    parser.add_argument(
        "--override",
        action="append",
        dest="override_files",
        help="Additional compose file, repeatable (or set COMPOSE_OVERRIDE_FILE)",
    )
    _add_polling_arguments(parser)


def register_check_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register check subcommand parser."""
    parser = subparsers.add_parser(
        "check",
        help="Verify a running collector's metrics endpoint",
    )
    parser.add_argument(
        "--metrics-url",
        "-u",
        required=True,
        help="Collector self-observability URL, e.g. http://localhost:8888/metrics",
    )
    _add_polling_arguments(parser)


def handle_verify_command(args: argparse.Namespace) -> int:
    """Handle verify subcommand."""
    return verify_command(
        compose_file=getattr(args, "compose_file", None),
        override_files=getattr(args, "override_files", None),
        timeout=getattr(args, "timeout", None),
        interval=getattr(args, "interval", None),
        concurrent=getattr(args, "concurrent", False),
    )


def handle_check_command(args: argparse.Namespace) -> int:
    """Handle check subcommand."""
    return check_command(
        metrics_url=args.metrics_url,
        timeout=getattr(args, "timeout", None),
        interval=getattr(args, "interval", None),
        concurrent=getattr(args, "concurrent", False),
    )


__all__ = [
    "build_settings",
    "check_command",
    "handle_check_command",
    "handle_verify_command",
    "register_check_parser",
    "register_verify_parser",
    "verify_command",
]
