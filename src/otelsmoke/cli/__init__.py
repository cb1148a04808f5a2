"""
CLI commands for otelsmoke.
"""

from otelsmoke.cli.verify import check_command, verify_command

__all__ = [
    "check_command",
    "verify_command",
]
