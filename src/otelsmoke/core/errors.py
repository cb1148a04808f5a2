"""
Unified error handling for otelsmoke.

This module provides the error taxonomy of a verification run, the exit
codes the CLI reports, and a decorator that converts errors into them.

Exit Codes:
- 0: Success (every target observed above its threshold)
- 2: Blocked (at least one target timed out)
- 10: Configuration error
- 11: Bring-up error (orchestration or readiness gate failed)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    BLOCKED = 2
    CONFIG_ERROR = 10
    BRING_UP_ERROR = 11
    UNKNOWN_ERROR = 127


class OtelSmokeError(Exception):
    """Base exception for otelsmoke errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(OtelSmokeError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class BringUpError(OtelSmokeError):
    """Raised when the topology cannot be started or never becomes ready."""

    exit_code = ExitCode.BRING_UP_ERROR


class TeardownError(OtelSmokeError):
    """Raised when the topology could not be torn down cleanly."""

    exit_code = ExitCode.BRING_UP_ERROR


class FetchError(OtelSmokeError):
    """
    Raised when a metrics snapshot cannot be fetched or decoded.

    Covers refused connections, timeouts, non-2xx responses and malformed
    payloads. The underlying exception is kept as ``__cause__``.
    """

    def __init__(self, message: str, url: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"url": url, **(details or {})})
        self.url = url


class VerificationTimeout(OtelSmokeError):
    """Raised when one or more targets were not observed before the deadline."""

    exit_code = ExitCode.BLOCKED

    def __init__(
        self,
        message: str,
        failures: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.failures = failures or []

    def __str__(self) -> str:
        if not self.failures:
            return self.message
        return "\n".join([self.message, *(f"  - {line}" for line in self.failures)])


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Usage:
        @main_with_error_handling()
        def my_command() -> int:
            return 0

    Exit codes:
        - OtelSmokeError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except OtelSmokeError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: OtelSmokeError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
