"""Core modules for otelsmoke - centralized definitions and utilities."""

from otelsmoke.core.errors import (
    BringUpError,
    ConfigurationError,
    ExitCode,
    FetchError,
    OtelSmokeError,
    TeardownError,
    VerificationTimeout,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "OtelSmokeError",
    "ConfigurationError",
    "BringUpError",
    "TeardownError",
    "FetchError",
    "VerificationTimeout",
    "main_with_error_handling",
    "format_error_message",
]
