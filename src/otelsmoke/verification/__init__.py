"""
Export verification for otelsmoke.

Polls an OpenTelemetry Collector's self-observability metrics until its
exporter counters prove that telemetry reached the backend.

- The fetcher reads one snapshot of the exposition endpoint
- The matcher decides whether a snapshot satisfies a target
- The poller retries fetch-and-match until success or a deadline
"""

from .fetcher import MetricsFetcher, parse_snapshot
from .matcher import match
from .models import (
    SENT_ITEMS_THRESHOLD,
    MetricFamily,
    MetricSample,
    MetricSnapshot,
    OutcomeStatus,
    PollOutcome,
    PollResult,
    PollState,
    VerificationReport,
    VerificationTarget,
    default_targets,
)
from .poller import Poller

__all__ = [
    "SENT_ITEMS_THRESHOLD",
    "MetricFamily",
    "MetricSample",
    "MetricSnapshot",
    "MetricsFetcher",
    "OutcomeStatus",
    "PollOutcome",
    "PollResult",
    "PollState",
    "Poller",
    "VerificationReport",
    "VerificationTarget",
    "default_targets",
    "match",
    "parse_snapshot",
]
