"""
Models for export verification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from otelsmoke.core.errors import VerificationTimeout

SENT_ITEMS_THRESHOLD = 100.0


@dataclass(frozen=True)
class VerificationTarget:
    """A counter series that must be observed above a threshold."""

    metric_name: str
    label_key: str
    label_value: str
    threshold: float = SENT_ITEMS_THRESHOLD

    @property
    def selector(self) -> str:
        """PromQL-style selector, used in reports."""
        return f'{self.metric_name}{{{self.label_key}="{self.label_value}"}}'


def default_targets(threshold: float = SENT_ITEMS_THRESHOLD) -> List[VerificationTarget]:
    """Targets proving spans, logs and metrics were exported by the collector."""
    return [
        VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud", threshold),
        VerificationTarget("otelcol_exporter_sent_log_records", "exporter", "googlecloud", threshold),
        VerificationTarget(
            "otelcol_exporter_sent_metric_points", "exporter", "googlemanagedprometheus", threshold
        ),
    ]


@dataclass(frozen=True)
class MetricSample:
    """One series of a metric family: its labels and current value."""

    labels: Mapping[str, str]
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


@dataclass(frozen=True)
class MetricFamily:
    """A named group of samples, in exposition order."""

    name: str
    type: str = "unknown"
    samples: tuple[MetricSample, ...] = ()


class MetricSnapshot(Mapping[str, MetricFamily]):
    """
    Read-only view of every metric family exposed at one point in time.

    A snapshot is never mutated; the poller fetches a fresh one per attempt.
    """

    def __init__(self, families: Sequence[MetricFamily] = ()):
        self._families = MappingProxyType({family.name: family for family in families})

    def __getitem__(self, name: str) -> MetricFamily:
        return self._families[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._families)

    def __len__(self) -> int:
        return len(self._families)

    def __repr__(self) -> str:
        return f"MetricSnapshot({sorted(self._families)})"


class OutcomeStatus(Enum):
    """Result of a single fetch-and-match attempt."""

    SUCCESS = "success"
    NOT_YET_OBSERVED = "not_yet_observed"
    FETCH_ERROR = "fetch_error"


@dataclass(frozen=True)
class PollOutcome:
    """Outcome of one poll attempt for a target."""

    status: OutcomeStatus
    value: Optional[float] = None  # Observed counter value, when a series was found
    detail: Optional[str] = None  # Why the attempt did not succeed

    @classmethod
    def success(cls, value: float) -> PollOutcome:
        return cls(OutcomeStatus.SUCCESS, value=value)

    @classmethod
    def not_yet_observed(cls, detail: str, value: Optional[float] = None) -> PollOutcome:
        return cls(OutcomeStatus.NOT_YET_OBSERVED, value=value, detail=detail)

    @classmethod
    def fetch_error(cls, detail: str) -> PollOutcome:
        return cls(OutcomeStatus.FETCH_ERROR, detail=detail)

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS


class PollState(Enum):
    """States of the poller state machine."""

    POLLING = "polling"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"


@dataclass
class PollResult:
    """Final state of polling one target."""

    target: VerificationTarget
    state: PollState
    attempts: int
    elapsed: float
    last_outcome: Optional[PollOutcome] = None
    last_error: Optional[str] = None  # Most recent fetch error, even if later attempts fetched

    @property
    def succeeded(self) -> bool:
        return self.state is PollState.SUCCEEDED

    @property
    def observed_value(self) -> Optional[float]:
        return self.last_outcome.value if self.last_outcome else None

    def describe(self) -> str:
        """Human-readable statement of how polling for this target ended."""
        target = self.target
        if self.succeeded:
            return (
                f"{target.selector} = {self.observed_value} > {target.threshold} "
                f"after {self.attempts} attempt(s) in {self.elapsed:.1f}s"
            )

        message = (
            f"{target.selector} was not observed above {target.threshold} "
            f"within {self.elapsed:.1f}s ({self.attempts} attempt(s))"
        )
        if self.last_outcome is not None and self.last_outcome.detail:
            message += f"; last outcome: {self.last_outcome.detail}"
        if self.last_error and (self.last_outcome is None or self.last_outcome.detail != self.last_error):
            message += f"; last fetch error: {self.last_error}"
        return message


@dataclass
class VerificationReport:
    """Result of verifying every target against one collector."""

    endpoint: str
    results: List[PollResult] = field(default_factory=list)
    teardown_error: Optional[str] = None

    @property
    def passed(self) -> List[PollResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> List[PollResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def all_passed(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        """
        Exit code for CI/CD pipelines.

        0 = Every target observed
        2 = At least one target timed out
        """
        return 0 if self.all_passed else 2

    def raise_for_failures(self) -> None:
        """Raise VerificationTimeout if any target timed out."""
        if self.all_passed:
            return
        raise VerificationTimeout(
            f"{len(self.failed)} of {len(self.results)} target(s) timed out at {self.endpoint}",
            failures=[r.describe() for r in self.failed],
            details=self._details(),
        )

    def _details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {"endpoint": self.endpoint}
        if self.teardown_error:
            details["teardown_error"] = self.teardown_error
        return details
