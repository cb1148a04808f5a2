"""
Decides whether a snapshot shows a target's counter above its threshold.
"""

from __future__ import annotations

from typing import Optional

from .models import MetricFamily, MetricSample, MetricSnapshot, PollOutcome, VerificationTarget


def find_sample(family: MetricFamily, label_key: str, label_value: str) -> Optional[MetricSample]:
    """Return the first sample whose labels contain ``label_key=label_value``."""
    for sample in family.samples:
        if sample.labels.get(label_key) == label_value:
            return sample
    return None


def match(snapshot: MetricSnapshot, target: VerificationTarget) -> PollOutcome:
    """
    Match a target against a snapshot.

    Absence of the family or of the labelled series is reported as
    not-yet-observed, never as an error: the collector may simply not have
    exported anything yet. The first matching series is authoritative.
    """
    family = snapshot.get(target.metric_name)
    if family is None:
        return PollOutcome.not_yet_observed(
            f"metric {target.metric_name} not exposed (found {len(snapshot)} families: "
            f"{', '.join(sorted(snapshot)) or 'none'})"
        )

    sample = find_sample(family, target.label_key, target.label_value)
    if sample is None:
        seen = [dict(s.labels) for s in family.samples]
        return PollOutcome.not_yet_observed(
            f"no {target.metric_name} series with {target.label_key}={target.label_value} "
            f"(label sets seen: {seen})"
        )

    if sample.value > target.threshold:
        return PollOutcome.success(sample.value)

    return PollOutcome.not_yet_observed(
        f"{target.selector} is {sample.value}, expected > {target.threshold}",
        value=sample.value,
    )
