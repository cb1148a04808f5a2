"""
Metrics snapshot fetcher.

Reads a Prometheus text exposition endpoint and decodes it into a
MetricSnapshot.
"""

from __future__ import annotations

import httpx
import structlog
from prometheus_client.parser import text_string_to_metric_families

from otelsmoke.core.errors import FetchError

from .models import MetricFamily, MetricSample, MetricSnapshot

logger = structlog.get_logger()


def parse_snapshot(text: str) -> MetricSnapshot:
    """
    Decode exposition text into a MetricSnapshot.

    Counter families are keyed by their base name, so ``foo_total`` is found
    under ``foo``. Only value samples are kept; ``_created`` and other
    auxiliary samples are dropped.
    """
    families = []
    for family in text_string_to_metric_families(text):
        value_names = {family.name, f"{family.name}_total"}
        samples = tuple(
            MetricSample(labels=dict(sample.labels), value=float(sample.value))
            for sample in family.samples
            if sample.name in value_names
        )
        families.append(MetricFamily(name=family.name, type=family.type, samples=samples))
    return MetricSnapshot(families)


class MetricsFetcher:
    """
    Fetches metric snapshots over HTTP.

    Every call opens a fresh connection and performs exactly one read; retry
    belongs to the poller.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def fetch(self, url: str) -> MetricSnapshot:
        """
        Fetch and decode the snapshot exposed at ``url``.

        Raises:
            FetchError: On transport failure, non-2xx status or malformed payload
        """
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url)
                response.raise_for_status()
                text = response.text
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Metrics endpoint returned HTTP {e.response.status_code}",
                url=url,
                details={"status": e.response.status_code},
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout reading metrics from {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Cannot read metrics from {url}: {e}", url=url) from e

        try:
            snapshot = parse_snapshot(text)
        except ValueError as e:
            raise FetchError(f"Malformed metrics payload from {url}: {e}", url=url) from e

        logger.debug("metrics_fetched", url=url, families=len(snapshot))
        return snapshot

    __call__ = fetch
