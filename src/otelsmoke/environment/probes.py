"""
HTTP readiness probes for services in the topology.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List

import httpx
import structlog
from tenacity import RetryError, Retrying, retry_if_result, wait_fixed

from otelsmoke.core.errors import BringUpError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ReadinessProbe:
    """Declares that ``service`` is ready once ``path`` on container ``port`` answers 2xx."""

    service: str
    port: int
    path: str = "/"
    protocol: str = "http"

    def url(self, host: str, mapped_port: int) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{self.protocol}://{host}:{mapped_port}{path}"


def default_probes(collector_service: str = "otelcol", collector_port: int = 8888) -> List[ReadinessProbe]:
    """The instrumented app and the collector's self-observability endpoint."""
    return [
        ReadinessProbe(service="app", port=8080, path="/single"),
        ReadinessProbe(service=collector_service, port=collector_port, path="/metrics"),
    ]


def probe_once(url: str, timeout: float = 5.0) -> bool:
    """Return True if ``url`` answers with any successful response."""
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.get(url)
            return response.is_success
    except httpx.HTTPError as e:
        logger.debug("readiness_probe_error", url=url, error=str(e))
        return False


def wait_until_ready(
    probe: ReadinessProbe,
    url: str,
    *,
    deadline: float,
    interval: float = 1.0,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    check: Callable[[str], bool] = probe_once,
) -> None:
    """
    Block until ``url`` passes the probe or ``deadline`` (a ``clock`` value) passes.

    Raises:
        BringUpError: If the probe never succeeded before the deadline
    """
    retrying = Retrying(
        retry=retry_if_result(lambda ready: not ready),
        wait=wait_fixed(interval),
        stop=lambda retry_state: clock() >= deadline,
        sleep=sleep,
        before_sleep=lambda retry_state: logger.debug(
            "readiness_probe_waiting",
            service=probe.service,
            url=url,
            attempt=retry_state.attempt_number,
        ),
    )
    try:
        retrying(check, url)
    except RetryError as e:
        raise BringUpError(
            f"Service {probe.service} did not become ready",
            details={"service": probe.service, "url": url, "attempts": e.last_attempt.attempt_number},
        ) from e

    logger.info(
        "readiness_probe_ready",
        service=probe.service,
        url=url,
        attempts=retrying.statistics.get("attempt_number"),
    )
