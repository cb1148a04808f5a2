"""
Environment controller.

Owns the lifecycle of the topology under test: bring it up, gate on
readiness probes, resolve the collector's metrics endpoint, and tear it
down on every exit path.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import TYPE_CHECKING, Callable, Dict, Optional, Sequence, Type

import structlog

from otelsmoke.core.errors import BringUpError, OtelSmokeError, TeardownError

from .compose import ComposeError, ComposeStack
from .probes import ReadinessProbe, default_probes, wait_until_ready

if TYPE_CHECKING:
    from otelsmoke.config import Settings

logger = structlog.get_logger()


@dataclass
class ResolvedEndpoints:
    """Externally reachable endpoints of a running topology."""

    metrics_url: str
    probe_urls: Dict[str, str] = field(default_factory=dict)


class EnvironmentController:
    """
    Scoped handle on a running topology.

    Use as a context manager; verification must only start inside the
    ``with`` block, after every probe has passed:

        with EnvironmentController(stack, probes) as endpoints:
            ...poll endpoints.metrics_url...

    Teardown runs exactly once, including when bring-up itself fails.
    """

    def __init__(
        self,
        stack: ComposeStack,
        probes: Sequence[ReadinessProbe] = (),
        *,
        collector_service: str = "otelcol",
        collector_port: int = 8888,
        metrics_path: str = "/metrics",
        readiness_timeout: float = 120.0,
        readiness_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wait: Callable[..., None] = wait_until_ready,
    ):
        self.stack = stack
        self.probes = list(probes)
        self.collector_service = collector_service
        self.collector_port = collector_port
        self.metrics_path = metrics_path
        self.readiness_timeout = readiness_timeout
        self.readiness_interval = readiness_interval
        self._clock = clock
        self._sleep = sleep
        self._wait = wait
        self._started = False
        self._torn_down = False

    @classmethod
    def from_settings(cls, settings: Settings, stack: Optional[ComposeStack] = None) -> EnvironmentController:
        """Build a controller for the compose files and collector named in settings."""
        stack = stack or ComposeStack(settings.compose_files, project_name=settings.compose_project_name)
        return cls(
            stack,
            default_probes(settings.collector_service, settings.collector_metrics_port),
            collector_service=settings.collector_service,
            collector_port=settings.collector_metrics_port,
            metrics_path=settings.collector_metrics_path,
            readiness_timeout=settings.readiness_timeout,
            readiness_interval=settings.readiness_interval,
        )

    def bring_up(self) -> ResolvedEndpoints:
        """
        Start the topology and block until every readiness probe passes.

        Raises:
            BringUpError: If orchestration fails or a probe times out
        """
        self._started = True
        try:
            self.stack.up()
        except ComposeError as e:
            raise BringUpError(f"Failed to start topology: {e.message}", e.details) from e

        deadline = self._clock() + self.readiness_timeout
        probe_urls: Dict[str, str] = {}
        for probe in self.probes:
            url = probe.url(*self._resolve(probe.service, probe.port))
            probe_urls[probe.service] = url
            logger.info("readiness_probe_waiting", service=probe.service, url=url)
            self._wait(
                probe,
                url,
                deadline=deadline,
                interval=self.readiness_interval,
                clock=self._clock,
                sleep=self._sleep,
            )

        host, port = self._resolve(self.collector_service, self.collector_port)
        endpoints = ResolvedEndpoints(
            metrics_url=f"http://{host}:{port}{self.metrics_path}",
            probe_urls=probe_urls,
        )
        logger.info("environment_ready", metrics_url=endpoints.metrics_url)
        return endpoints

    def _resolve(self, service: str, port: int) -> tuple[str, int]:
        try:
            return self.stack.port(service, port)
        except ComposeError as e:
            raise BringUpError(f"Cannot resolve {service}:{port}: {e.message}", e.details) from e

    def tear_down(self) -> None:
        """
        Tear the topology down. Only the first call has any effect.

        Raises:
            TeardownError: If ``docker compose down`` fails
        """
        if self._torn_down or not self._started:
            return
        self._torn_down = True
        try:
            self.stack.down(remove_orphans=True)
        except ComposeError as e:
            raise TeardownError(f"Failed to tear down topology: {e.message}", e.details) from e

    def _tear_down_after(self, exc: Optional[BaseException]) -> None:
        """Tear down, without letting a teardown failure hide ``exc``."""
        if exc is None:
            self.tear_down()
            return
        try:
            self.tear_down()
        except TeardownError as teardown_error:
            logger.error("teardown_failed", error=teardown_error.message, primary_error=str(exc))
            if isinstance(exc, OtelSmokeError):
                exc.details.setdefault("teardown_error", teardown_error.message)

    def __enter__(self) -> ResolvedEndpoints:
        try:
            return self.bring_up()
        except BaseException as exc:
            self._tear_down_after(exc)
            raise

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        self._tear_down_after(exc)
        return False
