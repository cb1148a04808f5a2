"""
Runs every verification target against a collector.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import structlog

from otelsmoke.config import Settings
from otelsmoke.core.errors import TeardownError
from otelsmoke.environment import EnvironmentController

from .fetcher import MetricsFetcher
from .models import PollResult, VerificationReport, VerificationTarget, default_targets
from .poller import FetchFn, Poller

logger = structlog.get_logger()


def poll_targets(
    poller: Poller,
    url: str,
    targets: Sequence[VerificationTarget],
    concurrent: bool = False,
) -> VerificationReport:
    """
    Drive each target through its own poll loop.

    Targets are independent: one timing out does not stop the others. With
    ``concurrent`` each loop runs on its own worker thread; results keep the
    order of ``targets`` either way.
    """
    report = VerificationReport(endpoint=url)

    if concurrent and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            results: List[PollResult] = list(pool.map(lambda t: poller.wait_for(t, url), targets))
    else:
        results = [poller.wait_for(target, url) for target in targets]

    report.results.extend(results)
    logger.info(
        "verification_finished",
        endpoint=url,
        passed=len(report.passed),
        failed=len(report.failed),
    )
    return report


def _build_poller(settings: Settings, fetch: Optional[FetchFn]) -> Poller:
    return Poller(
        fetch or MetricsFetcher(timeout=settings.fetch_timeout),
        interval=settings.poll_interval,
        timeout=settings.poll_timeout,
    )


def check_endpoint(
    url: str,
    settings: Settings,
    targets: Optional[Sequence[VerificationTarget]] = None,
    fetch: Optional[FetchFn] = None,
) -> VerificationReport:
    """Verify targets against an already running collector."""
    targets = targets if targets is not None else default_targets(settings.sent_items_threshold)
    poller = _build_poller(settings, fetch)
    return poll_targets(poller, url, targets, concurrent=settings.concurrent_targets)


def run_verification(
    settings: Settings,
    targets: Optional[Sequence[VerificationTarget]] = None,
    controller: Optional[EnvironmentController] = None,
    fetch: Optional[FetchFn] = None,
) -> VerificationReport:
    """
    Bring the topology up, verify every target, and tear the topology down.

    Polling starts only after every readiness probe has passed. Teardown runs
    whether verification passes, times out or raises. When targets time out
    and teardown then fails too, the teardown error is logged and recorded on
    the report so the timed-out targets still decide the outcome.

    The run is bounded stage by stage rather than by one overall deadline.
    With sequential targets the worst case is roughly ``docker compose up``
    (up to the compose timeout), plus ``readiness_timeout``, plus
    ``len(targets) * (poll_timeout + poll_interval + fetch_timeout)``, plus
    ``docker compose down``. With ``concurrent_targets`` the polling term
    drops to a single ``poll_timeout + poll_interval + fetch_timeout``.

    Raises:
        BringUpError: If the topology could not be started or never became ready
        TeardownError: If teardown failed after every target was observed
    """
    controller = controller or EnvironmentController.from_settings(settings)
    with controller as endpoints:
        logger.info("waiting_for_export", metrics_url=endpoints.metrics_url)
        report = check_endpoint(endpoints.metrics_url, settings, targets=targets, fetch=fetch)
        if not report.all_passed:
            try:
                controller.tear_down()
            except TeardownError as e:
                logger.error("teardown_failed", error=e.message, failed=len(report.failed))
                report.teardown_error = e.message
    return report
