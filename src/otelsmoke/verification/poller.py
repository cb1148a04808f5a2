"""
Polls a metrics endpoint until a target is observed or a deadline passes.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from otelsmoke.core.errors import FetchError
from otelsmoke.logging import bind_context

from .fetcher import MetricsFetcher
from .matcher import match
from .models import (
    MetricSnapshot,
    OutcomeStatus,
    PollOutcome,
    PollResult,
    PollState,
    VerificationTarget,
)

DEFAULT_INTERVAL = 1.0
DEFAULT_TIMEOUT = 120.0

FetchFn = Callable[[str], MetricSnapshot]


class Poller:
    """
    Drives fetch-then-match attempts for one target at a time.

    The first attempt runs immediately and later attempts are ``interval``
    seconds apart. Fetch errors are absorbed and retried. Once ``timeout``
    seconds have elapsed without success the target is reported as timed out.

    Clock, sleep and fetch are injectable so the state machine can be driven
    without real time or network.
    """

    def __init__(
        self,
        fetch: Optional[FetchFn] = None,
        *,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.fetch = fetch or MetricsFetcher()
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

    def attempt(self, target: VerificationTarget, url: str) -> PollOutcome:
        """Fetch a fresh snapshot and match the target against it."""
        try:
            snapshot = self.fetch(url)
        except FetchError as e:
            return PollOutcome.fetch_error(e.message)
        return match(snapshot, target)

    def wait_for(self, target: VerificationTarget, url: str) -> PollResult:
        """Poll ``url`` until ``target`` is observed or the timeout expires."""
        log = bind_context(target=target.selector, url=url)
        start = self._clock()
        state = PollState.POLLING
        attempts = 0
        outcome: Optional[PollOutcome] = None
        last_error: Optional[str] = None

        while state is PollState.POLLING:
            attempts += 1
            outcome = self.attempt(target, url)
            elapsed = self._clock() - start

            if outcome.succeeded:
                state = PollState.SUCCEEDED
                log.info("poll_succeeded", value=outcome.value, attempts=attempts, elapsed=elapsed)
                break

            if outcome.status is OutcomeStatus.FETCH_ERROR:
                last_error = outcome.detail
                log.debug("poll_fetch_error", attempt=attempts, error=outcome.detail)
            else:
                log.debug("poll_attempt", attempt=attempts, detail=outcome.detail)

            if elapsed >= self.timeout:
                state = PollState.TIMED_OUT
                log.warning(
                    "poll_timed_out",
                    attempts=attempts,
                    elapsed=elapsed,
                    last_outcome=outcome.detail,
                    last_error=last_error,
                )
                break

            self._sleep(self.interval)

        return PollResult(
            target=target,
            state=state,
            attempts=attempts,
            elapsed=self._clock() - start,
            last_outcome=outcome,
            last_error=last_error,
        )
