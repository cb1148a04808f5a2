"""Tests for running every target against a collector."""

import threading
from unittest.mock import MagicMock

import pytest
import respx
from httpx import Response

from otelsmoke.config import Settings
from otelsmoke.core.errors import BringUpError, TeardownError, VerificationTimeout
from otelsmoke.environment import ComposeError, EnvironmentController, ResolvedEndpoints
from otelsmoke.verification import (
    MetricFamily,
    MetricSample,
    MetricSnapshot,
    Poller,
    VerificationTarget,
)
from otelsmoke.verification.runner import check_endpoint, poll_targets, run_verification

URL = "http://localhost:49300/metrics"

ALL_EXPORTED = MetricSnapshot(
    [
        MetricFamily(
            "otelcol_exporter_sent_spans",
            "counter",
            (MetricSample({"exporter": "googlecloud"}, 250.0),),
        ),
        MetricFamily(
            "otelcol_exporter_sent_log_records",
            "counter",
            (MetricSample({"exporter": "googlecloud"}, 180.0),),
        ),
        MetricFamily(
            "otelcol_exporter_sent_metric_points",
            "counter",
            (MetricSample({"exporter": "googlemanagedprometheus"}, 4096.0),),
        ),
    ]
)

NO_LOGS = MetricSnapshot(
    [family for name, family in ALL_EXPORTED.items() if name != "otelcol_exporter_sent_log_records"]
)


def _settings(**kwargs):
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("poll_timeout", 0.05)
    return Settings(**kwargs)


def _controller(metrics_url=URL):
    controller = MagicMock()
    controller.__enter__.return_value = ResolvedEndpoints(metrics_url=metrics_url)
    controller.__exit__.return_value = False
    return controller


class TestPollTargets:
    def test_all_targets_pass(self, fake_clock):
        poller = Poller(lambda url: ALL_EXPORTED, clock=fake_clock, sleep=fake_clock.sleep)
        targets = [
            VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud"),
            VerificationTarget("otelcol_exporter_sent_log_records", "exporter", "googlecloud"),
        ]

        report = poll_targets(poller, URL, targets)

        assert report.all_passed
        assert report.exit_code == 0
        assert [r.observed_value for r in report.results] == [250.0, 180.0]

    def test_one_timeout_does_not_stop_others(self, fake_clock):
        poller = Poller(lambda url: NO_LOGS, timeout=5.0, clock=fake_clock, sleep=fake_clock.sleep)
        targets = [
            VerificationTarget("otelcol_exporter_sent_log_records", "exporter", "googlecloud"),
            VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud"),
        ]

        report = poll_targets(poller, URL, targets)

        assert [r.succeeded for r in report.results] == [False, True]
        assert report.exit_code == 2

    def test_concurrent_targets_keep_order(self):
        threads = set()

        def fetch(url):
            threads.add(threading.get_ident())
            return ALL_EXPORTED

        poller = Poller(fetch, interval=0.01, timeout=1.0)
        targets = [
            VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud"),
            VerificationTarget("otelcol_exporter_sent_log_records", "exporter", "googlecloud"),
            VerificationTarget("otelcol_exporter_sent_metric_points", "exporter", "googlemanagedprometheus"),
        ]

        report = poll_targets(poller, URL, targets, concurrent=True)

        assert [r.target for r in report.results] == targets
        assert report.all_passed
        assert threading.get_ident() not in threads


class TestReport:
    def test_raise_for_failures(self, fake_clock):
        poller = Poller(lambda url: NO_LOGS, timeout=2.0, clock=fake_clock, sleep=fake_clock.sleep)
        target = VerificationTarget("otelcol_exporter_sent_log_records", "exporter", "googlecloud")

        report = poll_targets(poller, URL, [target])

        with pytest.raises(VerificationTimeout) as exc_info:
            report.raise_for_failures()

        assert "otelcol_exporter_sent_log_records" in str(exc_info.value)
        assert exc_info.value.details["endpoint"] == URL

    def test_raise_for_failures_passes_when_all_observed(self, fake_clock):
        poller = Poller(lambda url: ALL_EXPORTED, clock=fake_clock, sleep=fake_clock.sleep)
        target = VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud")

        poll_targets(poller, URL, [target]).raise_for_failures()


class TestCheckEndpoint:
    def test_uses_default_targets(self):
        report = check_endpoint(URL, _settings(), fetch=lambda url: ALL_EXPORTED)

        assert len(report.results) == 3
        assert report.all_passed

    def test_threshold_from_settings(self):
        report = check_endpoint(URL, _settings(sent_items_threshold=300.0), fetch=lambda url: ALL_EXPORTED)

        assert [r.succeeded for r in report.results] == [False, False, True]

    def test_fetches_over_http(self):
        text = (
            "# TYPE otelcol_exporter_sent_spans counter\n"
            'otelcol_exporter_sent_spans{exporter="googlecloud"} 150\n'
        )
        target = VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud")

        with respx.mock:
            respx.get(URL).mock(return_value=Response(200, text=text))

            report = check_endpoint(URL, _settings(), targets=[target])

        assert report.all_passed
        assert report.results[0].observed_value == 150.0


class TestRunVerification:
    def test_polls_resolved_endpoint_inside_environment(self):
        controller = _controller()
        seen = []

        def fetch(url):
            seen.append(url)
            controller.__exit__.assert_not_called()
            return ALL_EXPORTED

        report = run_verification(_settings(), controller=controller, fetch=fetch)

        assert report.all_passed
        assert report.endpoint == URL
        assert set(seen) == {URL}
        controller.__exit__.assert_called_once()

    def test_failing_report_still_tears_down(self):
        controller = _controller()

        report = run_verification(_settings(), controller=controller, fetch=lambda url: NO_LOGS)

        assert not report.all_passed
        controller.__exit__.assert_called_once()

    def test_bring_up_error_propagates_without_polling(self):
        controller = MagicMock()
        controller.__enter__.side_effect = BringUpError("Service app did not become ready")
        fetch = MagicMock()

        with pytest.raises(BringUpError):
            run_verification(_settings(), controller=controller, fetch=fetch)

        fetch.assert_not_called()

    def test_teardown_failure_keeps_timed_out_report(self):
        stack = MagicMock()
        stack.port.return_value = ("localhost", 49300)
        stack.down.side_effect = ComposeError("docker compose down failed")
        controller = EnvironmentController(stack, wait=MagicMock())

        report = run_verification(_settings(), controller=controller, fetch=lambda url: MetricSnapshot())

        assert report.exit_code == 2
        assert len(report.failed) == 3
        assert report.teardown_error == "Failed to tear down topology: docker compose down failed"
        stack.down.assert_called_once()

        with pytest.raises(VerificationTimeout) as exc_info:
            report.raise_for_failures()
        assert "docker compose down failed" in exc_info.value.details["teardown_error"]

    def test_teardown_failure_after_clean_run_raises(self):
        stack = MagicMock()
        stack.port.return_value = ("localhost", 49300)
        stack.down.side_effect = ComposeError("docker compose down failed")
        controller = EnvironmentController(stack, wait=MagicMock())

        with pytest.raises(TeardownError):
            run_verification(_settings(), controller=controller, fetch=lambda url: ALL_EXPORTED)

        stack.down.assert_called_once()
