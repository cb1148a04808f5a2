"""Tests for structured logging setup."""

import pytest
import structlog
from structlog.testing import capture_logs

from otelsmoke.logging import bind_context, configure_logging
from otelsmoke.verification import MetricSnapshot, Poller, VerificationTarget


@pytest.fixture(autouse=True)
def restore_structlog():
    config = structlog.get_config()
    yield
    structlog.configure(**config)


class TestConfigureLogging:
    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError, match="log_format"):
            configure_logging("INFO", "xml")

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_known_formats(self, log_format):
        configure_logging("debug", log_format)

        assert structlog.is_configured()


class TestBindContext:
    def test_fields_attached_to_every_event(self):
        with capture_logs() as logs:
            log = bind_context(target='otelcol_exporter_sent_spans{exporter="googlecloud"}')
            log.info("poll_attempt", attempt=1)
            log.info("poll_attempt", attempt=2)

        assert [e["target"] for e in logs] == ['otelcol_exporter_sent_spans{exporter="googlecloud"}'] * 2
        assert [e["attempt"] for e in logs] == [1, 2]

    def test_poller_events_carry_target_and_url(self, fake_clock):
        target = VerificationTarget("otelcol_exporter_sent_spans", "exporter", "googlecloud")
        poller = Poller(lambda url: MetricSnapshot(), timeout=1.0, clock=fake_clock, sleep=fake_clock.sleep)

        with capture_logs() as logs:
            poller.wait_for(target, "http://localhost:49300/metrics")

        timed_out = [e for e in logs if e["event"] == "poll_timed_out"]
        assert len(timed_out) == 1
        assert timed_out[0]["target"] == target.selector
        assert timed_out[0]["url"] == "http://localhost:49300/metrics"
