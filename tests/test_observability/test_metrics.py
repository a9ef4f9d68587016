"""Tests for the metrics collector and logging context."""

import logging

import structlog
from prometheus_client import CollectorRegistry

from forum_relay.observability.logging import pass_context, setup_logging
from forum_relay.observability.metrics import MetricsCollector


def sample(registry, name, **labels):
    return registry.get_sample_value(name, labels or None)


class TestMetricsCollector:
    """Tests for MetricsCollector against an isolated registry."""

    def test_counters(self):
        registry = CollectorRegistry()
        metrics = MetricsCollector(registry=registry)

        metrics.record_fetch_attempt("main", "success")
        metrics.record_fetch_attempt("main", "success")
        metrics.record_published("reddit")
        metrics.record_skipped("discourse")
        metrics.record_publish_error("reddit", "PublishError")

        assert sample(registry, "forum_relay_fetch_attempts_total", route="main", outcome="success") == 2
        assert sample(registry, "forum_relay_updates_published_total", source="reddit") == 1
        assert sample(registry, "forum_relay_updates_skipped_total", source="discourse") == 1
        assert sample(
            registry, "forum_relay_publish_errors_total", source="reddit", error_type="PublishError",
        ) == 1

    def test_route_backoff_gauge(self):
        registry = CollectorRegistry()
        metrics = MetricsCollector(registry=registry)

        metrics.set_route_backoff("Proxy #1 (h:1)", 60.0)
        assert sample(registry, "forum_relay_route_backoff_seconds", route="Proxy #1 (h:1)") == 60.0

        metrics.set_route_backoff("Proxy #1 (h:1)", None)
        assert sample(registry, "forum_relay_route_backoff_seconds", route="Proxy #1 (h:1)") == 0.0

    def test_passes(self):
        registry = CollectorRegistry()
        metrics = MetricsCollector(registry=registry)

        metrics.record_pass("success", 1.5)
        metrics.record_pass("skipped")

        assert sample(registry, "forum_relay_poll_passes_total", status="success") == 1
        assert sample(registry, "forum_relay_poll_passes_total", status="skipped") == 1
        assert sample(registry, "forum_relay_poll_latency_seconds_count") == 1
        assert sample(registry, "forum_relay_poll_latency_seconds_sum") == 1.5


class TestLogging:
    """Tests for logging setup and the per-pass context."""

    def test_pass_context_binds_and_restores(self):
        structlog.contextvars.clear_contextvars()

        with pass_context("abc12345") as pass_id:
            assert pass_id == "abc12345"
            assert structlog.contextvars.get_contextvars() == {"pass_id": "abc12345"}

        assert structlog.contextvars.get_contextvars() == {}

    def test_pass_context_generates_id(self):
        with pass_context() as pass_id:
            assert len(pass_id) == 8
            assert structlog.contextvars.get_contextvars()["pass_id"] == pass_id

    def test_setup_logging_levels(self):
        setup_logging(log_level="DEBUG", json_logs=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("redis").level == logging.WARNING

        setup_logging(log_level="WARNING", json_logs=False)

        assert logging.getLogger().level == logging.WARNING
