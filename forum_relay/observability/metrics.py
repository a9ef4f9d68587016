"""
Prometheus metrics for monitoring the relay pipeline.

Defines and exposes metrics for:
- Fetch attempts per egress route
- Route backoff state
- Published / skipped / failed updates
- Poll pass outcomes and latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from forum_relay.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for poll pass latency (in seconds)
PASS_LATENCY_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the forum-relay pipeline.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_fetch_attempt("main", "success")
        metrics.record_published("reddit")
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize Prometheus metrics.

        Args:
            registry: Registry to register against (defaults to the global one)
        """
        registry = registry if registry is not None else REGISTRY

        self.fetch_attempts = Counter(
            "forum_relay_fetch_attempts_total",
            "Total outbound fetch attempts",
            ["route", "outcome"],  # outcome: success, short_circuit, error
            registry=registry,
        )

        self.route_backoff = Gauge(
            "forum_relay_route_backoff_seconds",
            "Current backoff of an egress route (0 = healthy)",
            ["route"],
            registry=registry,
        )

        self.updates_published = Counter(
            "forum_relay_updates_published_total",
            "Total updates published to the forum",
            ["source"],
            registry=registry,
        )

        self.updates_skipped = Counter(
            "forum_relay_updates_skipped_total",
            "Total updates skipped as already posted",
            ["source"],
            registry=registry,
        )

        self.publish_errors = Counter(
            "forum_relay_publish_errors_total",
            "Total per-update publish failures",
            ["source", "error_type"],
            registry=registry,
        )

        self.poll_passes = Counter(
            "forum_relay_poll_passes_total",
            "Total poll passes",
            ["status"],  # status: success, error, skipped
            registry=registry,
        )

        self.poll_latency = Histogram(
            "forum_relay_poll_latency_seconds",
            "Duration of a full poll pass",
            buckets=PASS_LATENCY_BUCKETS,
            registry=registry,
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            logger.warning("Metrics server already started")
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_fetch_attempt(self, route: str, outcome: str) -> None:
        self.fetch_attempts.labels(route=route, outcome=outcome).inc()

    def set_route_backoff(self, route: str, backoff: float | None) -> None:
        self.route_backoff.labels(route=route).set(backoff or 0.0)

    def record_published(self, source: str) -> None:
        self.updates_published.labels(source=source).inc()

    def record_skipped(self, source: str) -> None:
        self.updates_skipped.labels(source=source).inc()

    def record_publish_error(self, source: str, error_type: str) -> None:
        self.publish_errors.labels(source=source, error_type=error_type).inc()

    def record_pass(self, status: str, latency: float | None = None) -> None:
        """
        Record the outcome of one poll pass.

        Args:
            status: success, error or skipped
            latency: Pass duration in seconds (omitted for skipped ticks)
        """
        self.poll_passes.labels(status=status).inc()
        if latency is not None:
            self.poll_latency.observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
